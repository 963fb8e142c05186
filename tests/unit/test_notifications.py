import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from fitgd.application.config import GameConfig
from fitgd.application.services.game_store import GameStore
from fitgd.application.services.history_service import HistoryService
from fitgd.application.services.notifications import (
    REJECTION_MESSAGES,
    register_notification_handlers,
    rejected_notification,
)
from fitgd.application.services.turn_service import TurnService
from fitgd.domain.errors import ValidationResult
from fitgd.domain.events import Notification
from fitgd.domain.models.character import Trait
from fitgd.domain.models.clock import ClockType
from fitgd.infrastructure.inmemory.inmemory_history_repo import InMemoryHistoryRepository
from fitgd.infrastructure.inmemory.inmemory_snapshot_repo import InMemorySnapshotRepository
from fitgd.infrastructure.randomness import ScriptedDiceRoller


def _service(*faces: int):
    history_repo = InMemoryHistoryRepository()
    store = GameStore(history_repo, config=GameConfig(), clock=lambda: 1.0)
    history = HistoryService(history_repo, InMemorySnapshotRepository(), config=store.config)
    service = TurnService(store, history, ScriptedDiceRoller(faces))
    sunk: list[Notification] = []
    collected = register_notification_handlers(
        store.event_bus,
        state_provider=lambda: store.state,
        sink=sunk.append,
    )
    service.create_character(
        "Kess",
        approaches={"force": 2},
        traits=[Trait(id="trait-kess-1", name="Ex-Ironclad Marine")],
        character_id="kess",
    )
    service.create_character("Orrin", approaches={"guile": 2}, character_id="orrin")
    service.create_crew("Ashen Lancers", ["kess", "orrin"], crew_id="lancers")
    return service, collected, sunk


class RejectionNotificationTests(unittest.TestCase):
    def test_known_reason_uses_player_message(self) -> None:
        notification = rejected_notification(ValidationResult.fail("insufficient-momentum", needed=2), "Push")

        self.assertEqual("warning", notification.level)
        self.assertEqual("Push rejected", notification.title)
        self.assertEqual(REJECTION_MESSAGES["insufficient-momentum"], notification.message)
        self.assertEqual({"needed": 2}, notification.context)

    def test_unknown_reason_is_passed_through(self) -> None:
        notification = rejected_notification(ValidationResult.fail("table-flipped"))

        self.assertEqual("table-flipped", notification.message)
        self.assertEqual("table-flipped", notification.reason)


class EventNotificationTests(unittest.TestCase):
    def test_consequence_is_announced_with_momentum_gain(self) -> None:
        service, collected, sunk = _service(1, 2)
        service.begin_turn("kess")
        service.set_action_plan("kess", "force")
        service.commit_roll("kess")
        service.set_consequence("kess", "harm", harm_subtype="physical")

        service.apply_consequence("kess")

        self.assertEqual(1, len(collected))
        self.assertEqual("Consequence applied", collected[0].title)
        self.assertEqual("Kess suffered 2 segment(s) of harm. Crew gains 2 momentum.", collected[0].message)
        self.assertEqual(collected, sunk)

    def test_notifications_are_republished_on_the_bus(self) -> None:
        service, collected, _ = _service()
        published: list[Notification] = []
        service.event_bus.subscribe(Notification, published.append)

        service.lean_into_trait("kess", "trait-kess-1")

        self.assertEqual(collected, published)
        self.assertEqual("Leaning into trait", published[0].title)
        self.assertIn("crew gains 2 momentum", published[0].message)

    def test_rally_is_announced(self) -> None:
        service, collected, _ = _service()
        service.momentum.set_momentum("lancers", 2)

        service.rally("orrin", 1)

        self.assertEqual("Rally", collected[-1].title)
        self.assertEqual("Orrin rallied the crew, spending 1 momentum.", collected[-1].message)
        self.assertEqual({"crew_id": "lancers", "momentum": 1}, collected[-1].context)

    def test_filled_harm_clock_announces_dying(self) -> None:
        service, collected, _ = _service()
        clock = service.create_clock("orrin", ClockType.HARM, "physical")

        service.clocks.set_segments(clock.id, 6)

        self.assertEqual(["Harm clock filled", "Dying"], [item.title for item in collected])
        self.assertEqual("error", collected[1].level)
        self.assertEqual("Orrin has a full harm clock and is dying.", collected[1].message)

    def test_filled_progress_clock_is_silent(self) -> None:
        service, collected, _ = _service()
        clock = service.create_clock("lancers", ClockType.PROGRESS, "heist", 4)

        service.clocks.add_segments(clock.id, 4)

        self.assertEqual([], collected)

    def test_stims_lock_is_an_error_notification(self) -> None:
        service, collected, _ = _service(1, 2, 6)
        addiction = service.create_clock("kess", ClockType.ADDICTION)
        service.clocks.set_segments(addiction.id, 5)
        service.begin_turn("kess")
        service.set_action_plan("kess", "force")
        service.commit_roll("kess")

        service.use_stims("kess")

        self.assertEqual("Addiction", collected[-1].title)
        self.assertEqual("error", collected[-1].level)
        self.assertEqual("team-addiction-locked", collected[-1].reason)


if __name__ == "__main__":
    unittest.main()
