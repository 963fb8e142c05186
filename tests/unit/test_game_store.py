import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from fitgd.application.dtos import CommandBatch
from fitgd.application.services.event_bus import EventBus
from fitgd.application.services.game_store import GameStore
from fitgd.application.services.id_generator import IdGenerator, UuidIdGenerator
from fitgd.domain.errors import InsufficientMomentum
from fitgd.domain.events import ClockFilled, CommandsApplied, TurnPhaseChanged
from fitgd.infrastructure.inmemory.inmemory_history_repo import InMemoryHistoryRepository


class _FailingHistoryRepository(InMemoryHistoryRepository):
    def append(self, entries) -> None:
        raise RuntimeError("disk full")


def _store(history_repo=None, bus=None) -> GameStore:
    return GameStore(
        history_repo if history_repo is not None else InMemoryHistoryRepository(),
        event_bus=bus,
        clock=lambda: 1234.5,
        user_id="gm",
    )


def _roster() -> CommandBatch:
    return (
        CommandBatch()
        .add("characters/createCharacter", id="kess", name="Kess", approaches={"force": 2})
        .add("crews/createCrew", id="lancers", name="Ashen Lancers")
        .add("crews/addCharacterToCrew", crew_id="lancers", character_id="kess")
    )


class GameStoreTests(unittest.TestCase):
    def test_dispatch_records_one_history_entry_per_command(self) -> None:
        repo = InMemoryHistoryRepository()
        store = _store(repo)

        store.dispatch(_roster().commands)

        entries = repo.list_all()
        self.assertEqual(["cmd-1", "cmd-2", "cmd-3"], [entry.command_id for entry in entries])
        self.assertEqual("crews/createCrew", entries[1].type)
        self.assertEqual({"id": "lancers", "name": "Ashen Lancers"}, entries[1].payload)
        self.assertEqual(1234.5, entries[0].timestamp)
        self.assertEqual("gm", entries[0].user_id)
        self.assertIn("kess", store.state.characters)

    def test_failed_batch_changes_neither_state_nor_history(self) -> None:
        repo = InMemoryHistoryRepository()
        store = _store(repo)
        store.dispatch(_roster().commands)
        before = store.state.to_dict()

        with self.assertRaises(InsufficientMomentum):
            store.dispatch(
                CommandBatch()
                .add("crews/addMomentum", crew_id="lancers", amount=1)
                .add("crews/spendMomentum", crew_id="lancers", amount=20)
                .commands
            )

        self.assertEqual(before, store.state.to_dict())
        self.assertEqual(3, repo.count())

    def test_history_failure_keeps_previous_state(self) -> None:
        store = _store(_FailingHistoryRepository())

        with self.assertRaises(RuntimeError):
            store.dispatch(_roster().commands)

        self.assertEqual({}, store.state.characters)

    def test_dispatch_publishes_applied_and_phase_events(self) -> None:
        bus = EventBus()
        seen = []
        bus.subscribe_all(seen.append)
        store = _store(bus=bus)
        store.dispatch(_roster().commands)
        seen.clear()

        store.dispatch(CommandBatch().add("turns/beginTurn", character_id="kess").commands)

        self.assertIsInstance(seen[0], CommandsApplied)
        self.assertEqual(["turns/beginTurn"], seen[0].command_types)
        self.assertEqual(
            [TurnPhaseChanged(character_id="kess", from_phase="IDLE_WAITING", to_phase="DECISION_PHASE")],
            [event for event in seen if isinstance(event, TurnPhaseChanged)],
        )

    def test_clock_filled_is_published_once(self) -> None:
        bus = EventBus()
        filled = []
        bus.subscribe(ClockFilled, filled.append)
        store = _store(bus=bus)
        store.dispatch(
            _roster()
            .add(
                "clocks/createClock",
                id="addiction",
                owner_id="kess",
                clock_type="addiction",
                subtype="addiction",
                max_segments=8,
            )
            .commands
        )

        store.dispatch(CommandBatch().add("clocks/addSegments", clock_id="addiction", amount=8).commands)
        store.dispatch(CommandBatch().add("clocks/addSegments", clock_id="addiction", amount=1).commands)

        self.assertEqual(1, len(filled))
        self.assertEqual("addiction", filled[0].clock_type)

    def test_empty_batch_is_a_no_op(self) -> None:
        repo = InMemoryHistoryRepository()
        store = _store(repo)

        store.dispatch([])

        self.assertEqual(0, repo.count())


class IdGeneratorTests(unittest.TestCase):
    def test_sequential_ids_are_prefixed_and_resettable(self) -> None:
        generator = IdGenerator()

        self.assertEqual("clock-1", generator.next_id("clock"))
        self.assertEqual("trait-2", generator.next_id("trait"))
        generator.reset()
        self.assertEqual("cmd-1", generator.next_id("cmd"))

    def test_uuid_ids_use_factory(self) -> None:
        class _FixedUuid:
            hex = "abc123"

        generator = UuidIdGenerator(factory=lambda: _FixedUuid())

        self.assertEqual("crew-abc123", generator.next_id("crew"))


if __name__ == "__main__":
    unittest.main()
