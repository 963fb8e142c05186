import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from fitgd.application.config import GameConfig, RallyConfig
from fitgd.application.dtos import CommandBatch
from fitgd.application.services.event_bus import EventBus
from fitgd.application.services.game_store import GameStore
from fitgd.application.services.momentum_service import MomentumService, can_rally, momentum_cost, momentum_gain
from fitgd.domain.errors import ConfigurationError, InsufficientMomentum, RallyUnavailable, StateError
from fitgd.domain.events import LeanedIntoTrait, RallyUsed
from fitgd.domain.models.character import Trait
from fitgd.domain.models.crew import Crew
from fitgd.domain.models.turn_state import PlayerTurnState, TraitTransaction
from fitgd.infrastructure.inmemory.inmemory_history_repo import InMemoryHistoryRepository


def _service(config: GameConfig | None = None, bus: EventBus | None = None) -> MomentumService:
    store = GameStore(InMemoryHistoryRepository(), config=config or GameConfig(), event_bus=bus)
    store.dispatch(
        CommandBatch()
        .add(
            "characters/createCharacter",
            id="kess",
            name="Kess",
            traits=[
                Trait(id="veteran", name="Veteran of Ilion").to_dict(),
                Trait(id="oath", name="Oath of the Lance", disabled=True).to_dict(),
            ],
        )
        .add("characters/createCharacter", id="loner", name="Loner")
        .add("crews/createCrew", id="lancers", name="Ashen Lancers")
        .add("crews/addCharacterToCrew", crew_id="lancers", character_id="kess")
        .commands
    )
    return MomentumService(store)


class MomentumRuleTests(unittest.TestCase):
    def test_consequence_gain_follows_position(self) -> None:
        self.assertEqual(1, momentum_gain("controlled"))
        self.assertEqual(2, momentum_gain("risky"))
        self.assertEqual(4, momentum_gain("desperate"))
        self.assertEqual(6, momentum_gain("impossible"))

    def test_cost_sums_push_trait_and_flashback(self) -> None:
        turn = PlayerTurnState(
            character_id="kess",
            pushed=True,
            flashback_applied=True,
            trait_transaction=TraitTransaction(mode="existing", selected_trait_id="veteran"),
        )

        self.assertEqual(3, momentum_cost(turn))
        self.assertEqual(0, momentum_cost(PlayerTurnState(character_id="kess")))

    def test_transaction_price_overrides_table_cost(self) -> None:
        free = TraitTransaction(mode="existing", selected_trait_id="veteran", momentum_cost=0)
        dear = TraitTransaction(mode="existing", selected_trait_id="veteran", momentum_cost=2)

        self.assertEqual(0, momentum_cost(PlayerTurnState(character_id="kess", trait_transaction=free)))
        self.assertEqual(2, momentum_cost(PlayerTurnState(character_id="kess", trait_transaction=dear)))
        self.assertIsNone(TraitTransaction.from_dict(TraitTransaction(mode="existing").to_dict()).momentum_cost)
        self.assertEqual(0, TraitTransaction.from_dict(free.to_dict()).momentum_cost)

    def test_rally_needs_low_momentum_and_unused_flag(self) -> None:
        self.assertTrue(can_rally(Crew(id="c", name="c", current_momentum=3), True))
        self.assertFalse(can_rally(Crew(id="c", name="c", current_momentum=4), True))
        self.assertFalse(can_rally(Crew(id="c", name="c", current_momentum=0), False))


class MomentumServiceTests(unittest.TestCase):
    def test_add_momentum_clamps_at_ten(self) -> None:
        service = _service()

        self.assertEqual(10, service.add_momentum("lancers", 8))

    def test_huge_gain_still_stops_at_maximum(self) -> None:
        service = _service()

        self.assertEqual(10, service.add_momentum("lancers", 10**6))
        self.assertEqual(10, service.crew("lancers").current_momentum)

    def test_spend_more_than_available_raises(self) -> None:
        service = _service()

        with self.assertRaises(InsufficientMomentum) as ctx:
            service.spend_momentum("lancers", 6)

        self.assertEqual(6, ctx.exception.requested)
        self.assertEqual(5, ctx.exception.available)
        self.assertEqual(5, service.crew("lancers").current_momentum)

    def test_rally_spends_momentum_once_until_reset(self) -> None:
        bus = EventBus()
        rallies = []
        bus.subscribe(RallyUsed, rallies.append)
        service = _service(bus=bus)
        service.set_momentum("lancers", 3)

        result = service.rally("kess", 2)

        self.assertEqual(1, result.new_momentum)
        self.assertEqual(2, result.momentum_spent)
        self.assertFalse(service.store.state.characters["kess"].rally_available)
        self.assertEqual(1, len(rallies))
        with self.assertRaises(RallyUnavailable):
            service.rally("kess", 1)

    def test_rally_above_threshold_is_unavailable(self) -> None:
        service = _service()

        result = service.validate_rally("kess")

        self.assertFalse(result.is_valid)
        self.assertEqual("rally-unavailable", result.reason)
        with self.assertRaises(RallyUnavailable):
            service.rally("kess", 1)

    def test_rally_threshold_is_configurable(self) -> None:
        service = _service(GameConfig(rally=RallyConfig(max_momentum_to_use=5)))

        self.assertTrue(service.validate_rally("kess").is_valid)

    def test_rally_spend_is_clamped_to_available_momentum(self) -> None:
        service = _service()
        service.set_momentum("lancers", 1)

        result = service.rally("kess", 3)

        self.assertEqual(1, result.momentum_spent)
        self.assertEqual(0, result.new_momentum)

    def test_rally_can_re_enable_a_disabled_trait(self) -> None:
        service = _service()
        service.set_momentum("lancers", 2)

        service.rally("kess", 0, trait_id="oath")

        self.assertFalse(service.store.state.characters["kess"].find_trait("oath").disabled)

    def test_rally_rejects_trait_that_is_not_disabled(self) -> None:
        service = _service()
        service.set_momentum("lancers", 2)

        self.assertEqual("no-available-traits", service.validate_rally("kess", "veteran").reason)

    def test_reset_restores_momentum_and_rally(self) -> None:
        service = _service()
        service.set_momentum("lancers", 0)
        service.rally("kess", 0)

        crew = service.reset("lancers")

        self.assertEqual(5, crew.current_momentum)
        self.assertTrue(service.store.state.characters["kess"].rally_available)

    def test_lean_into_trait_disables_it_and_gains_two(self) -> None:
        bus = EventBus()
        leans = []
        bus.subscribe(LeanedIntoTrait, leans.append)
        service = _service(bus=bus)

        momentum = service.lean_into_trait("kess", "veteran")

        self.assertEqual(7, momentum)
        self.assertTrue(service.store.state.characters["kess"].find_trait("veteran").disabled)
        self.assertEqual(2, leans[0].momentum_gain)

    def test_lean_into_disabled_trait_is_rejected(self) -> None:
        service = _service()

        self.assertEqual("no-available-traits", service.validate_lean_into_trait("kess", "oath").reason)
        with self.assertRaises(StateError):
            service.lean_into_trait("kess", "oath")
        self.assertEqual(5, service.crew("lancers").current_momentum)

    def test_character_without_crew_cannot_rally(self) -> None:
        service = _service()

        self.assertEqual("no-crew", service.validate_rally("loner").reason)
        with self.assertRaises(ConfigurationError):
            service.rally("loner", 1)


if __name__ == "__main__":
    unittest.main()
