from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from fitgd.application.config import GameConfig, TurnContext
from fitgd.application.dtos import (
    CommandBatch,
    ConsequencePreview,
    DefensiveSuccessValues,
    DiceProbabilities,
    HistoryStats,
    LoadResult,
    PruneReport,
    RallyResult,
    RollResult,
    StimsWorkflowResult,
    TurnView,
)
from fitgd.application.services.clock_service import ClockService, is_character_dying
from fitgd.application.services.consequence_resolver import (
    ConsequenceResolver,
    preview_consequence,
)
from fitgd.application.services.dice_engine import DiceRoller, calculate_dice_pool, calculate_dice_probabilities
from fitgd.application.services.game_store import GameStore
from fitgd.application.services.history_service import HistoryService
from fitgd.application.services.id_generator import IdGenerator, highest_sequence
from fitgd.application.services.momentum_service import MomentumService, momentum_cost
from fitgd.application.services.stims_workflow import StimsInterruptWorkflow
from fitgd.application.services.turn_state_machine import PlayerTurnStateMachine
from fitgd.domain.errors import ConfigurationError
from fitgd.domain.models.character import Character, Equipment, Trait
from fitgd.domain.models.clock import Clock, ClockType
from fitgd.domain.models.command import Snapshot
from fitgd.domain.models.crew import Crew
from fitgd.domain.models.ladder import Effect, Position
from fitgd.domain.models.turn_state import (
    ConsequenceTransaction,
    ConsequenceType,
    PlayerTurnState,
    PushType,
    RollMode,
    TraitTransaction,
    TurnPhase,
)

logger = logging.getLogger(__name__)


class TurnService:
    """Entry point for a table session: roster setup plus the full player turn."""

    def __init__(self, store: GameStore, history: HistoryService, roller: DiceRoller) -> None:
        self.store = store
        self.history = history
        self.roller = roller
        self.clocks = ClockService(store)
        self.momentum = MomentumService(store)
        self.consequences = ConsequenceResolver(store, self.clocks)
        self.machine = PlayerTurnStateMachine(store, roller)
        self.stims = StimsInterruptWorkflow(store, self.clocks, self.machine, roller)

    @property
    def config(self) -> GameConfig:
        return self.store.config

    @property
    def event_bus(self):
        return self.store.event_bus

    @property
    def state(self):
        return self.store.state

    # Roster

    def create_character(
        self,
        name: str,
        *,
        approaches: Optional[Dict[str, int]] = None,
        traits: Iterable[Trait | Dict[str, Any]] = (),
        equipment: Iterable[Equipment | Dict[str, Any]] = (),
        character_id: Optional[str] = None,
    ) -> Character:
        name = str(name or "").strip()
        if not name:
            raise ConfigurationError("Character name is required")
        character_id = character_id or self.store.new_id("character")
        payload: Dict[str, Any] = {
            "id": character_id,
            "name": name,
            "traits": [trait.to_dict() if isinstance(trait, Trait) else dict(trait) for trait in traits],
            "equipment": [item.to_dict() if isinstance(item, Equipment) else dict(item) for item in equipment],
            "rally_available": True,
        }
        if approaches is not None:
            payload["approaches"] = dict(approaches)
        self.store.dispatch(CommandBatch().add("characters/createCharacter", **payload).commands)
        logger.info("Character created", extra={"character_id": character_id})
        return self.state.characters[character_id]

    def create_crew(
        self,
        name: str,
        members: Iterable[str] = (),
        *,
        crew_id: Optional[str] = None,
    ) -> Crew:
        crew_id = crew_id or self.store.new_id("crew")
        batch = CommandBatch().add("crews/createCrew", id=crew_id, name=str(name or "").strip())
        for character_id in members:
            batch.add("crews/addCharacterToCrew", crew_id=crew_id, character_id=character_id)
        self.store.dispatch(batch.commands)
        logger.info("Crew created", extra={"crew_id": crew_id})
        return self.state.crews[crew_id]

    def add_character_to_crew(self, crew_id: str, character_id: str) -> Crew:
        self.store.dispatch(
            CommandBatch().add("crews/addCharacterToCrew", crew_id=crew_id, character_id=character_id).commands
        )
        return self.state.crews[crew_id]

    def remove_character_from_crew(self, crew_id: str, character_id: str) -> Crew:
        self.store.dispatch(
            CommandBatch().add("crews/removeCharacterFromCrew", crew_id=crew_id, character_id=character_id).commands
        )
        return self.state.crews[crew_id]

    def delete_character(self, character_id: str) -> None:
        self.store.dispatch(CommandBatch().add("characters/deleteCharacter", character_id=character_id).commands)

    def delete_crew(self, crew_id: str) -> None:
        self.store.dispatch(CommandBatch().add("crews/deleteCrew", crew_id=crew_id).commands)

    def create_clock(
        self,
        owner_id: str,
        clock_type: ClockType | str,
        subtype: str = "",
        max_segments: Optional[int] = None,
    ) -> Clock:
        return self.clocks.create_clock(owner_id, clock_type, subtype, max_segments)

    def context(self, character_id: str) -> TurnContext:
        self.machine.character(character_id)
        crew = self.state.crew_for_character(character_id)
        return TurnContext(character_id=character_id, crew_id=crew.id if crew is not None else None)

    # Decision phase

    def begin_turn(
        self,
        character_id: str,
        position: Position | str = Position.RISKY,
        effect: Effect | str = Effect.STANDARD,
    ) -> PlayerTurnState:
        return self.machine.begin_turn(character_id, position, effect)

    def set_action_plan(
        self,
        character_id: str,
        approach: str,
        *,
        secondary_approach: Optional[str] = None,
        roll_mode: RollMode | str = RollMode.STANDARD,
        active_equipment_ids: Iterable[str] = (),
        passive_equipment_id: Optional[str] = None,
    ) -> PlayerTurnState:
        return self.machine.set_action_plan(
            character_id,
            approach,
            secondary_approach=secondary_approach,
            roll_mode=roll_mode,
            active_equipment_ids=active_equipment_ids,
            passive_equipment_id=passive_equipment_id,
        )

    def set_position(self, character_id: str, position: Position | str) -> PlayerTurnState:
        return self.machine.set_position(character_id, position)

    def set_effect(self, character_id: str, effect: Effect | str) -> PlayerTurnState:
        return self.machine.set_effect(character_id, effect)

    def push(self, character_id: str, push_type: PushType | str = PushType.EXTRA_DIE) -> PlayerTurnState:
        turn = self.machine.turn(character_id)
        return self.machine.set_improvements(
            character_id,
            pushed=True,
            push_type=push_type,
            flashback_applied=turn.flashback_applied,
        )

    def flashback(self, character_id: str) -> PlayerTurnState:
        turn = self.machine.turn(character_id)
        return self.machine.set_improvements(
            character_id,
            pushed=turn.pushed,
            push_type=turn.push_type,
            flashback_applied=True,
        )

    def clear_improvements(self, character_id: str) -> PlayerTurnState:
        return self.machine.set_improvements(character_id)

    def set_trait_transaction(
        self,
        character_id: str,
        transaction: Optional[TraitTransaction],
    ) -> PlayerTurnState:
        return self.machine.set_trait_transaction(character_id, transaction)

    def approve(self, character_id: str, approved: bool = True) -> PlayerTurnState:
        return self.machine.approve(character_id, approved)

    # Rolling

    def commit_roll(self, character_id: str) -> RollResult:
        return self.machine.commit_roll(character_id)

    def probabilities(self, character_id: str, *, exact_desperate: bool = False) -> DiceProbabilities:
        return calculate_dice_probabilities(self.machine.dice_pool(character_id), exact_desperate=exact_desperate)

    # Consequences

    def set_consequence(
        self,
        character_id: str,
        consequence_type: ConsequenceType | str,
        *,
        harm_target_character_id: Optional[str] = None,
        harm_subtype: Optional[str] = None,
        harm_clock_id: Optional[str] = None,
        crew_clock_id: Optional[str] = None,
        success_clock_id: Optional[str] = None,
        use_defensive_success: bool = False,
    ) -> PlayerTurnState:
        consequence_type = ConsequenceType(consequence_type)
        # Phase is checked before any harm clock is created.
        self.consequences.require_configurable(character_id)
        if consequence_type is ConsequenceType.HARM and harm_clock_id is None and harm_subtype:
            target = harm_target_character_id or character_id
            harm_clock_id = self.consequences.ensure_harm_clock(target, harm_subtype)
        transaction = ConsequenceTransaction(
            consequence_type=consequence_type,
            harm_target_character_id=harm_target_character_id
            or (character_id if consequence_type is ConsequenceType.HARM else None),
            harm_clock_id=harm_clock_id,
            crew_clock_id=crew_clock_id,
            success_clock_id=success_clock_id,
            use_defensive_success=use_defensive_success,
        )
        return self.consequences.set_transaction(character_id, transaction)

    def preview_consequence(self, character_id: str) -> ConsequencePreview:
        return preview_consequence(self.machine.turn(character_id), self.config)

    def defensive_success(self, character_id: str) -> DefensiveSuccessValues:
        return self.consequences.defensive_success(character_id)

    def apply_consequence(self, character_id: str, *, auto_complete: bool = True) -> ConsequencePreview:
        preview = self.consequences.apply(character_id)
        if auto_complete:
            self.machine.complete(character_id)
        return preview

    def accept_success(self, character_id: str) -> None:
        self.machine.complete(character_id)

    def use_stims(self, character_id: str) -> StimsWorkflowResult:
        return self.stims.run(character_id)

    def cancel_turn(self, character_id: str) -> None:
        self.machine.cancel(character_id)

    # Momentum

    def rally(self, character_id: str, amount: int, trait_id: Optional[str] = None) -> RallyResult:
        return self.momentum.rally(character_id, amount, trait_id)

    def lean_into_trait(self, character_id: str, trait_id: str) -> int:
        return self.momentum.lean_into_trait(character_id, trait_id)

    def reset_momentum(self, crew_id: str) -> Crew:
        return self.momentum.reset(crew_id)

    # Views

    def turn_view(self, character_id: str) -> TurnView:
        character = self.machine.character(character_id)
        turn = self.state.turns.get(character_id)
        crew = self.state.crew_for_character(character_id)
        if turn is None:
            return TurnView(
                character_id=character_id,
                character_name=character.name,
                phase=TurnPhase.IDLE_WAITING.value,
                approach=None,
                base_position=Position.RISKY.value,
                effective_position=Position.RISKY.value,
                base_effect=Effect.STANDARD.value,
                effective_effect=Effect.STANDARD.value,
                dice_pool=0,
                momentum_cost=0,
                crew_momentum=crew.current_momentum if crew is not None else None,
                dying=is_character_dying(self.state, character_id),
            )
        return TurnView(
            character_id=character_id,
            character_name=character.name,
            phase=turn.phase.value,
            approach=turn.selected_approach,
            base_position=turn.position.value,
            effective_position=turn.effective_position.value,
            base_effect=turn.effect.value,
            effective_effect=turn.effective_effect.value,
            dice_pool=calculate_dice_pool(character, turn),
            momentum_cost=momentum_cost(turn, self.config),
            crew_momentum=crew.current_momentum if crew is not None else None,
            roll=list(turn.roll_result),
            outcome=turn.outcome.value if turn.outcome is not None else None,
            dying=is_character_dying(self.state, character_id),
        )

    # History

    def history_stats(self) -> HistoryStats:
        return self.history.stats()

    def snapshot(self) -> Snapshot:
        return self.history.take_snapshot(self.state)

    def prune_orphaned_history(self) -> PruneReport:
        return self.history.prune_orphaned(self.state)

    def prune_history(self) -> PruneReport:
        return self.history.prune_all(self.state)

    def restore(self) -> LoadResult:
        """Rebuild state from the latest snapshot plus newer history and install it."""
        result = self.history.load()
        self.store.replace_state(result.state)
        self._resume_ids()
        logger.info(
            "State restored",
            extra={"from_snapshot": result.from_snapshot, "replayed": result.replayed},
        )
        return result

    def _resume_ids(self) -> None:
        # Sequential ids continue after everything already recorded.
        generator = self.store.id_generator
        if not isinstance(generator, IdGenerator):
            return
        snapshot = self.history.snapshot_repo.latest()
        known = [entry.command_id for entry in self.history.entries()]
        known.extend(self.state.characters)
        known.extend(self.state.crews)
        known.extend(self.state.clocks)
        for character in self.state.characters.values():
            known.extend(trait.id for trait in character.traits)
        if snapshot is not None:
            known.append(snapshot.last_command_id)
        generator.reset(start=highest_sequence(known) + 1)

    def characters(self) -> List[Character]:
        return list(self.state.characters.values())
