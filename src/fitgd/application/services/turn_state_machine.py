from __future__ import annotations

import logging
from typing import Iterable, Optional

from fitgd.application.config import GameConfig
from fitgd.application.dtos import CommandBatch, RollResult
from fitgd.application.services.dice_engine import DiceRoller, calculate_dice_pool, roll_outcome
from fitgd.application.services.game_store import GameStore
from fitgd.application.services.momentum_service import momentum_cost
from fitgd.application.services.trait_transaction_resolver import (
    build_trait_transaction_commands,
    validate_trait_transaction,
)
from fitgd.domain.errors import ConfigurationError, InsufficientMomentum, StateError, ValidationResult
from fitgd.domain.events import DiceRolled
from fitgd.domain.models.character import Character
from fitgd.domain.models.ladder import Effect, Position
from fitgd.domain.models.turn_state import (
    TURN_TRANSITIONS,
    PlayerTurnState,
    PushType,
    RollMode,
    TraitTransaction,
    TurnPhase,
    can_transition,
)

logger = logging.getLogger(__name__)


def allowed_transitions(phase: TurnPhase) -> frozenset[TurnPhase]:
    targets = set(TURN_TRANSITIONS.get(phase, frozenset()))
    if can_transition(phase, TurnPhase.IDLE_WAITING):
        targets.add(TurnPhase.IDLE_WAITING)
    return frozenset(targets)


def outcome_phase(result: RollResult) -> TurnPhase:
    return TurnPhase.SUCCESS_COMPLETE if result.outcome.is_success else TurnPhase.GM_RESOLVING_CONSEQUENCE


def build_roll_result_commands(character_id: str, result: RollResult) -> CommandBatch:
    return (
        CommandBatch()
        .add(
            "turns/setRollResult",
            character_id=character_id,
            dice_pool=result.dice_pool,
            dice=list(result.dice),
            outcome=result.outcome.value,
        )
        .add("turns/transitionState", character_id=character_id, to=outcome_phase(result).value)
    )


class PlayerTurnStateMachine:
    """Drives one character's turn from decision through completion."""

    def __init__(self, store: GameStore, roller: DiceRoller) -> None:
        self.store = store
        self.roller = roller

    @property
    def config(self) -> GameConfig:
        return self.store.config

    def character(self, character_id: str) -> Character:
        character = self.store.state.characters.get(character_id)
        if character is None:
            raise ConfigurationError(f"Unknown character: {character_id}")
        return character

    def turn(self, character_id: str) -> PlayerTurnState:
        turn = self.store.state.turns.get(character_id)
        if turn is None:
            raise StateError(f"No active turn for character {character_id}")
        return turn

    def phase(self, character_id: str) -> TurnPhase:
        turn = self.store.state.turns.get(character_id)
        return turn.phase if turn is not None else TurnPhase.IDLE_WAITING

    def _dispatch(self, batch: CommandBatch) -> None:
        self.store.dispatch(batch.commands)

    def transition(self, character_id: str, target: TurnPhase) -> None:
        current = self.phase(character_id)
        if not can_transition(current, target):
            raise StateError(f"Invalid turn transition: {current.value} -> {target.value}")
        self._dispatch(CommandBatch().add("turns/transitionState", character_id=character_id, to=target.value))

    # Decision phase

    def begin_turn(
        self,
        character_id: str,
        position: Position | str = Position.RISKY,
        effect: Effect | str = Effect.STANDARD,
    ) -> PlayerTurnState:
        self.character(character_id)
        current = self.phase(character_id)
        if current is not TurnPhase.IDLE_WAITING:
            raise StateError(f"Character {character_id} already has a turn in {current.value}")
        self._dispatch(
            CommandBatch().add(
                "turns/beginTurn",
                character_id=character_id,
                position=Position.normalize(position).value,
                effect=Effect.normalize(effect).value,
            )
        )
        logger.info("Turn started", extra={"character_id": character_id})
        return self.turn(character_id)

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
        self._require_decision(character_id)
        self._dispatch(
            CommandBatch().add(
                "turns/setActionPlan",
                character_id=character_id,
                approach=approach,
                secondary_approach=secondary_approach,
                roll_mode=RollMode(roll_mode).value,
                active_equipment_ids=list(active_equipment_ids),
                passive_equipment_id=passive_equipment_id,
            )
        )
        return self.turn(character_id)

    def set_improvements(
        self,
        character_id: str,
        *,
        pushed: bool = False,
        push_type: PushType | str | None = None,
        flashback_applied: bool = False,
    ) -> PlayerTurnState:
        self._require_decision(character_id)
        self._dispatch(
            CommandBatch().add(
                "turns/setImprovements",
                character_id=character_id,
                pushed=bool(pushed),
                push_type=PushType(push_type).value if push_type else None,
                flashback_applied=bool(flashback_applied),
            )
        )
        return self.turn(character_id)

    def set_position(self, character_id: str, position: Position | str) -> PlayerTurnState:
        self._require_decision(character_id)
        self._dispatch(
            CommandBatch().add(
                "turns/setPosition", character_id=character_id, position=Position.normalize(position).value
            )
        )
        return self.turn(character_id)

    def set_effect(self, character_id: str, effect: Effect | str) -> PlayerTurnState:
        self._require_decision(character_id)
        self._dispatch(
            CommandBatch().add("turns/setEffect", character_id=character_id, effect=Effect.normalize(effect).value)
        )
        return self.turn(character_id)

    def set_trait_transaction(self, character_id: str, transaction: Optional[TraitTransaction]) -> PlayerTurnState:
        self._require_decision(character_id)
        if transaction is None:
            self._dispatch(CommandBatch().add("turns/clearTraitTransaction", character_id=character_id))
            return self.turn(character_id)

        result = validate_trait_transaction(self.character(character_id), transaction)
        if not result.is_valid:
            raise StateError(f"Trait transaction rejected: {result.reason}")
        self._dispatch(
            CommandBatch().add(
                "turns/setTraitTransaction", character_id=character_id, transaction=transaction.to_dict()
            )
        )
        return self.turn(character_id)

    def approve(self, character_id: str, approved: bool = True) -> PlayerTurnState:
        self._require_decision(character_id)
        self._dispatch(CommandBatch().add("turns/setGmApproved", character_id=character_id, approved=bool(approved)))
        return self.turn(character_id)

    def _require_decision(self, character_id: str) -> None:
        current = self.phase(character_id)
        if current is not TurnPhase.DECISION_PHASE:
            raise StateError(f"Turn for {character_id} is {current.value}; expected DECISION_PHASE")

    # Rolling

    def dice_pool(self, character_id: str) -> int:
        return calculate_dice_pool(self.character(character_id), self.turn(character_id))

    def validate_roll(self, character_id: str) -> ValidationResult:
        turn = self.store.state.turns.get(character_id)
        if turn is None or turn.phase is not TurnPhase.DECISION_PHASE:
            return ValidationResult.fail("invalid-phase", phase=self.phase(character_id).value)
        if not turn.selected_approach:
            return ValidationResult.fail("no-action-selected")
        if turn.roll_mode is RollMode.SYNERGY and not turn.secondary_approach:
            return ValidationResult.fail("no-action-selected", roll_mode=turn.roll_mode.value)
        if self.config.turn.require_gm_approval and not turn.gm_approved:
            return ValidationResult.fail("gm-approval-required")

        trait_result = validate_trait_transaction(self.character(character_id), turn.trait_transaction)
        if not trait_result.is_valid:
            return trait_result

        cost = momentum_cost(turn, self.config)
        if cost > 0:
            crew = self.store.state.crew_for_character(character_id)
            if crew is None:
                return ValidationResult.fail("no-crew", character_id=character_id)
            if crew.current_momentum < cost:
                return ValidationResult.fail(
                    "insufficient-momentum",
                    required=cost,
                    available=crew.current_momentum,
                )
        return ValidationResult.ok()

    def commit_roll(self, character_id: str) -> RollResult:
        result = self.validate_roll(character_id)
        if not result.is_valid:
            logger.info("Roll rejected", extra={"character_id": character_id, "reason": result.reason})
            if result.reason == "insufficient-momentum":
                raise InsufficientMomentum(result.details["required"], result.details["available"])
            if result.reason == "no-crew":
                raise ConfigurationError(f"Character {character_id} is not assigned to a crew")
            raise StateError(f"Cannot roll for {character_id}: {result.reason}")

        turn = self.turn(character_id)
        character = self.character(character_id)
        batch = CommandBatch()
        cost = momentum_cost(turn, self.config)
        if cost > 0:
            crew = self.store.state.crew_for_character(character_id)
            batch.add("crews/spendMomentum", crew_id=crew.id, amount=cost)
        if turn.trait_transaction is not None:
            batch.extend(
                build_trait_transaction_commands(
                    character,
                    turn.trait_transaction,
                    new_id=self.store.new_id,
                    now=self.store.now(),
                )
            )
        batch.add("turns/transitionState", character_id=character_id, to=TurnPhase.ROLLING.value)
        self._dispatch(batch)

        return self.roll(character_id)

    def roll(self, character_id: str, *, reroll: bool = False) -> RollResult:
        turn = self.turn(character_id)
        if turn.phase is not TurnPhase.ROLLING:
            raise StateError(f"Turn for {character_id} is {turn.phase.value}; expected ROLLING")
        pool = calculate_dice_pool(self.character(character_id), turn)
        result = roll_outcome(pool, self.roller)
        self._dispatch(build_roll_result_commands(character_id, result))
        logger.info(
            "Dice rolled",
            extra={"character_id": character_id, "dice": result.dice, "outcome": result.outcome.value},
        )
        self.store.event_bus.publish(
            DiceRolled(
                character_id=character_id,
                dice_pool=result.dice_pool,
                dice=list(result.dice),
                outcome=result.outcome.value,
                reroll=reroll,
            )
        )
        return result

    # Completion

    def cancel(self, character_id: str) -> None:
        current = self.phase(character_id)
        if current is TurnPhase.IDLE_WAITING:
            return
        if not can_transition(current, TurnPhase.IDLE_WAITING):
            raise StateError(f"Turn for {character_id} cannot be cancelled from {current.value}")
        self._dispatch(
            CommandBatch().add("turns/transitionState", character_id=character_id, to=TurnPhase.IDLE_WAITING.value)
        )
        logger.info("Turn cancelled", extra={"character_id": character_id, "from": current.value})

    def complete(self, character_id: str) -> None:
        current = self.phase(character_id)
        if current not in (TurnPhase.APPLYING_EFFECTS, TurnPhase.SUCCESS_COMPLETE, TurnPhase.TURN_COMPLETE):
            raise StateError(f"Turn for {character_id} cannot complete from {current.value}")
        batch = CommandBatch()
        if current is not TurnPhase.TURN_COMPLETE:
            batch.add("turns/transitionState", character_id=character_id, to=TurnPhase.TURN_COMPLETE.value)
        batch.add("turns/transitionState", character_id=character_id, to=TurnPhase.IDLE_WAITING.value)
        self._dispatch(batch)
        logger.info("Turn completed", extra={"character_id": character_id})
