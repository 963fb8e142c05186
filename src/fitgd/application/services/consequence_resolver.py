from __future__ import annotations

import logging
from typing import Optional

from fitgd.application.config import DEFAULT_CONFIG, GameConfig
from fitgd.application.dtos import CommandBatch, ConsequencePreview, DefensiveSuccessValues
from fitgd.application.services.clock_service import (
    ClockService,
    build_add_segments,
    find_harm_clock,
    is_character_dying,
)
from fitgd.application.services.game_store import GameStore
from fitgd.application.services.momentum_service import momentum_gain
from fitgd.domain.errors import ConfigurationError, StateError, ValidationResult
from fitgd.domain.events import ConsequenceApplied
from fitgd.domain.models.clock import ClockType
from fitgd.domain.models.game_state import GameState
from fitgd.domain.models.ladder import Effect, Position, improve_position, worsen_effect
from fitgd.domain.models.turn_state import (
    ConsequenceTransaction,
    ConsequenceType,
    PlayerTurnState,
    RollOutcome,
    TurnPhase,
)

logger = logging.getLogger(__name__)


def consequence_severity(position: Position | str, config: GameConfig = DEFAULT_CONFIG) -> int:
    return int(config.resolution.consequence_segments[Position.normalize(position)])


def success_clock_progress(
    position: Position | str,
    effect: Effect | str,
    config: GameConfig = DEFAULT_CONFIG,
) -> int:
    base = config.resolution.success_clock_base[Position.normalize(position)]
    modifier = config.resolution.success_clock_effect_modifier[Effect.normalize(effect)]
    return max(0, int(base) + int(modifier))


def is_defensive_success_available(outcome: Optional[RollOutcome], effect: Effect | str) -> bool:
    return outcome is RollOutcome.PARTIAL and Effect.normalize(effect) is not Effect.LIMITED


def calculate_defensive_success(
    position: Position | str,
    effect: Effect | str,
    outcome: Optional[RollOutcome],
    config: GameConfig = DEFAULT_CONFIG,
) -> DefensiveSuccessValues:
    position = Position.normalize(position)
    effect = Effect.normalize(effect)
    original_segments = consequence_severity(position, config)
    gain = momentum_gain(position, config)

    if not is_defensive_success_available(outcome, effect):
        return DefensiveSuccessValues(
            available=False,
            original_position=position,
            defensive_position=None,
            original_effect=effect,
            defensive_effect=None,
            defensive_segments=0,
            original_segments=original_segments,
            momentum_gain=gain,
        )

    # Already controlled means the consequence is avoided entirely.
    defensive_position = None if position is Position.CONTROLLED else improve_position(position)
    defensive_effect = worsen_effect(effect)
    return DefensiveSuccessValues(
        available=True,
        original_position=position,
        defensive_position=defensive_position,
        original_effect=effect,
        defensive_effect=defensive_effect,
        defensive_segments=consequence_severity(defensive_position, config) if defensive_position else 0,
        original_segments=original_segments,
        momentum_gain=gain,
    )


def validate_consequence_transaction(state: GameState, turn: PlayerTurnState) -> ValidationResult:
    transaction = turn.consequence_transaction
    if turn.phase not in (TurnPhase.GM_RESOLVING_CONSEQUENCE, TurnPhase.SUCCESS_COMPLETE):
        return ValidationResult.fail("invalid-phase", phase=turn.phase.value)
    if transaction is None:
        return ValidationResult.fail("no-consequence")

    missing = transaction.missing_reason()
    if missing:
        return ValidationResult.fail(missing, consequence_type=transaction.consequence_type.value)

    if turn.phase is TurnPhase.SUCCESS_COMPLETE and transaction.consequence_type is not ConsequenceType.SUCCESS_CLOCK:
        return ValidationResult.fail("invalid-phase", phase=turn.phase.value)

    if transaction.consequence_type is ConsequenceType.HARM:
        if transaction.harm_target_character_id not in state.characters:
            return ValidationResult.fail("missing-harm-target", character_id=transaction.harm_target_character_id)
        clock = state.clocks.get(transaction.harm_clock_id or "")
        if clock is None or clock.clock_type is not ClockType.HARM:
            return ValidationResult.fail("missing-harm-clock", clock_id=transaction.harm_clock_id)
    elif transaction.consequence_type is ConsequenceType.CREW_CLOCK:
        if transaction.crew_clock_id not in state.clocks:
            return ValidationResult.fail("missing-crew-clock", clock_id=transaction.crew_clock_id)
    elif transaction.success_clock_id not in state.clocks:
        return ValidationResult.fail("missing-success-clock", clock_id=transaction.success_clock_id)

    if transaction.use_defensive_success and not is_defensive_success_available(turn.outcome, turn.effective_effect):
        return ValidationResult.fail("defensive-success-unavailable", outcome=turn.outcome and turn.outcome.value)
    return ValidationResult.ok()


def preview_consequence(turn: PlayerTurnState, config: GameConfig = DEFAULT_CONFIG) -> ConsequencePreview:
    transaction = turn.consequence_transaction
    if transaction is None:
        raise StateError(f"No consequence transaction for {turn.character_id}")

    position = turn.effective_position
    effect = turn.effective_effect
    if transaction.consequence_type is ConsequenceType.SUCCESS_CLOCK:
        return ConsequencePreview(
            consequence_type=transaction.consequence_type.value,
            clock_id=transaction.target_clock_id or "",
            segments=success_clock_progress(position, effect, config),
            momentum_gain=0,
        )

    if transaction.use_defensive_success:
        values = calculate_defensive_success(position, effect, turn.outcome, config)
        return ConsequencePreview(
            consequence_type=transaction.consequence_type.value,
            clock_id=transaction.target_clock_id or "",
            segments=values.defensive_segments,
            momentum_gain=values.momentum_gain,
            defensive=True,
        )

    return ConsequencePreview(
        consequence_type=transaction.consequence_type.value,
        clock_id=transaction.target_clock_id or "",
        segments=consequence_severity(position, config),
        momentum_gain=momentum_gain(position, config),
    )


def build_consequence_application(
    state: GameState,
    turn: PlayerTurnState,
    config: GameConfig = DEFAULT_CONFIG,
) -> tuple[CommandBatch, ConsequencePreview]:
    """Single batch: enter APPLYING_EFFECTS, advance the clock, grant momentum, clear the transaction."""
    preview = preview_consequence(turn, config)
    batch = CommandBatch().add("turns/transitionState", character_id=turn.character_id, to=TurnPhase.APPLYING_EFFECTS.value)
    if preview.segments > 0:
        batch.extend(build_add_segments(preview.clock_id, preview.segments))
    if preview.momentum_gain > 0:
        crew = state.crew_for_character(turn.character_id)
        if crew is None:
            raise ConfigurationError(f"Character {turn.character_id} is not assigned to a crew")
        batch.add("crews/addMomentum", crew_id=crew.id, amount=preview.momentum_gain)
    batch.add("turns/clearConsequenceTransaction", character_id=turn.character_id)
    return batch, preview


class ConsequenceResolver:
    def __init__(self, store: GameStore, clocks: ClockService) -> None:
        self.store = store
        self.clocks = clocks

    @property
    def config(self) -> GameConfig:
        return self.store.config

    def _turn(self, character_id: str) -> PlayerTurnState:
        turn = self.store.state.turns.get(character_id)
        if turn is None:
            raise StateError(f"No active turn for character {character_id}")
        return turn

    def require_configurable(self, character_id: str) -> PlayerTurnState:
        turn = self._turn(character_id)
        allowed = (TurnPhase.GM_RESOLVING_CONSEQUENCE, TurnPhase.SUCCESS_COMPLETE)
        if turn.phase not in allowed:
            raise StateError(
                f"Turn for {character_id} is {turn.phase.value}; expected "
                + ", ".join(phase.value for phase in allowed)
            )
        return turn

    def ensure_harm_clock(self, character_id: str, subtype: str) -> str:
        existing = find_harm_clock(self.store.state, character_id, subtype)
        if existing is not None:
            return existing.id
        return self.clocks.create_clock(character_id, ClockType.HARM, subtype).id

    def set_transaction(self, character_id: str, transaction: ConsequenceTransaction) -> PlayerTurnState:
        self._turn(character_id)
        self.store.dispatch(
            CommandBatch()
            .add(
                "turns/setConsequenceTransaction",
                character_id=character_id,
                transaction=transaction.to_dict(),
            )
            .commands
        )
        return self._turn(character_id)

    def validate(self, character_id: str) -> ValidationResult:
        return validate_consequence_transaction(self.store.state, self._turn(character_id))

    def defensive_success(self, character_id: str) -> DefensiveSuccessValues:
        turn = self._turn(character_id)
        return calculate_defensive_success(turn.effective_position, turn.effective_effect, turn.outcome, self.config)

    def apply(self, character_id: str) -> ConsequencePreview:
        turn = self._turn(character_id)
        result = validate_consequence_transaction(self.store.state, turn)
        if not result.is_valid:
            logger.info(
                "Consequence rejected",
                extra={"character_id": character_id, "reason": result.reason},
            )
            raise StateError(f"Consequence transaction is not valid: {result.reason}")

        transaction = turn.consequence_transaction
        batch, preview = build_consequence_application(self.store.state, turn, self.config)
        self.store.dispatch(batch.commands)

        self.store.event_bus.publish(
            ConsequenceApplied(
                character_id=character_id,
                consequence_type=preview.consequence_type,
                clock_id=preview.clock_id,
                segments=preview.segments,
                momentum_gain=preview.momentum_gain,
            )
        )
        if transaction is not None and transaction.consequence_type is ConsequenceType.HARM:
            target = transaction.harm_target_character_id or character_id
            if is_character_dying(self.store.state, target):
                logger.info("Character is dying", extra={"character_id": target})
        return preview
