from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Dict, Iterable

from fitgd.application.config import DEFAULT_CONFIG, GameConfig
from fitgd.domain.errors import (
    ConfigurationError,
    InsufficientMomentum,
    RallyUnavailable,
    StateError,
    UnknownCommandError,
)
from fitgd.domain.models.character import Character, Trait
from fitgd.domain.models.clock import Clock
from fitgd.domain.models.command import Command
from fitgd.domain.models.crew import Crew
from fitgd.domain.models.game_state import GameState
from fitgd.domain.models.ladder import Effect, Position
from fitgd.domain.models.turn_state import (
    ConsequenceTransaction,
    PlayerTurnState,
    PushType,
    RollMode,
    RollOutcome,
    TraitTransaction,
    TurnPhase,
    can_transition,
)

logger = logging.getLogger(__name__)

Reducer = Callable[[GameState, Dict[str, Any], GameConfig], None]

_REDUCERS: Dict[str, Reducer] = {}


def reducer(command_type: str) -> Callable[[Reducer], Reducer]:
    def _register(handler: Reducer) -> Reducer:
        _REDUCERS[command_type] = handler
        return handler

    return _register


def registered_command_types() -> list[str]:
    return sorted(_REDUCERS)


def apply_command(state: GameState, command: Command, config: GameConfig = DEFAULT_CONFIG) -> None:
    """Apply one command to ``state`` in place."""
    handler = _REDUCERS.get(command.type)
    if handler is None:
        raise UnknownCommandError(command.type)
    handler(state, dict(command.payload or {}), config)


def apply_batch(state: GameState, commands: Iterable[Command], config: GameConfig = DEFAULT_CONFIG) -> GameState:
    """Return a new state with every command applied; ``state`` is left untouched on failure."""
    working = copy.deepcopy(state)
    applied = 0
    for command in commands:
        apply_command(working, command, config)
        applied += 1
    logger.debug("Applied command batch", extra={"command_count": applied})
    return working


def _require_character(state: GameState, character_id: Any) -> Character:
    character = state.characters.get(str(character_id or ""))
    if character is None:
        raise ConfigurationError(f"Unknown character: {character_id}")
    return character


def _require_crew(state: GameState, crew_id: Any) -> Crew:
    crew = state.crews.get(str(crew_id or ""))
    if crew is None:
        raise ConfigurationError(f"Unknown crew: {crew_id}")
    return crew


def _require_clock(state: GameState, clock_id: Any) -> Clock:
    clock = state.clocks.get(str(clock_id or ""))
    if clock is None:
        raise ConfigurationError(f"Unknown clock: {clock_id}")
    return clock


def _require_turn(state: GameState, character_id: Any) -> PlayerTurnState:
    turn = state.turns.get(str(character_id or ""))
    if turn is None:
        raise StateError(f"No active turn for character {character_id}")
    return turn


def _require_phase(turn: PlayerTurnState, *phases: TurnPhase) -> None:
    if turn.phase not in phases:
        allowed = ", ".join(phase.value for phase in phases)
        raise StateError(f"Turn for {turn.character_id} is {turn.phase.value}; expected {allowed}")


def assert_transition(current: TurnPhase, target: TurnPhase) -> None:
    if not can_transition(current, target):
        raise StateError(f"Invalid turn transition: {current.value} -> {target.value}")


def _clamp_momentum(value: int, config: GameConfig) -> int:
    return max(config.crew.min_momentum, min(config.crew.max_momentum, int(value)))


def _amount(payload: Dict[str, Any], key: str = "amount") -> int:
    value = int(payload.get(key, 0) or 0)
    if value < 0:
        raise ValueError(f"{key} must not be negative")
    return value


# characters/


@reducer("characters/createCharacter")
def _create_character(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    character = Character.from_dict(payload)
    if character.id in state.characters:
        raise StateError(f"Character already exists: {character.id}")
    state.characters[character.id] = character


@reducer("characters/addTrait")
def _add_trait(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    character = _require_character(state, payload.get("character_id"))
    trait = Trait.from_dict(payload["trait"])
    if character.find_trait(trait.id) is not None:
        raise StateError(f"Trait already exists: {trait.id}")
    character.traits.append(trait)


@reducer("characters/removeTrait")
def _remove_trait(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    character = _require_character(state, payload.get("character_id"))
    trait_id = str(payload.get("trait_id", ""))
    if character.find_trait(trait_id) is None:
        raise StateError(f"Trait not found: {trait_id}")
    character.traits = [trait for trait in character.traits if trait.id != trait_id]


def _set_trait_disabled(state: GameState, payload: Dict[str, Any], disabled: bool) -> None:
    character = _require_character(state, payload.get("character_id"))
    trait = character.find_trait(str(payload.get("trait_id", "")))
    if trait is None:
        raise StateError(f"Trait not found: {payload.get('trait_id')}")
    trait.disabled = disabled


@reducer("characters/disableTrait")
def _disable_trait(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    _set_trait_disabled(state, payload, True)


@reducer("characters/enableTrait")
def _enable_trait(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    _set_trait_disabled(state, payload, False)


@reducer("characters/useRally")
def _use_rally(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    character = _require_character(state, payload.get("character_id"))
    if not character.rally_available:
        raise RallyUnavailable(f"Rally already used by {character.id}")
    character.rally_available = False


@reducer("characters/deleteCharacter")
def _delete_character(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    character_id = str(payload.get("character_id", ""))
    state.characters.pop(character_id, None)
    state.turns.pop(character_id, None)
    for crew in state.crews.values():
        if character_id in crew.characters:
            crew.characters.remove(character_id)
    for clock_id in [clock.id for clock in state.clocks_for_owner(character_id)]:
        state.clocks.pop(clock_id, None)


# crews/


@reducer("crews/createCrew")
def _create_crew(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    crew_id = str(payload["id"])
    if crew_id in state.crews:
        raise StateError(f"Crew already exists: {crew_id}")
    momentum = payload.get("current_momentum")
    state.crews[crew_id] = Crew(
        id=crew_id,
        name=str(payload.get("name", "")),
        characters=[str(value) for value in payload.get("characters") or []],
        current_momentum=_clamp_momentum(
            config.crew.starting_momentum if momentum is None else momentum,
            config,
        ),
    )


@reducer("crews/addCharacterToCrew")
def _add_character_to_crew(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    crew = _require_crew(state, payload.get("crew_id"))
    character = _require_character(state, payload.get("character_id"))
    other = state.crew_for_character(character.id)
    if other is not None and other.id != crew.id:
        raise StateError(f"Character {character.id} already belongs to crew {other.id}")
    if not crew.has_member(character.id):
        crew.characters.append(character.id)


@reducer("crews/removeCharacterFromCrew")
def _remove_character_from_crew(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    crew = _require_crew(state, payload.get("crew_id"))
    character_id = str(payload.get("character_id", ""))
    if character_id in crew.characters:
        crew.characters.remove(character_id)


@reducer("crews/setMomentum")
def _set_momentum(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    crew = _require_crew(state, payload.get("crew_id"))
    crew.current_momentum = _clamp_momentum(int(payload.get("amount", 0) or 0), config)


@reducer("crews/addMomentum")
def _add_momentum(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    crew = _require_crew(state, payload.get("crew_id"))
    crew.current_momentum = _clamp_momentum(crew.current_momentum + _amount(payload), config)


@reducer("crews/spendMomentum")
def _spend_momentum(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    crew = _require_crew(state, payload.get("crew_id"))
    amount = _amount(payload)
    if amount > crew.current_momentum:
        raise InsufficientMomentum(amount, crew.current_momentum)
    crew.current_momentum -= amount


@reducer("crews/resetMomentum")
def _reset_momentum(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    crew = _require_crew(state, payload.get("crew_id"))
    crew.current_momentum = _clamp_momentum(config.crew.starting_momentum, config)
    for character_id in crew.characters:
        character = state.characters.get(character_id)
        if character is not None:
            character.rally_available = True


@reducer("crews/deleteCrew")
def _delete_crew(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    crew_id = str(payload.get("crew_id", ""))
    state.crews.pop(crew_id, None)
    for clock_id in [clock.id for clock in state.clocks_for_owner(crew_id)]:
        state.clocks.pop(clock_id, None)


# clocks/


@reducer("clocks/createClock")
def _create_clock(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    clock = Clock.from_dict(payload)
    if clock.id in state.clocks:
        raise StateError(f"Clock already exists: {clock.id}")
    state.clocks[clock.id] = clock


@reducer("clocks/addSegments")
def _add_segments(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    clock = _require_clock(state, payload.get("clock_id"))
    clock.segments = min(clock.max_segments, clock.segments + _amount(payload))


@reducer("clocks/clearSegments")
def _clear_segments(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    clock = _require_clock(state, payload.get("clock_id"))
    clock.segments = max(0, clock.segments - _amount(payload))


@reducer("clocks/setSegments")
def _set_segments(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    clock = _require_clock(state, payload.get("clock_id"))
    clock.segments = max(0, min(clock.max_segments, int(payload.get("segments", 0) or 0)))


@reducer("clocks/changeSubtype")
def _change_subtype(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    clock = _require_clock(state, payload.get("clock_id"))
    clock.subtype = str(payload.get("subtype", "") or "")


@reducer("clocks/deleteClock")
def _delete_clock(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    state.clocks.pop(str(payload.get("clock_id", "")), None)


# turns/


@reducer("turns/beginTurn")
def _begin_turn(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    character = _require_character(state, payload.get("character_id"))
    existing = state.turns.get(character.id)
    if existing is not None and existing.phase is not TurnPhase.IDLE_WAITING:
        raise StateError(f"Character {character.id} already has a turn in {existing.phase.value}")
    assert_transition(TurnPhase.IDLE_WAITING, TurnPhase.DECISION_PHASE)
    state.turns[character.id] = PlayerTurnState(
        character_id=character.id,
        phase=TurnPhase.DECISION_PHASE,
        position=Position.normalize(payload.get("position", Position.RISKY.value)),
        effect=Effect.normalize(payload.get("effect", Effect.STANDARD.value)),
    )


@reducer("turns/setActionPlan")
def _set_action_plan(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    turn = _require_turn(state, payload.get("character_id"))
    _require_phase(turn, TurnPhase.DECISION_PHASE)
    turn.selected_approach = payload.get("approach") or None
    turn.secondary_approach = payload.get("secondary_approach") or None
    turn.roll_mode = RollMode(payload.get("roll_mode", RollMode.STANDARD.value))
    turn.active_equipment_ids = [str(value) for value in payload.get("active_equipment_ids") or []]
    turn.passive_equipment_id = payload.get("passive_equipment_id") or None


@reducer("turns/setImprovements")
def _set_improvements(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    turn = _require_turn(state, payload.get("character_id"))
    _require_phase(turn, TurnPhase.DECISION_PHASE)
    turn.pushed = bool(payload.get("pushed", False))
    push_type = payload.get("push_type")
    turn.push_type = PushType(push_type) if turn.pushed and push_type else None
    if turn.pushed and turn.push_type is None:
        turn.push_type = PushType.EXTRA_DIE
    turn.flashback_applied = bool(payload.get("flashback_applied", False))


@reducer("turns/setPosition")
def _set_position(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    turn = _require_turn(state, payload.get("character_id"))
    _require_phase(turn, TurnPhase.DECISION_PHASE)
    turn.position = Position.normalize(payload.get("position"))


@reducer("turns/setEffect")
def _set_effect(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    turn = _require_turn(state, payload.get("character_id"))
    _require_phase(turn, TurnPhase.DECISION_PHASE)
    turn.effect = Effect.normalize(payload.get("effect"))


@reducer("turns/setTraitTransaction")
def _set_trait_transaction(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    turn = _require_turn(state, payload.get("character_id"))
    _require_phase(turn, TurnPhase.DECISION_PHASE)
    turn.trait_transaction = TraitTransaction.from_dict(payload["transaction"])


@reducer("turns/clearTraitTransaction")
def _clear_trait_transaction(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    _require_turn(state, payload.get("character_id")).trait_transaction = None


@reducer("turns/setGmApproved")
def _set_gm_approved(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    turn = _require_turn(state, payload.get("character_id"))
    _require_phase(turn, TurnPhase.DECISION_PHASE)
    turn.gm_approved = bool(payload.get("approved", True))


@reducer("turns/setRollResult")
def _set_roll_result(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    turn = _require_turn(state, payload.get("character_id"))
    _require_phase(turn, TurnPhase.ROLLING)
    turn.dice_pool = int(payload.get("dice_pool", 0) or 0)
    turn.roll_result = [int(value) for value in payload.get("dice") or []]
    turn.outcome = RollOutcome(payload["outcome"])


@reducer("turns/setConsequenceTransaction")
def _set_consequence_transaction(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    turn = _require_turn(state, payload.get("character_id"))
    _require_phase(turn, TurnPhase.GM_RESOLVING_CONSEQUENCE, TurnPhase.SUCCESS_COMPLETE)
    turn.consequence_transaction = ConsequenceTransaction.from_dict(payload["transaction"])


@reducer("turns/clearConsequenceTransaction")
def _clear_consequence_transaction(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    _require_turn(state, payload.get("character_id")).consequence_transaction = None


@reducer("turns/markStimsUsed")
def _mark_stims_used(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    turn = _require_turn(state, payload.get("character_id"))
    _require_phase(turn, TurnPhase.GM_RESOLVING_CONSEQUENCE)
    if turn.stims_used_this_action:
        raise StateError(f"Stims already used this turn by {turn.character_id}")
    turn.stims_used_this_action = True


@reducer("turns/transitionState")
def _transition_state(state: GameState, payload: Dict[str, Any], config: GameConfig) -> None:
    turn = _require_turn(state, payload.get("character_id"))
    target = TurnPhase(payload["to"])
    assert_transition(turn.phase, target)

    if turn.phase is TurnPhase.DECISION_PHASE and target is TurnPhase.ROLLING and not turn.selected_approach:
        raise StateError("Cannot roll without a selected approach")
    if target is TurnPhase.APPLYING_EFFECTS:
        transaction = turn.consequence_transaction
        if transaction is None:
            raise StateError("Cannot apply effects without a consequence transaction")
        missing = transaction.missing_reason()
        if missing:
            raise StateError(f"Consequence transaction is not ready: {missing}")

    if target is TurnPhase.IDLE_WAITING:
        state.turns.pop(turn.character_id, None)
        return
    turn.phase = target

