from __future__ import annotations

from typing import Callable, List, Optional

from fitgd.application.services.clock_service import is_character_dying
from fitgd.application.services.event_bus import EventBus
from fitgd.domain.errors import ValidationResult
from fitgd.domain.events import (
    ClockFilled,
    ConsequenceApplied,
    LeanedIntoTrait,
    Notification,
    RallyUsed,
    StimsUsed,
)
from fitgd.domain.models.clock import ClockType
from fitgd.domain.models.game_state import GameState

REJECTION_MESSAGES = {
    "invalid-phase": "That action is not available in the current turn phase.",
    "no-action-selected": "Choose an approach before rolling.",
    "gm-approval-required": "The GM has not approved this roll yet.",
    "insufficient-momentum": "The crew does not have enough momentum.",
    "no-crew": "This character is not part of a crew.",
    "already-used": "Stims were already used on this action.",
    "team-addiction-locked": "Stims are locked: someone in the crew is fully addicted.",
    "rally-unavailable": "Rally is only available at low momentum, once per reset.",
    "no-available-traits": "No suitable trait is available.",
    "no-consequence": "No consequence has been configured.",
    "missing-harm-target": "Pick who takes the harm.",
    "missing-harm-clock": "Pick a harm clock.",
    "missing-crew-clock": "Pick a crew clock.",
    "missing-success-clock": "Pick a clock to advance.",
    "defensive-success-unavailable": "Defensive success needs a partial roll at better than limited effect.",
    "invalid-trait-transaction": "The trait choice is incomplete.",
}


def _name(state: Optional[GameState], entity_id: str) -> str:
    if state is None:
        return entity_id
    character = state.characters.get(entity_id)
    if character is not None:
        return character.name
    crew = state.crews.get(entity_id)
    if crew is not None:
        return crew.name
    return entity_id


def rejected_notification(result: ValidationResult, action: str = "Action") -> Notification:
    reason = result.reason or "unknown"
    return Notification(
        level="warning",
        title=f"{action} rejected",
        message=REJECTION_MESSAGES.get(reason, reason),
        reason=reason,
        context=dict(result.details),
    )


def stims_notification(event: StimsUsed, state: Optional[GameState] = None) -> Notification:
    name = _name(state, event.character_id)
    if event.locked:
        return Notification(
            level="error",
            title="Addiction",
            message=f"{name} rolled {event.addiction_roll} on the addiction clock and is now an Addict. "
            "Stims are locked for the crew.",
            reason="team-addiction-locked",
            context={"character_id": event.character_id, "crew_id": event.crew_id},
        )
    return Notification(
        level="info",
        title="Stims used",
        message=f"{name} took stims (+{event.addiction_roll} addiction) and rerolls.",
        context={"character_id": event.character_id, "clock_id": event.addiction_clock_id},
    )


def consequence_notification(event: ConsequenceApplied, state: Optional[GameState] = None) -> Notification:
    name = _name(state, event.character_id)
    if event.consequence_type == "success-clock":
        message = f"{name} advanced a clock by {event.segments}."
    elif event.segments == 0:
        message = f"{name} avoided the consequence."
    else:
        message = f"{name} suffered {event.segments} segment(s) of {event.consequence_type}."
    if event.momentum_gain:
        message += f" Crew gains {event.momentum_gain} momentum."
    return Notification(
        level="info",
        title="Consequence applied",
        message=message,
        context={"character_id": event.character_id, "clock_id": event.clock_id},
    )


def rally_notification(event: RallyUsed, state: Optional[GameState] = None) -> Notification:
    message = f"{_name(state, event.character_id)} rallied the crew, spending {event.momentum_spent} momentum."
    if event.re_enabled_trait_id:
        message += " A trait was re-enabled."
    return Notification(
        level="info",
        title="Rally",
        message=message,
        context={"crew_id": event.crew_id, "momentum": event.new_momentum},
    )


def lean_notification(event: LeanedIntoTrait, state: Optional[GameState] = None) -> Notification:
    return Notification(
        level="info",
        title="Leaning into trait",
        message=f"{_name(state, event.character_id)} leans into a trait; crew gains {event.momentum_gain} momentum.",
        context={"crew_id": event.crew_id, "trait_id": event.trait_id},
    )


def clock_filled_notification(event: ClockFilled, state: Optional[GameState] = None) -> Optional[Notification]:
    name = _name(state, event.owner_id)
    if event.clock_type == ClockType.HARM.value:
        return Notification(
            level="warning",
            title="Harm clock filled",
            message=f"{name}'s {event.subtype or 'harm'} clock is full.",
            context={"clock_id": event.clock_id, "character_id": event.owner_id},
        )
    return None


def dying_notification(state: GameState, character_id: str) -> Notification:
    return Notification(
        level="error",
        title="Dying",
        message=f"{_name(state, character_id)} has a full harm clock and is dying.",
        context={"character_id": character_id},
    )


def register_notification_handlers(
    event_bus: EventBus,
    *,
    state_provider: Callable[[], GameState] | None = None,
    sink: Callable[[Notification], None] | None = None,
) -> List[Notification]:
    """Publish a Notification for each player-facing domain event.

    Returns the list that also collects every notification emitted.
    """
    collected: List[Notification] = []

    def _emit(notification: Optional[Notification]) -> None:
        if notification is None:
            return
        collected.append(notification)
        if sink is not None:
            sink(notification)
        event_bus.publish(notification)

    def _state() -> Optional[GameState]:
        return state_provider() if state_provider is not None else None

    def _on_stims(event: StimsUsed) -> None:
        _emit(stims_notification(event, _state()))

    def _on_consequence(event: ConsequenceApplied) -> None:
        _emit(consequence_notification(event, _state()))

    def _on_rally(event: RallyUsed) -> None:
        _emit(rally_notification(event, _state()))

    def _on_lean(event: LeanedIntoTrait) -> None:
        _emit(lean_notification(event, _state()))

    def _on_clock_filled(event: ClockFilled) -> None:
        state = _state()
        _emit(clock_filled_notification(event, state))
        if state is not None and event.clock_type == ClockType.HARM.value:
            if is_character_dying(state, event.owner_id):
                _emit(dying_notification(state, event.owner_id))

    event_bus.subscribe(StimsUsed, _on_stims, priority=200)
    event_bus.subscribe(ConsequenceApplied, _on_consequence, priority=200)
    event_bus.subscribe(RallyUsed, _on_rally, priority=200)
    event_bus.subscribe(LeanedIntoTrait, _on_lean, priority=200)
    event_bus.subscribe(ClockFilled, _on_clock_filled, priority=200)
    return collected
