from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from fitgd.domain.models.ladder import Effect, Position, improve_effect, improve_position


class TurnPhase(str, Enum):
    IDLE_WAITING = "IDLE_WAITING"
    DECISION_PHASE = "DECISION_PHASE"
    ROLLING = "ROLLING"
    SUCCESS_COMPLETE = "SUCCESS_COMPLETE"
    GM_RESOLVING_CONSEQUENCE = "GM_RESOLVING_CONSEQUENCE"
    APPLYING_EFFECTS = "APPLYING_EFFECTS"
    TURN_COMPLETE = "TURN_COMPLETE"
    STIMS_ROLLING = "STIMS_ROLLING"
    STIMS_LOCKED = "STIMS_LOCKED"


class RollMode(str, Enum):
    STANDARD = "standard"
    SYNERGY = "synergy"


class PushType(str, Enum):
    EXTRA_DIE = "extra-die"
    IMPROVED_EFFECT = "improved-effect"


class RollOutcome(str, Enum):
    CRITICAL = "critical"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"

    @property
    def is_success(self) -> bool:
        return self in (RollOutcome.CRITICAL, RollOutcome.SUCCESS)


class ConsequenceType(str, Enum):
    HARM = "harm"
    CREW_CLOCK = "crew-clock"
    SUCCESS_CLOCK = "success-clock"


class TraitTransactionMode(str, Enum):
    EXISTING = "existing"
    NEW = "new"
    CONSOLIDATE = "consolidate"


TURN_TRANSITIONS: dict[TurnPhase, frozenset[TurnPhase]] = {
    TurnPhase.IDLE_WAITING: frozenset({TurnPhase.DECISION_PHASE}),
    TurnPhase.DECISION_PHASE: frozenset({TurnPhase.ROLLING, TurnPhase.IDLE_WAITING}),
    TurnPhase.ROLLING: frozenset({TurnPhase.SUCCESS_COMPLETE, TurnPhase.GM_RESOLVING_CONSEQUENCE}),
    TurnPhase.SUCCESS_COMPLETE: frozenset({TurnPhase.APPLYING_EFFECTS, TurnPhase.TURN_COMPLETE}),
    TurnPhase.GM_RESOLVING_CONSEQUENCE: frozenset(
        {
            TurnPhase.APPLYING_EFFECTS,
            TurnPhase.STIMS_ROLLING,
            TurnPhase.STIMS_LOCKED,
            TurnPhase.IDLE_WAITING,
        }
    ),
    TurnPhase.STIMS_ROLLING: frozenset({TurnPhase.ROLLING, TurnPhase.STIMS_LOCKED}),
    TurnPhase.STIMS_LOCKED: frozenset({TurnPhase.GM_RESOLVING_CONSEQUENCE, TurnPhase.IDLE_WAITING}),
    TurnPhase.APPLYING_EFFECTS: frozenset({TurnPhase.TURN_COMPLETE}),
    TurnPhase.TURN_COMPLETE: frozenset({TurnPhase.IDLE_WAITING}),
}

# Abandoning a turn is allowed anywhere before effects start applying.
CANCELLABLE_PHASES = frozenset(
    {
        TurnPhase.DECISION_PHASE,
        TurnPhase.ROLLING,
        TurnPhase.SUCCESS_COMPLETE,
        TurnPhase.GM_RESOLVING_CONSEQUENCE,
        TurnPhase.STIMS_ROLLING,
        TurnPhase.STIMS_LOCKED,
    }
)


def can_transition(current: TurnPhase, target: TurnPhase) -> bool:
    if target is TurnPhase.IDLE_WAITING and current in CANCELLABLE_PHASES:
        return True
    return target in TURN_TRANSITIONS.get(current, frozenset())


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class TraitTransaction:
    mode: TraitTransactionMode
    selected_trait_id: Optional[str] = None
    new_trait_name: Optional[str] = None
    new_trait_description: str = ""
    trait_ids_to_remove: List[str] = field(default_factory=list)
    position_improvement: bool = True
    momentum_cost: Optional[int] = None

    def __post_init__(self) -> None:
        self.mode = TraitTransactionMode(self.mode)
        self.trait_ids_to_remove = [str(value) for value in self.trait_ids_to_remove or []]

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "selected_trait_id": self.selected_trait_id,
            "new_trait_name": self.new_trait_name,
            "new_trait_description": self.new_trait_description,
            "trait_ids_to_remove": list(self.trait_ids_to_remove),
            "position_improvement": bool(self.position_improvement),
            "momentum_cost": self.momentum_cost,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "TraitTransaction":
        return cls(
            mode=TraitTransactionMode(payload["mode"]),
            selected_trait_id=_optional_str(payload.get("selected_trait_id")),
            new_trait_name=_optional_str(payload.get("new_trait_name")),
            new_trait_description=str(payload.get("new_trait_description", "") or ""),
            trait_ids_to_remove=list(payload.get("trait_ids_to_remove") or []),
            position_improvement=bool(payload.get("position_improvement", True)),
            momentum_cost=None if payload.get("momentum_cost") is None else int(payload["momentum_cost"]),
        )


@dataclass
class ConsequenceTransaction:
    consequence_type: ConsequenceType
    harm_target_character_id: Optional[str] = None
    harm_clock_id: Optional[str] = None
    crew_clock_id: Optional[str] = None
    success_clock_id: Optional[str] = None
    use_defensive_success: bool = False

    def __post_init__(self) -> None:
        self.consequence_type = ConsequenceType(self.consequence_type)

    def missing_reason(self) -> Optional[str]:
        if self.consequence_type is ConsequenceType.HARM:
            if not self.harm_target_character_id:
                return "missing-harm-target"
            if not self.harm_clock_id:
                return "missing-harm-clock"
        elif self.consequence_type is ConsequenceType.CREW_CLOCK:
            if not self.crew_clock_id:
                return "missing-crew-clock"
        elif not self.success_clock_id:
            return "missing-success-clock"
        return None

    @property
    def target_clock_id(self) -> Optional[str]:
        if self.consequence_type is ConsequenceType.HARM:
            return self.harm_clock_id
        if self.consequence_type is ConsequenceType.CREW_CLOCK:
            return self.crew_clock_id
        return self.success_clock_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "consequence_type": self.consequence_type.value,
            "harm_target_character_id": self.harm_target_character_id,
            "harm_clock_id": self.harm_clock_id,
            "crew_clock_id": self.crew_clock_id,
            "success_clock_id": self.success_clock_id,
            "use_defensive_success": bool(self.use_defensive_success),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ConsequenceTransaction":
        return cls(
            consequence_type=ConsequenceType(payload["consequence_type"]),
            harm_target_character_id=_optional_str(payload.get("harm_target_character_id")),
            harm_clock_id=_optional_str(payload.get("harm_clock_id")),
            crew_clock_id=_optional_str(payload.get("crew_clock_id")),
            success_clock_id=_optional_str(payload.get("success_clock_id")),
            use_defensive_success=bool(payload.get("use_defensive_success", False)),
        )


@dataclass
class PlayerTurnState:
    character_id: str
    phase: TurnPhase = TurnPhase.DECISION_PHASE
    selected_approach: Optional[str] = None
    secondary_approach: Optional[str] = None
    roll_mode: RollMode = RollMode.STANDARD
    position: Position = Position.RISKY
    effect: Effect = Effect.STANDARD
    pushed: bool = False
    push_type: Optional[PushType] = None
    flashback_applied: bool = False
    trait_transaction: Optional[TraitTransaction] = None
    active_equipment_ids: List[str] = field(default_factory=list)
    passive_equipment_id: Optional[str] = None
    stims_used_this_action: bool = False
    gm_approved: bool = False
    dice_pool: Optional[int] = None
    roll_result: List[int] = field(default_factory=list)
    outcome: Optional[RollOutcome] = None
    consequence_transaction: Optional[ConsequenceTransaction] = None

    def __post_init__(self) -> None:
        self.phase = TurnPhase(self.phase)
        self.roll_mode = RollMode(self.roll_mode)
        self.position = Position.normalize(self.position)
        self.effect = Effect.normalize(self.effect)
        if self.push_type is not None:
            self.push_type = PushType(self.push_type)
        if self.outcome is not None:
            self.outcome = RollOutcome(self.outcome)

    @property
    def effective_position(self) -> Position:
        # Trait improvement applies to the current roll only; the base position is never rewritten.
        if self.trait_transaction is not None and self.trait_transaction.position_improvement:
            return improve_position(self.position)
        return self.position

    @property
    def effective_effect(self) -> Effect:
        if self.pushed and self.push_type is PushType.IMPROVED_EFFECT:
            return improve_effect(self.effect)
        return self.effect

    def to_dict(self) -> dict[str, Any]:
        return {
            "character_id": self.character_id,
            "phase": self.phase.value,
            "selected_approach": self.selected_approach,
            "secondary_approach": self.secondary_approach,
            "roll_mode": self.roll_mode.value,
            "position": self.position.value,
            "effect": self.effect.value,
            "pushed": bool(self.pushed),
            "push_type": self.push_type.value if self.push_type else None,
            "flashback_applied": bool(self.flashback_applied),
            "trait_transaction": self.trait_transaction.to_dict() if self.trait_transaction else None,
            "active_equipment_ids": list(self.active_equipment_ids),
            "passive_equipment_id": self.passive_equipment_id,
            "stims_used_this_action": bool(self.stims_used_this_action),
            "gm_approved": bool(self.gm_approved),
            "dice_pool": self.dice_pool,
            "roll_result": list(self.roll_result),
            "outcome": self.outcome.value if self.outcome else None,
            "consequence_transaction": (
                self.consequence_transaction.to_dict() if self.consequence_transaction else None
            ),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PlayerTurnState":
        trait_payload = payload.get("trait_transaction")
        consequence_payload = payload.get("consequence_transaction")
        dice_pool = payload.get("dice_pool")
        return cls(
            character_id=str(payload["character_id"]),
            phase=TurnPhase(payload.get("phase", TurnPhase.DECISION_PHASE.value)),
            selected_approach=_optional_str(payload.get("selected_approach")),
            secondary_approach=_optional_str(payload.get("secondary_approach")),
            roll_mode=RollMode(payload.get("roll_mode", RollMode.STANDARD.value)),
            position=Position.normalize(payload.get("position", Position.RISKY.value)),
            effect=Effect.normalize(payload.get("effect", Effect.STANDARD.value)),
            pushed=bool(payload.get("pushed", False)),
            push_type=PushType(payload["push_type"]) if payload.get("push_type") else None,
            flashback_applied=bool(payload.get("flashback_applied", False)),
            trait_transaction=TraitTransaction.from_dict(trait_payload) if trait_payload else None,
            active_equipment_ids=[str(value) for value in payload.get("active_equipment_ids") or []],
            passive_equipment_id=_optional_str(payload.get("passive_equipment_id")),
            stims_used_this_action=bool(payload.get("stims_used_this_action", False)),
            gm_approved=bool(payload.get("gm_approved", False)),
            dice_pool=None if dice_pool is None else int(dice_pool),
            roll_result=[int(value) for value in payload.get("roll_result") or []],
            outcome=RollOutcome(payload["outcome"]) if payload.get("outcome") else None,
            consequence_transaction=(
                ConsequenceTransaction.from_dict(consequence_payload) if consequence_payload else None
            ),
        )
