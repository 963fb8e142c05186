from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class CommandsApplied:
    command_ids: List[str]
    command_types: List[str]
    user_id: Optional[str] = None


@dataclass
class TurnPhaseChanged:
    character_id: str
    from_phase: str
    to_phase: str


@dataclass
class DiceRolled:
    character_id: str
    dice_pool: int
    dice: List[int]
    outcome: str
    reroll: bool = False


@dataclass
class ClockFilled:
    clock_id: str
    owner_id: str
    clock_type: str
    subtype: str = ""


@dataclass
class ConsequenceApplied:
    character_id: str
    consequence_type: str
    clock_id: str
    segments: int
    momentum_gain: int


@dataclass
class StimsUsed:
    character_id: str
    crew_id: str
    addiction_roll: int
    addiction_clock_id: str
    locked: bool


@dataclass
class RallyUsed:
    character_id: str
    crew_id: str
    momentum_spent: int
    new_momentum: int
    re_enabled_trait_id: Optional[str] = None


@dataclass
class LeanedIntoTrait:
    character_id: str
    crew_id: str
    trait_id: str
    momentum_gain: int


@dataclass
class Notification:
    level: str
    title: str
    message: str
    reason: str = ""
    context: dict = field(default_factory=dict)
