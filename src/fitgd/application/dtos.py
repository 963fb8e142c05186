from dataclasses import dataclass, field
from typing import Dict, List, Optional

from fitgd.domain.models.command import Command
from fitgd.domain.models.game_state import GameState
from fitgd.domain.models.ladder import Effect, Position
from fitgd.domain.models.turn_state import RollOutcome


@dataclass(frozen=True)
class DiceProbabilities:
    critical: float
    success: float
    partial: float
    failure: float

    @property
    def total(self) -> float:
        return self.critical + self.success + self.partial + self.failure

    def as_percent(self, digits: int = 1) -> Dict[str, float]:
        return {
            "critical": round(self.critical * 100, digits),
            "success": round(self.success * 100, digits),
            "partial": round(self.partial * 100, digits),
            "failure": round(self.failure * 100, digits),
        }


@dataclass(frozen=True)
class RollResult:
    dice_pool: int
    dice: List[int]
    outcome: RollOutcome
    kept_lowest: bool = False


@dataclass(frozen=True)
class DefensiveSuccessValues:
    available: bool
    original_position: Position
    defensive_position: Optional[Position]
    original_effect: Effect
    defensive_effect: Optional[Effect]
    defensive_segments: int
    original_segments: int
    momentum_gain: int


@dataclass(frozen=True)
class ConsequencePreview:
    consequence_type: str
    clock_id: str
    segments: int
    momentum_gain: int
    defensive: bool = False


@dataclass
class CommandBatch:
    commands: List[Command] = field(default_factory=list)

    def add(self, command_type: str, **payload) -> "CommandBatch":
        self.commands.append(Command(type=command_type, payload=payload))
        return self

    def extend(self, other: "CommandBatch") -> "CommandBatch":
        self.commands.extend(other.commands)
        return self

    def __len__(self) -> int:
        return len(self.commands)

    def __iter__(self):
        return iter(self.commands)


@dataclass
class StimsWorkflowResult:
    character_id: str
    crew_id: str
    addiction_clock_id: str
    addiction_roll: int
    addiction_segments: int
    addiction_max: int
    locked: bool
    reroll: Optional[RollResult] = None


@dataclass(frozen=True)
class RallyResult:
    character_id: str
    crew_id: str
    momentum_spent: int
    new_momentum: int
    re_enabled_trait_id: Optional[str] = None


@dataclass(frozen=True)
class HistoryStats:
    total_commands: int
    by_family: Dict[str, int]
    first_timestamp: Optional[float]
    last_timestamp: Optional[float]

    @property
    def time_span(self) -> float:
        if self.first_timestamp is None or self.last_timestamp is None:
            return 0.0
        return self.last_timestamp - self.first_timestamp


@dataclass(frozen=True)
class PruneReport:
    removed: int
    remaining: int


@dataclass(frozen=True)
class TurnView:
    character_id: str
    character_name: str
    phase: str
    approach: Optional[str]
    base_position: str
    effective_position: str
    base_effect: str
    effective_effect: str
    dice_pool: int
    momentum_cost: int
    crew_momentum: Optional[int]
    roll: List[int] = field(default_factory=list)
    outcome: Optional[str] = None
    dying: bool = False


@dataclass
class LoadResult:
    state: GameState
    from_snapshot: bool
    replayed: int
