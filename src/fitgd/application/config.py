from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from fitgd.domain.errors import ConfigurationError
from fitgd.domain.models.ladder import Effect, Position


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(dict(mapping))


# Consequence severity and momentum gain share one position table.
POSITION_SEVERITY = _frozen(
    {
        Position.CONTROLLED: 1,
        Position.RISKY: 2,
        Position.DESPERATE: 4,
        Position.IMPOSSIBLE: 6,
    }
)

SUCCESS_CLOCK_BASE = _frozen(
    {
        Position.CONTROLLED: 1,
        Position.RISKY: 3,
        Position.DESPERATE: 5,
        Position.IMPOSSIBLE: 6,
    }
)

SUCCESS_CLOCK_EFFECT_MODIFIER = _frozen(
    {
        Effect.LIMITED: -1,
        Effect.STANDARD: 0,
        Effect.GREAT: 1,
        Effect.SPECTACULAR: 2,
    }
)


@dataclass(frozen=True)
class CrewConfig:
    starting_momentum: int = 5
    max_momentum: int = 10
    min_momentum: int = 0


@dataclass(frozen=True)
class ClockConfig:
    harm_segments: int = 6
    max_harm_clocks: int = 3
    addiction_segments: int = 8
    progress_sizes: Tuple[int, ...] = (4, 6, 8, 12)


@dataclass(frozen=True)
class RallyConfig:
    max_momentum_to_use: int = 3
    lean_into_trait_gain: int = 2


@dataclass(frozen=True)
class ResolutionConfig:
    consequence_segments: Mapping = field(default_factory=lambda: POSITION_SEVERITY)
    momentum_on_consequence: Mapping = field(default_factory=lambda: POSITION_SEVERITY)
    success_clock_base: Mapping = field(default_factory=lambda: SUCCESS_CLOCK_BASE)
    success_clock_effect_modifier: Mapping = field(default_factory=lambda: SUCCESS_CLOCK_EFFECT_MODIFIER)
    push_cost: int = 1
    trait_transaction_cost: int = 1
    flashback_cost: int = 1


@dataclass(frozen=True)
class TurnConfig:
    require_gm_approval: bool = False
    stims_die_sides: int = 6
    addict_trait_name: str = "Addict"
    addict_trait_description: str = "Became addicted to combat stims"


@dataclass(frozen=True)
class GameConfig:
    crew: CrewConfig = field(default_factory=CrewConfig)
    clocks: ClockConfig = field(default_factory=ClockConfig)
    rally: RallyConfig = field(default_factory=RallyConfig)
    resolution: ResolutionConfig = field(default_factory=ResolutionConfig)
    turn: TurnConfig = field(default_factory=TurnConfig)


@dataclass(frozen=True)
class TurnContext:
    character_id: str
    crew_id: Optional[str] = None


DEFAULT_CONFIG = GameConfig()

_TRUTHY = {"1", "true", "yes", "on"}


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        return int(str(raw).strip())
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from exc


def _env_flag(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    return str(raw).strip().lower() in _TRUTHY


def load_game_config(env: Mapping[str, str] | None = None, base: GameConfig = DEFAULT_CONFIG) -> GameConfig:
    """Build a config from ``FITGD_*`` environment overrides on top of ``base``."""
    env = os.environ if env is None else env

    crew = replace(
        base.crew,
        starting_momentum=_env_int(env, "FITGD_STARTING_MOMENTUM", base.crew.starting_momentum),
        max_momentum=_env_int(env, "FITGD_MAX_MOMENTUM", base.crew.max_momentum),
    )
    if crew.max_momentum < crew.min_momentum:
        raise ConfigurationError("FITGD_MAX_MOMENTUM must not be negative")
    if not crew.min_momentum <= crew.starting_momentum <= crew.max_momentum:
        raise ConfigurationError("FITGD_STARTING_MOMENTUM must be within the momentum bounds")

    rally = replace(
        base.rally,
        max_momentum_to_use=_env_int(env, "FITGD_RALLY_THRESHOLD", base.rally.max_momentum_to_use),
    )
    turn = replace(
        base.turn,
        require_gm_approval=_env_flag(env, "FITGD_REQUIRE_GM_APPROVAL", base.turn.require_gm_approval),
    )
    return replace(base, crew=crew, rally=rally, turn=turn)
