from __future__ import annotations

from enum import Enum


class Position(str, Enum):
    IMPOSSIBLE = "impossible"
    DESPERATE = "desperate"
    RISKY = "risky"
    CONTROLLED = "controlled"

    @classmethod
    def normalize(cls, value: "Position | str | None") -> "Position":
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower()
        for item in cls:
            if item.value == raw:
                return item
        raise ValueError(f"Unknown position: {value}")


class Effect(str, Enum):
    LIMITED = "limited"
    STANDARD = "standard"
    GREAT = "great"
    SPECTACULAR = "spectacular"

    @classmethod
    def normalize(cls, value: "Effect | str | None") -> "Effect":
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower()
        for item in cls:
            if item.value == raw:
                return item
        raise ValueError(f"Unknown effect: {value}")


# Worst to best.
POSITION_LADDER: tuple[Position, ...] = (
    Position.IMPOSSIBLE,
    Position.DESPERATE,
    Position.RISKY,
    Position.CONTROLLED,
)
EFFECT_LADDER: tuple[Effect, ...] = (
    Effect.LIMITED,
    Effect.STANDARD,
    Effect.GREAT,
    Effect.SPECTACULAR,
)


def _step(ladder: tuple, current, steps: int):
    index = ladder.index(current)
    target = max(0, min(len(ladder) - 1, index + int(steps)))
    return ladder[target]


def improve_position(position: Position | str, steps: int = 1) -> Position:
    return _step(POSITION_LADDER, Position.normalize(position), max(0, steps))


def worsen_position(position: Position | str, steps: int = 1) -> Position:
    return _step(POSITION_LADDER, Position.normalize(position), -max(0, steps))


def improve_effect(effect: Effect | str, steps: int = 1) -> Effect:
    return _step(EFFECT_LADDER, Effect.normalize(effect), max(0, steps))


def worsen_effect(effect: Effect | str, steps: int = 1) -> Effect:
    return _step(EFFECT_LADDER, Effect.normalize(effect), -max(0, steps))


def is_best_position(position: Position | str) -> bool:
    return Position.normalize(position) is POSITION_LADDER[-1]


def is_worst_effect(effect: Effect | str) -> bool:
    return Effect.normalize(effect) is EFFECT_LADDER[0]
