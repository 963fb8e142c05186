from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fitgd.application.config import GameConfig
from fitgd.application.dtos import CommandBatch
from fitgd.application.services.game_store import GameStore
from fitgd.domain.errors import ConfigurationError
from fitgd.domain.models.clock import Clock, ClockType
from fitgd.domain.models.game_state import GameState

logger = logging.getLogger(__name__)


def is_full(clock: Clock) -> bool:
    return clock.segments >= clock.max_segments


def clocks_for_owner(state: GameState, owner_id: str, clock_type: ClockType | None = None) -> List[Clock]:
    return state.clocks_for_owner(owner_id, clock_type)


def harm_clocks(state: GameState, character_id: str) -> List[Clock]:
    return clocks_for_owner(state, character_id, ClockType.HARM)


def find_harm_clock(state: GameState, character_id: str, subtype: str) -> Optional[Clock]:
    wanted = str(subtype or "").strip().lower()
    for clock in harm_clocks(state, character_id):
        if clock.subtype.strip().lower() == wanted:
            return clock
    return None


def find_addiction_clock(state: GameState, character_id: str) -> Optional[Clock]:
    rows = clocks_for_owner(state, character_id, ClockType.ADDICTION)
    return rows[0] if rows else None


def is_addiction_clock_full(state: GameState, character_id: str) -> bool:
    clock = find_addiction_clock(state, character_id)
    return clock is not None and is_full(clock)


def is_character_dying(state: GameState, character_id: str) -> bool:
    return any(is_full(clock) for clock in harm_clocks(state, character_id))


def are_stims_locked(state: GameState, crew_id: str) -> bool:
    crew = state.crews.get(crew_id)
    if crew is None:
        return False
    return any(is_addiction_clock_full(state, member_id) for member_id in crew.characters)


def default_max_segments(clock_type: ClockType, config: GameConfig) -> int:
    if clock_type is ClockType.HARM:
        return config.clocks.harm_segments
    if clock_type is ClockType.ADDICTION:
        return config.clocks.addiction_segments
    return config.clocks.progress_sizes[0]


def build_create_clock(
    clock_id: str,
    owner_id: str,
    clock_type: ClockType | str,
    *,
    subtype: str = "",
    max_segments: int,
    metadata: Dict[str, Any] | None = None,
) -> CommandBatch:
    return CommandBatch().add(
        "clocks/createClock",
        id=clock_id,
        owner_id=owner_id,
        clock_type=ClockType(clock_type).value,
        subtype=subtype,
        max_segments=int(max_segments),
        segments=0,
        metadata=dict(metadata or {}),
    )


def build_add_segments(clock_id: str, amount: int) -> CommandBatch:
    return CommandBatch().add("clocks/addSegments", clock_id=clock_id, amount=max(0, int(amount)))


class ClockService:
    def __init__(self, store: GameStore) -> None:
        self.store = store

    @property
    def config(self) -> GameConfig:
        return self.store.config

    def get(self, clock_id: str) -> Clock:
        clock = self.store.state.clocks.get(clock_id)
        if clock is None:
            raise ConfigurationError(f"Unknown clock: {clock_id}")
        return clock

    def create_clock(
        self,
        owner_id: str,
        clock_type: ClockType | str,
        subtype: str = "",
        max_segments: int | None = None,
        *,
        metadata: Dict[str, Any] | None = None,
    ) -> Clock:
        clock_type = ClockType(clock_type)
        state = self.store.state
        if owner_id not in state.characters and owner_id not in state.crews:
            raise ConfigurationError(f"Unknown clock owner: {owner_id}")

        if clock_type is ClockType.ADDICTION:
            existing = find_addiction_clock(state, owner_id)
            if existing is not None:
                return existing

        if clock_type is ClockType.HARM:
            existing = find_harm_clock(state, owner_id, subtype)
            if existing is not None:
                return existing
            current = harm_clocks(state, owner_id)
            if len(current) >= self.config.clocks.max_harm_clocks:
                return self._replace_harm_subtype(current, subtype)

        size = default_max_segments(clock_type, self.config) if max_segments is None else int(max_segments)
        if clock_type is ClockType.PROGRESS and size not in self.config.clocks.progress_sizes:
            allowed = ", ".join(str(value) for value in self.config.clocks.progress_sizes)
            raise ValueError(f"Progress clocks must have {allowed} segments, got {size}")
        if size <= 0:
            raise ValueError("Clock size must be positive")

        clock_id = self.store.new_id("clock")
        self.store.dispatch(
            build_create_clock(
                clock_id,
                owner_id,
                clock_type,
                subtype=subtype,
                max_segments=size,
                metadata=metadata,
            ).commands
        )
        return self.get(clock_id)

    def _replace_harm_subtype(self, current: List[Clock], subtype: str) -> Clock:
        # Fourth harm type re-labels the least-filled clock and keeps its segments.
        target = min(current, key=lambda clock: (clock.segments, clock.id))
        logger.info(
            "Harm clock limit reached; re-labelling clock",
            extra={"clock_id": target.id, "from_subtype": target.subtype, "to_subtype": subtype},
        )
        self.store.dispatch(
            CommandBatch().add("clocks/changeSubtype", clock_id=target.id, subtype=subtype).commands
        )
        return self.get(target.id)

    def add_segments(self, clock_id: str, amount: int) -> Clock:
        self.get(clock_id)
        self.store.dispatch(build_add_segments(clock_id, amount).commands)
        return self.get(clock_id)

    def set_segments(self, clock_id: str, segments: int) -> Clock:
        self.get(clock_id)
        self.store.dispatch(CommandBatch().add("clocks/setSegments", clock_id=clock_id, segments=int(segments)).commands)
        return self.get(clock_id)

    def clear_segments(self, clock_id: str, amount: int) -> Clock:
        self.get(clock_id)
        self.store.dispatch(
            CommandBatch().add("clocks/clearSegments", clock_id=clock_id, amount=max(0, int(amount))).commands
        )
        return self.get(clock_id)

    def delete_clock(self, clock_id: str) -> None:
        self.get(clock_id)
        self.store.dispatch(CommandBatch().add("clocks/deleteClock", clock_id=clock_id).commands)

    def is_full(self, clock_id: str) -> bool:
        return is_full(self.get(clock_id))
