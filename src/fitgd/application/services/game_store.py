from __future__ import annotations

import copy
import logging
import time
from collections.abc import Callable, Sequence
from typing import List, Optional

from fitgd.application.config import DEFAULT_CONFIG, GameConfig
from fitgd.application.services.command_reducer import apply_batch
from fitgd.application.services.event_bus import EventBus
from fitgd.application.services.id_generator import IdGenerator
from fitgd.domain.events import ClockFilled, CommandsApplied, TurnPhaseChanged
from fitgd.domain.models.command import Command, CommandHistoryEntry
from fitgd.domain.models.game_state import GameState
from fitgd.domain.models.turn_state import TurnPhase
from fitgd.domain.repositories import HistoryRepository

logger = logging.getLogger(__name__)


class GameStore:
    """Owns the current state and commits command batches atomically.

    A batch is reduced against a copy of the state, appended to history, and
    only then installed; any failure leaves both state and history unchanged.
    """

    def __init__(
        self,
        history_repo: HistoryRepository,
        *,
        state: GameState | None = None,
        config: GameConfig = DEFAULT_CONFIG,
        event_bus: EventBus | None = None,
        id_generator=None,
        clock: Callable[[], float] = time.time,
        user_id: str | None = None,
    ) -> None:
        self.history_repo = history_repo
        self.config = config
        self.event_bus = event_bus or EventBus()
        self.id_generator = id_generator or IdGenerator()
        self.clock = clock
        self.user_id = user_id
        self._state = state or GameState()

    @property
    def state(self) -> GameState:
        return self._state

    def snapshot_state(self) -> GameState:
        return copy.deepcopy(self._state)

    def replace_state(self, state: GameState) -> None:
        self._state = state

    def now(self) -> float:
        return float(self.clock())

    def new_id(self, kind: str) -> str:
        return self.id_generator.next_id(kind)

    def dispatch(self, commands: Sequence[Command], *, user_id: Optional[str] = None) -> GameState:
        commands = list(commands)
        if not commands:
            return self._state

        before = self._state
        after = apply_batch(before, commands, self.config)

        actor = user_id if user_id is not None else self.user_id
        entries: List[CommandHistoryEntry] = [
            CommandHistoryEntry(
                command_id=self.new_id("cmd"),
                type=command.type,
                payload=copy.deepcopy(command.payload),
                timestamp=self.now(),
                user_id=actor,
            )
            for command in commands
        ]
        self.history_repo.append(entries)
        self._state = after

        logger.debug(
            "Committed command batch",
            extra={"command_types": [command.type for command in commands], "user_id": actor},
        )
        self.event_bus.publish(
            CommandsApplied(
                command_ids=[entry.command_id for entry in entries],
                command_types=[entry.type for entry in entries],
                user_id=actor,
            )
        )
        self._publish_derived_events(before, after)
        return after

    def _publish_derived_events(self, before: GameState, after: GameState) -> None:
        for character_id in sorted(set(before.turns) | set(after.turns)):
            old = before.turns.get(character_id)
            new = after.turns.get(character_id)
            old_phase = old.phase if old is not None else TurnPhase.IDLE_WAITING
            new_phase = new.phase if new is not None else TurnPhase.IDLE_WAITING
            if old_phase is not new_phase:
                logger.info(
                    "Turn phase changed",
                    extra={"character_id": character_id, "from": old_phase.value, "to": new_phase.value},
                )
                self.event_bus.publish(
                    TurnPhaseChanged(
                        character_id=character_id,
                        from_phase=old_phase.value,
                        to_phase=new_phase.value,
                    )
                )

        for clock_id, clock in after.clocks.items():
            previous = before.clocks.get(clock_id)
            was_full = previous is not None and previous.is_full
            if clock.is_full and not was_full:
                self.event_bus.publish(
                    ClockFilled(
                        clock_id=clock.id,
                        owner_id=clock.owner_id,
                        clock_type=clock.clock_type.value,
                        subtype=clock.subtype,
                    )
                )
