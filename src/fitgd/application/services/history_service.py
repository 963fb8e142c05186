from __future__ import annotations

import logging
import time
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from typing import List, Optional, Set

from fitgd.application.config import DEFAULT_CONFIG, GameConfig
from fitgd.application.dtos import HistoryStats, LoadResult, PruneReport
from fitgd.application.services.command_reducer import apply_batch
from fitgd.domain.models.command import Command, CommandHistoryEntry, Snapshot
from fitgd.domain.models.game_state import GameState
from fitgd.domain.repositories import HistoryRepository, SnapshotRepository

logger = logging.getLogger(__name__)

_FAMILY_ID_KEYS = {
    "characters": ("character_id", "id"),
    "crews": ("crew_id", "id"),
    "clocks": ("clock_id", "id"),
    "turns": ("character_id",),
}


def replay(
    entries: Iterable[CommandHistoryEntry | Command],
    config: GameConfig = DEFAULT_CONFIG,
    initial: GameState | None = None,
) -> GameState:
    """Rebuild state by applying ``entries`` in order on top of ``initial`` (empty by default)."""
    commands = [entry.to_command() if isinstance(entry, CommandHistoryEntry) else entry for entry in entries]
    return apply_batch(initial or GameState(), commands, config)


def is_deletion_command(command_type: str) -> bool:
    action = command_type.split("/", 1)[-1]
    return action.lower().startswith("delete")


def target_entity_id(entry: CommandHistoryEntry | Command) -> Optional[str]:
    """Id of the entity a command modifies (the crew for crew membership commands)."""
    family = entry.type.split("/", 1)[0]
    for key in _FAMILY_ID_KEYS.get(family, ("character_id", "crew_id", "clock_id", "id")):
        value = entry.payload.get(key)
        if value:
            return str(value)
    return None


def referenced_entity_ids(entry: CommandHistoryEntry | Command) -> Set[str]:
    ids: Set[str] = set()
    target = target_entity_id(entry)
    if target:
        ids.add(target)
    for key in ("character_id", "crew_id", "clock_id"):
        value = entry.payload.get(key)
        if value:
            ids.add(str(value))
    return ids


def existing_entity_ids(state: GameState) -> Set[str]:
    return set(state.characters) | set(state.crews) | set(state.clocks)


def is_orphaned(entry: CommandHistoryEntry | Command, current_ids: Set[str]) -> bool:
    if is_deletion_command(entry.type):
        return False
    referenced = referenced_entity_ids(entry)
    if not referenced:
        return False
    return not referenced <= current_ids


def prune_orphaned(
    entries: Sequence[CommandHistoryEntry],
    state: GameState,
    keep_ids: Iterable[str] = (),
) -> List[CommandHistoryEntry]:
    current_ids = existing_entity_ids(state)
    protected = set(keep_ids)
    return [
        entry for entry in entries if entry.command_id in protected or not is_orphaned(entry, current_ids)
    ]


def history_stats(entries: Sequence[CommandHistoryEntry]) -> HistoryStats:
    families = Counter(entry.type.split("/", 1)[0] for entry in entries)
    timestamps = [entry.timestamp for entry in entries]
    return HistoryStats(
        total_commands=len(entries),
        by_family=dict(sorted(families.items())),
        first_timestamp=min(timestamps) if timestamps else None,
        last_timestamp=max(timestamps) if timestamps else None,
    )


class HistoryService:
    def __init__(
        self,
        history_repo: HistoryRepository,
        snapshot_repo: SnapshotRepository,
        *,
        config: GameConfig = DEFAULT_CONFIG,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.history_repo = history_repo
        self.snapshot_repo = snapshot_repo
        self.config = config
        self.clock = clock

    def entries(self) -> List[CommandHistoryEntry]:
        return self.history_repo.list_all()

    def stats(self) -> HistoryStats:
        return history_stats(self.entries())

    def replay_all(self) -> GameState:
        return replay(self.entries(), self.config)

    def take_snapshot(self, state: GameState) -> Snapshot:
        entries = self.entries()
        snapshot = Snapshot(
            timestamp=float(self.clock()),
            state=state.to_dict(),
            last_command_id=entries[-1].command_id if entries else None,
        )
        self.snapshot_repo.save(snapshot)
        logger.info(
            "Snapshot saved",
            extra={"last_command_id": snapshot.last_command_id, "command_count": len(entries)},
        )
        return snapshot

    def load(self) -> LoadResult:
        snapshot = self.snapshot_repo.latest()
        if snapshot is None:
            entries = self.entries()
            return LoadResult(state=replay(entries, self.config), from_snapshot=False, replayed=len(entries))

        newer = self.history_repo.list_after(snapshot.last_command_id)
        base = GameState.from_dict(snapshot.state)
        return LoadResult(state=replay(newer, self.config, initial=base), from_snapshot=True, replayed=len(newer))

    def prune_orphaned(self, state: GameState) -> PruneReport:
        entries = self.entries()
        snapshot = self.snapshot_repo.latest()
        # Keep the snapshot marker entry.
        keep_ids = [snapshot.last_command_id] if snapshot is not None and snapshot.last_command_id else []
        kept = prune_orphaned(entries, state, keep_ids)
        removed = len(entries) - len(kept)
        if removed:
            self.history_repo.replace_all(kept)
            logger.info("Pruned orphaned commands", extra={"removed": removed, "remaining": len(kept)})
        return PruneReport(removed=removed, remaining=len(kept))

    def prune_before_snapshot(self) -> PruneReport:
        """Drop entries already covered by the latest snapshot."""
        snapshot = self.snapshot_repo.latest()
        entries = self.entries()
        if snapshot is None or not snapshot.last_command_id:
            return PruneReport(removed=0, remaining=len(entries))

        ids = [entry.command_id for entry in entries]
        if snapshot.last_command_id not in ids:
            return PruneReport(removed=0, remaining=len(entries))

        kept = entries[ids.index(snapshot.last_command_id) + 1 :]
        self.history_repo.replace_all(kept)
        removed = len(entries) - len(kept)
        logger.info("Pruned commands covered by snapshot", extra={"removed": removed, "remaining": len(kept)})
        return PruneReport(removed=removed, remaining=len(kept))

    def prune_all(self, state: GameState) -> PruneReport:
        """Snapshot ``state`` and drop every entry it covers."""
        before = len(self.entries())
        if before == 0:
            return PruneReport(removed=0, remaining=0)
        self.take_snapshot(state)
        report = self.prune_before_snapshot()
        return PruneReport(removed=before - report.remaining, remaining=report.remaining)
