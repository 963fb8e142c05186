from __future__ import annotations

import copy
from typing import List, Sequence

from fitgd.domain.models.command import CommandHistoryEntry
from fitgd.domain.repositories import HistoryRepository


class InMemoryHistoryRepository(HistoryRepository):
    def __init__(self, entries: Sequence[CommandHistoryEntry] = ()) -> None:
        self._entries: List[CommandHistoryEntry] = [copy.deepcopy(entry) for entry in entries]

    def append(self, entries: Sequence[CommandHistoryEntry]) -> None:
        snapshot = list(self._entries)
        try:
            seen = {entry.command_id for entry in self._entries}
            for entry in entries:
                if entry.command_id in seen:
                    raise ValueError(f"Duplicate command id: {entry.command_id}")
                seen.add(entry.command_id)
                self._entries.append(copy.deepcopy(entry))
        except Exception:
            self._entries = snapshot
            raise

    def list_all(self) -> List[CommandHistoryEntry]:
        return [copy.deepcopy(entry) for entry in self._entries]

    def replace_all(self, entries: Sequence[CommandHistoryEntry]) -> None:
        self._entries = [copy.deepcopy(entry) for entry in entries]

    def count(self) -> int:
        return len(self._entries)
