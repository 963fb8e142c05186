from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from fitgd.domain.models.command import CommandHistoryEntry, Snapshot


class HistoryRepository(ABC):
    @abstractmethod
    def append(self, entries: Sequence[CommandHistoryEntry]) -> None:
        """Append all entries or none of them."""
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> List[CommandHistoryEntry]:
        raise NotImplementedError

    @abstractmethod
    def replace_all(self, entries: Sequence[CommandHistoryEntry]) -> None:
        raise NotImplementedError

    def count(self) -> int:
        return len(self.list_all())

    def list_after(self, command_id: Optional[str]) -> List[CommandHistoryEntry]:
        """Entries recorded after ``command_id``; all entries when it is unknown or pruned."""
        entries = self.list_all()
        if not command_id:
            return entries
        for index, entry in enumerate(entries):
            if entry.command_id == command_id:
                return entries[index + 1 :]
        return entries


class SnapshotRepository(ABC):
    @abstractmethod
    def save(self, snapshot: Snapshot) -> None:
        raise NotImplementedError

    @abstractmethod
    def latest(self) -> Optional[Snapshot]:
        raise NotImplementedError
