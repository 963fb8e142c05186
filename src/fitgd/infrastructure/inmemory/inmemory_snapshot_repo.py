from __future__ import annotations

import copy
from typing import List, Optional

from fitgd.domain.models.command import Snapshot
from fitgd.domain.repositories import SnapshotRepository


class InMemorySnapshotRepository(SnapshotRepository):
    def __init__(self) -> None:
        self._snapshots: List[Snapshot] = []

    def save(self, snapshot: Snapshot) -> None:
        self._snapshots.append(copy.deepcopy(snapshot))

    def latest(self) -> Optional[Snapshot]:
        if not self._snapshots:
            return None
        return copy.deepcopy(self._snapshots[-1])
