from __future__ import annotations

import random
from collections import deque
from typing import Iterable, List

DIE_SIDES = 6


class RandomDiceRoller:
    def __init__(self, rng: random.Random | None = None, *, seed: int | None = None) -> None:
        self._rng = rng or random.Random(seed)

    def roll(self, count: int) -> List[int]:
        return sorted(self._rng.randint(1, DIE_SIDES) for _ in range(max(0, int(count))))

    def roll_keep_lowest(self, count: int = 2) -> int:
        return min(self._rng.randint(1, DIE_SIDES) for _ in range(max(1, int(count))))


class ScriptedDiceRoller:
    """Returns queued die faces in order; raises once the script runs out."""

    def __init__(self, faces: Iterable[int] = ()) -> None:
        self._faces: deque[int] = deque(int(face) for face in faces)
        self.calls: List[tuple[str, int]] = []

    def queue(self, *faces: int) -> None:
        self._faces.extend(int(face) for face in faces)

    @property
    def remaining(self) -> int:
        return len(self._faces)

    def _take(self, count: int) -> List[int]:
        if count > len(self._faces):
            raise RuntimeError(f"Scripted dice exhausted: wanted {count}, have {len(self._faces)}")
        return [self._faces.popleft() for _ in range(count)]

    def roll(self, count: int) -> List[int]:
        count = max(0, int(count))
        self.calls.append(("roll", count))
        return sorted(self._take(count))

    def roll_keep_lowest(self, count: int = 2) -> int:
        count = max(1, int(count))
        self.calls.append(("roll_keep_lowest", count))
        return min(self._take(count))
