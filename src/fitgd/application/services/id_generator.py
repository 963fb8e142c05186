from __future__ import annotations

import itertools
import uuid
from typing import Callable, Iterable, Iterator


class IdGenerator:
    """Prefixed sequential ids; deterministic for tests and replays."""

    def __init__(self, start: int = 1) -> None:
        self._start = int(start)
        self._counter: Iterator[int] = itertools.count(self._start)

    def next_id(self, kind: str = "id") -> str:
        return f"{kind}-{next(self._counter)}"

    def reset(self, start: int | None = None) -> None:
        self._start = self._start if start is None else int(start)
        self._counter = itertools.count(self._start)


class UuidIdGenerator:
    def __init__(self, factory: Callable[[], uuid.UUID] = uuid.uuid4) -> None:
        self._factory = factory

    def next_id(self, kind: str = "id") -> str:
        return f"{kind}-{self._factory().hex}"


def highest_sequence(ids: Iterable[str | None]) -> int:
    """Largest numeric suffix among ``kind-N`` ids; 0 when none parse."""
    highest = 0
    for value in ids:
        _, _, suffix = str(value or "").rpartition("-")
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest
