from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class ClockType(str, Enum):
    HARM = "harm"
    ADDICTION = "addiction"
    PROGRESS = "progress"


@dataclass
class Clock:
    id: str
    owner_id: str
    clock_type: ClockType
    max_segments: int
    segments: int = 0
    subtype: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.clock_type = ClockType(self.clock_type)
        self.max_segments = max(0, int(self.max_segments))
        self.segments = max(0, min(self.max_segments, int(self.segments)))
        if not isinstance(self.metadata, dict):
            self.metadata = {}

    @property
    def is_full(self) -> bool:
        return self.segments >= self.max_segments

    @property
    def remaining(self) -> int:
        return max(0, self.max_segments - self.segments)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "clock_type": self.clock_type.value,
            "max_segments": int(self.max_segments),
            "segments": int(self.segments),
            "subtype": self.subtype,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Clock":
        return cls(
            id=str(payload["id"]),
            owner_id=str(payload["owner_id"]),
            clock_type=ClockType(payload["clock_type"]),
            max_segments=int(payload.get("max_segments", 0) or 0),
            segments=int(payload.get("segments", 0) or 0),
            subtype=str(payload.get("subtype", "") or ""),
            metadata=dict(payload.get("metadata") or {}),
        )
