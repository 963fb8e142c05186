from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List


@dataclass
class Crew:
    id: str
    name: str
    characters: List[str] = field(default_factory=list)
    current_momentum: int = 5

    def has_member(self, character_id: str) -> bool:
        return character_id in self.characters

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "characters": list(self.characters),
            "current_momentum": int(self.current_momentum),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Crew":
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name", "")),
            characters=[str(value) for value in payload.get("characters") or []],
            current_momentum=int(payload.get("current_momentum", 0) or 0),
        )
