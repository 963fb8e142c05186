from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

COMMAND_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class Command:
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def family(self) -> str:
        return self.type.split("/", 1)[0] if "/" in self.type else ""


@dataclass
class CommandHistoryEntry:
    command_id: str
    type: str
    payload: Dict[str, Any]
    timestamp: float
    user_id: Optional[str] = None
    version: int = COMMAND_SCHEMA_VERSION

    def to_command(self) -> Command:
        return Command(type=self.type, payload=copy.deepcopy(self.payload))

    def to_dict(self) -> dict[str, Any]:
        return {
            "command_id": self.command_id,
            "type": self.type,
            "payload": copy.deepcopy(self.payload),
            "timestamp": float(self.timestamp),
            "user_id": self.user_id,
            "version": int(self.version),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "CommandHistoryEntry":
        user_id = payload.get("user_id")
        return cls(
            command_id=str(payload["command_id"]),
            type=str(payload["type"]),
            payload=dict(payload.get("payload") or {}),
            timestamp=float(payload.get("timestamp", 0.0) or 0.0),
            user_id=None if user_id is None else str(user_id),
            version=int(payload.get("version", COMMAND_SCHEMA_VERSION) or COMMAND_SCHEMA_VERSION),
        )


@dataclass
class Snapshot:
    """Serialized game state plus the history position it covers."""

    timestamp: float
    state: Dict[str, Any]
    version: int = COMMAND_SCHEMA_VERSION
    last_command_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": float(self.timestamp),
            "state": copy.deepcopy(self.state),
            "version": int(self.version),
            "last_command_id": self.last_command_id,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Snapshot":
        return cls(
            timestamp=float(payload.get("timestamp", 0.0) or 0.0),
            state=dict(payload.get("state") or {}),
            version=int(payload.get("version", COMMAND_SCHEMA_VERSION) or COMMAND_SCHEMA_VERSION),
            last_command_id=payload.get("last_command_id") or None,
        )
