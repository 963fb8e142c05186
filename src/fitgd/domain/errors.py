from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base error for rule violations raised by mutating engine calls."""


class StateError(EngineError):
    pass


class ConfigurationError(EngineError):
    pass


class InsufficientMomentum(EngineError):
    def __init__(self, requested: int, available: int) -> None:
        super().__init__(f"Insufficient momentum: need {requested}, have {available}")
        self.requested = int(requested)
        self.available = int(available)


class RallyUnavailable(EngineError):
    pass


class UnknownCommandError(EngineError):
    def __init__(self, command_type: str) -> None:
        super().__init__(f"Unknown command type: {command_type}")
        self.command_type = command_type


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(is_valid=True)

    @classmethod
    def fail(cls, reason: str, **details: Any) -> "ValidationResult":
        return cls(is_valid=False, reason=reason, details=dict(details))

    def __bool__(self) -> bool:
        return self.is_valid
