from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


DEFAULT_APPROACHES: Dict[str, int] = {
    "force": 0,
    "guile": 0,
    "focus": 0,
    "spirit": 0,
}
MAX_APPROACH_RATING = 4


class TraitCategory(str, Enum):
    ROLE = "role"
    BACKGROUND = "background"
    SCAR = "scar"
    FLASHBACK = "flashback"
    GROUPED = "grouped"


class EquipmentCategory(str, Enum):
    ACTIVE = "active"
    PASSIVE = "passive"
    CONSUMABLE = "consumable"


@dataclass
class Trait:
    id: str
    name: str
    category: TraitCategory = TraitCategory.ROLE
    disabled: bool = False
    acquired_at: float = 0.0
    description: str = ""

    def __post_init__(self) -> None:
        self.category = TraitCategory(self.category)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["category"] = self.category.value
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Trait":
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name", "")),
            category=TraitCategory(payload.get("category", TraitCategory.ROLE.value)),
            disabled=bool(payload.get("disabled", False)),
            acquired_at=float(payload.get("acquired_at", 0.0) or 0.0),
            description=str(payload.get("description", "") or ""),
        )


@dataclass
class Equipment:
    id: str
    name: str
    category: EquipmentCategory = EquipmentCategory.ACTIVE
    dice_bonus: int = 0
    equipped: bool = True

    def __post_init__(self) -> None:
        self.category = EquipmentCategory(self.category)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["category"] = self.category.value
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Equipment":
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name", "")),
            category=EquipmentCategory(payload.get("category", EquipmentCategory.ACTIVE.value)),
            dice_bonus=int(payload.get("dice_bonus", 0) or 0),
            equipped=bool(payload.get("equipped", True)),
        )


@dataclass
class Character:
    id: str
    name: str
    approaches: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_APPROACHES))
    traits: List[Trait] = field(default_factory=list)
    equipment: List[Equipment] = field(default_factory=list)
    rally_available: bool = True

    def __post_init__(self) -> None:
        normalized: Dict[str, int] = {}
        for raw_name, raw_rating in dict(self.approaches or {}).items():
            name = str(raw_name or "").strip().lower()
            if not name:
                continue
            normalized[name] = max(0, min(MAX_APPROACH_RATING, int(raw_rating or 0)))
        self.approaches = normalized

    def approach_rating(self, approach: str | None) -> int:
        if not approach:
            return 0
        return int(self.approaches.get(str(approach).strip().lower(), 0))

    def find_trait(self, trait_id: str) -> Optional[Trait]:
        for trait in self.traits:
            if trait.id == trait_id:
                return trait
        return None

    def find_equipment(self, equipment_id: str) -> Optional[Equipment]:
        for item in self.equipment:
            if item.id == equipment_id:
                return item
        return None

    def enabled_traits(self) -> List[Trait]:
        return [trait for trait in self.traits if not trait.disabled]

    def disabled_traits(self) -> List[Trait]:
        return [trait for trait in self.traits if trait.disabled]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "approaches": dict(self.approaches),
            "traits": [trait.to_dict() for trait in self.traits],
            "equipment": [item.to_dict() for item in self.equipment],
            "rally_available": bool(self.rally_available),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Character":
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name", "")),
            approaches=dict(payload.get("approaches") or {}),
            traits=[Trait.from_dict(row) for row in payload.get("traits") or []],
            equipment=[Equipment.from_dict(row) for row in payload.get("equipment") or []],
            rally_available=bool(payload.get("rally_available", True)),
        )
