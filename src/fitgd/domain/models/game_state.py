from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fitgd.domain.models.character import Character
from fitgd.domain.models.clock import Clock, ClockType
from fitgd.domain.models.crew import Crew
from fitgd.domain.models.turn_state import PlayerTurnState


@dataclass
class GameState:
    characters: Dict[str, Character] = field(default_factory=dict)
    crews: Dict[str, Crew] = field(default_factory=dict)
    clocks: Dict[str, Clock] = field(default_factory=dict)
    turns: Dict[str, PlayerTurnState] = field(default_factory=dict)

    def crew_for_character(self, character_id: str) -> Optional[Crew]:
        for crew in self.crews.values():
            if crew.has_member(character_id):
                return crew
        return None

    def clocks_for_owner(self, owner_id: str, clock_type: ClockType | None = None) -> List[Clock]:
        rows = [clock for clock in self.clocks.values() if clock.owner_id == owner_id]
        if clock_type is not None:
            rows = [clock for clock in rows if clock.clock_type == clock_type]
        return rows

    def to_dict(self) -> dict[str, Any]:
        return {
            "characters": {key: value.to_dict() for key, value in self.characters.items()},
            "crews": {key: value.to_dict() for key, value in self.crews.items()},
            "clocks": {key: value.to_dict() for key, value in self.clocks.items()},
            "turns": {key: value.to_dict() for key, value in self.turns.items()},
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "GameState":
        payload = payload or {}
        return cls(
            characters={
                str(key): Character.from_dict(row) for key, row in (payload.get("characters") or {}).items()
            },
            crews={str(key): Crew.from_dict(row) for key, row in (payload.get("crews") or {}).items()},
            clocks={str(key): Clock.from_dict(row) for key, row in (payload.get("clocks") or {}).items()},
            turns={
                str(key): PlayerTurnState.from_dict(row) for key, row in (payload.get("turns") or {}).items()
            },
        )
