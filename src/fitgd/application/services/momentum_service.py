from __future__ import annotations

import logging
from typing import Optional

from fitgd.application.config import DEFAULT_CONFIG, GameConfig
from fitgd.application.dtos import CommandBatch, RallyResult
from fitgd.application.services.game_store import GameStore
from fitgd.domain.errors import (
    ConfigurationError,
    InsufficientMomentum,
    RallyUnavailable,
    StateError,
    ValidationResult,
)
from fitgd.domain.events import LeanedIntoTrait, RallyUsed
from fitgd.domain.models.crew import Crew
from fitgd.domain.models.ladder import Position
from fitgd.domain.models.turn_state import PlayerTurnState

logger = logging.getLogger(__name__)


def momentum_gain(position: Position | str, config: GameConfig = DEFAULT_CONFIG) -> int:
    return int(config.resolution.momentum_on_consequence[Position.normalize(position)])


def momentum_cost(turn: PlayerTurnState, config: GameConfig = DEFAULT_CONFIG) -> int:
    """Momentum charged when the roll is committed."""
    cost = 0
    if turn.pushed:
        cost += config.resolution.push_cost
    transaction = turn.trait_transaction
    if transaction is not None:
        # A transaction may carry its own price; otherwise the table default applies.
        if transaction.momentum_cost is None:
            cost += config.resolution.trait_transaction_cost
        else:
            cost += max(0, int(transaction.momentum_cost))
    if turn.flashback_applied:
        cost += config.resolution.flashback_cost
    return cost


def can_rally(crew: Crew, rally_available: bool, config: GameConfig = DEFAULT_CONFIG) -> bool:
    return rally_available and config.crew.min_momentum <= crew.current_momentum <= config.rally.max_momentum_to_use


class MomentumService:
    def __init__(self, store: GameStore) -> None:
        self.store = store

    @property
    def config(self) -> GameConfig:
        return self.store.config

    def crew(self, crew_id: str) -> Crew:
        crew = self.store.state.crews.get(crew_id)
        if crew is None:
            raise ConfigurationError(f"Unknown crew: {crew_id}")
        return crew

    def crew_for_character(self, character_id: str) -> Crew:
        crew = self.store.state.crew_for_character(character_id)
        if crew is None:
            raise ConfigurationError(f"Character {character_id} is not assigned to a crew")
        return crew

    def add_momentum(self, crew_id: str, amount: int) -> int:
        self.crew(crew_id)
        self.store.dispatch(CommandBatch().add("crews/addMomentum", crew_id=crew_id, amount=max(0, int(amount))).commands)
        return self.crew(crew_id).current_momentum

    def spend_momentum(self, crew_id: str, amount: int) -> int:
        crew = self.crew(crew_id)
        if amount > crew.current_momentum:
            raise InsufficientMomentum(amount, crew.current_momentum)
        self.store.dispatch(CommandBatch().add("crews/spendMomentum", crew_id=crew_id, amount=int(amount)).commands)
        return self.crew(crew_id).current_momentum

    def set_momentum(self, crew_id: str, amount: int) -> int:
        self.crew(crew_id)
        self.store.dispatch(CommandBatch().add("crews/setMomentum", crew_id=crew_id, amount=int(amount)).commands)
        return self.crew(crew_id).current_momentum

    def reset(self, crew_id: str) -> Crew:
        self.crew(crew_id)
        self.store.dispatch(CommandBatch().add("crews/resetMomentum", crew_id=crew_id).commands)
        logger.info("Crew momentum reset", extra={"crew_id": crew_id})
        return self.crew(crew_id)

    def validate_rally(self, character_id: str, trait_id: Optional[str] = None) -> ValidationResult:
        character = self.store.state.characters.get(character_id)
        if character is None:
            raise ConfigurationError(f"Unknown character: {character_id}")
        crew = self.store.state.crew_for_character(character_id)
        if crew is None:
            return ValidationResult.fail("no-crew", character_id=character_id)
        if not can_rally(crew, character.rally_available, self.config):
            return ValidationResult.fail(
                "rally-unavailable",
                momentum=crew.current_momentum,
                rally_available=character.rally_available,
            )
        if trait_id is not None:
            trait = character.find_trait(trait_id)
            if trait is None or not trait.disabled:
                return ValidationResult.fail("no-available-traits", trait_id=trait_id)
        return ValidationResult.ok()

    def rally(self, character_id: str, amount: int, trait_id: Optional[str] = None) -> RallyResult:
        result = self.validate_rally(character_id, trait_id)
        if not result.is_valid:
            if result.reason == "no-crew":
                raise ConfigurationError(f"Character {character_id} is not assigned to a crew")
            raise RallyUnavailable(f"Rally unavailable for {character_id}: {result.reason}")

        crew = self.crew_for_character(character_id)
        spent = max(0, min(int(amount), crew.current_momentum))
        batch = CommandBatch()
        if spent:
            batch.add("crews/spendMomentum", crew_id=crew.id, amount=spent)
        if trait_id is not None:
            batch.add("characters/enableTrait", character_id=character_id, trait_id=trait_id)
        batch.add("characters/useRally", character_id=character_id)
        self.store.dispatch(batch.commands)

        result = RallyResult(
            character_id=character_id,
            crew_id=crew.id,
            momentum_spent=spent,
            new_momentum=self.crew(crew.id).current_momentum,
            re_enabled_trait_id=trait_id,
        )
        self.store.event_bus.publish(
            RallyUsed(
                character_id=character_id,
                crew_id=crew.id,
                momentum_spent=spent,
                new_momentum=result.new_momentum,
                re_enabled_trait_id=trait_id,
            )
        )
        return result

    def validate_lean_into_trait(self, character_id: str, trait_id: str) -> ValidationResult:
        character = self.store.state.characters.get(character_id)
        if character is None:
            raise ConfigurationError(f"Unknown character: {character_id}")
        if self.store.state.crew_for_character(character_id) is None:
            return ValidationResult.fail("no-crew", character_id=character_id)
        trait = character.find_trait(trait_id)
        if trait is None or trait.disabled:
            return ValidationResult.fail("no-available-traits", trait_id=trait_id)
        return ValidationResult.ok()

    def lean_into_trait(self, character_id: str, trait_id: str) -> int:
        result = self.validate_lean_into_trait(character_id, trait_id)
        if not result.is_valid:
            if result.reason == "no-crew":
                raise ConfigurationError(f"Character {character_id} is not assigned to a crew")
            raise StateError(f"Cannot lean into trait {trait_id}: {result.reason}")
        crew = self.crew_for_character(character_id)
        self.store.dispatch(
            CommandBatch()
            .add("characters/disableTrait", character_id=character_id, trait_id=trait_id)
            .add("crews/addMomentum", crew_id=crew.id, amount=self.config.rally.lean_into_trait_gain)
            .commands
        )
        gain = self.config.rally.lean_into_trait_gain
        self.store.event_bus.publish(
            LeanedIntoTrait(character_id=character_id, crew_id=crew.id, trait_id=trait_id, momentum_gain=gain)
        )
        return self.crew(crew.id).current_momentum
