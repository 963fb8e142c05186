"""Stims interrupt: reroll a bad result at the risk of crew-wide addiction.

Each step is committed as its own batch before the next one starts.
"""
from __future__ import annotations

import logging

from fitgd.application.config import GameConfig
from fitgd.application.dtos import CommandBatch, StimsWorkflowResult
from fitgd.application.services.clock_service import (
    ClockService,
    are_stims_locked,
    build_add_segments,
    find_addiction_clock,
    is_full,
)
from fitgd.application.services.dice_engine import DiceRoller
from fitgd.application.services.game_store import GameStore
from fitgd.application.services.turn_state_machine import PlayerTurnStateMachine
from fitgd.domain.errors import ConfigurationError, StateError, ValidationResult
from fitgd.domain.events import StimsUsed
from fitgd.domain.models.character import Trait, TraitCategory
from fitgd.domain.models.clock import Clock, ClockType
from fitgd.domain.models.turn_state import TurnPhase

logger = logging.getLogger(__name__)


def clamp_addiction_roll(value: object, sides: int = 6) -> int:
    try:
        roll = int(value)
    except (TypeError, ValueError):
        return 1
    if roll < 1:
        return 1
    return min(roll, sides)


class StimsInterruptWorkflow:
    def __init__(
        self,
        store: GameStore,
        clocks: ClockService,
        machine: PlayerTurnStateMachine,
        roller: DiceRoller,
    ) -> None:
        self.store = store
        self.clocks = clocks
        self.machine = machine
        self.roller = roller

    @property
    def config(self) -> GameConfig:
        return self.store.config

    def validate(self, character_id: str) -> ValidationResult:
        state = self.store.state
        turn = state.turns.get(character_id)
        if turn is None or turn.phase is not TurnPhase.GM_RESOLVING_CONSEQUENCE:
            return ValidationResult.fail("invalid-phase", phase=self.machine.phase(character_id).value)
        crew = state.crew_for_character(character_id)
        if crew is None:
            return ValidationResult.fail("no-crew", character_id=character_id)
        if turn.stims_used_this_action:
            return ValidationResult.fail("already-used")
        if are_stims_locked(state, crew.id):
            return ValidationResult.fail("team-addiction-locked", crew_id=crew.id)
        return ValidationResult.ok()

    def run(self, character_id: str) -> StimsWorkflowResult:
        result = self.validate(character_id)
        if not result.is_valid:
            logger.info("Stims rejected", extra={"character_id": character_id, "reason": result.reason})
            if result.reason == "no-crew":
                raise ConfigurationError(f"Character {character_id} is not assigned to a crew")
            raise StateError(f"Cannot use stims for {character_id}: {result.reason}")

        crew = self.store.state.crew_for_character(character_id)

        # 1. find or create the addiction clock
        clock = self._addiction_clock(character_id)

        # 2. addiction roll
        faces = self.roller.roll(1)
        addiction_roll = clamp_addiction_roll(faces[0] if faces else None, self.config.turn.stims_die_sides)

        # 3. advance the addiction clock
        self.store.dispatch(build_add_segments(clock.id, addiction_roll).commands)

        # 4. mark stims used
        self.store.dispatch(CommandBatch().add("turns/markStimsUsed", character_id=character_id).commands)

        clock = self.clocks.get(clock.id)
        locked = is_full(clock)
        reroll = None
        if locked:
            # 5. addiction filled: Addict scar and lockout, no reroll
            self.store.dispatch(self._lockout_batch(character_id).commands)
            logger.info("Addiction clock filled; stims locked", extra={"character_id": character_id, "crew_id": crew.id})
        else:
            # 6. reroll with the same dice-pool computation
            self.store.dispatch(
                CommandBatch()
                .add("turns/transitionState", character_id=character_id, to=TurnPhase.STIMS_ROLLING.value)
                .add("turns/clearConsequenceTransaction", character_id=character_id)
                .commands
            )
            self.store.dispatch(
                CommandBatch()
                .add("turns/transitionState", character_id=character_id, to=TurnPhase.ROLLING.value)
                .commands
            )
            reroll = self.machine.roll(character_id, reroll=True)

        self.store.event_bus.publish(
            StimsUsed(
                character_id=character_id,
                crew_id=crew.id,
                addiction_roll=addiction_roll,
                addiction_clock_id=clock.id,
                locked=locked,
            )
        )
        return StimsWorkflowResult(
            character_id=character_id,
            crew_id=crew.id,
            addiction_clock_id=clock.id,
            addiction_roll=addiction_roll,
            addiction_segments=clock.segments,
            addiction_max=clock.max_segments,
            locked=locked,
            reroll=reroll,
        )

    def _addiction_clock(self, character_id: str) -> Clock:
        existing = find_addiction_clock(self.store.state, character_id)
        if existing is not None:
            return existing
        return self.clocks.create_clock(
            character_id,
            ClockType.ADDICTION,
            "addiction",
            self.config.clocks.addiction_segments,
        )

    def _lockout_batch(self, character_id: str) -> CommandBatch:
        batch = CommandBatch()
        character = self.store.state.characters[character_id]
        already_addict = any(
            trait.category is TraitCategory.SCAR and trait.name == self.config.turn.addict_trait_name
            for trait in character.traits
        )
        if not already_addict:
            trait = Trait(
                id=self.store.new_id("trait"),
                name=self.config.turn.addict_trait_name,
                category=TraitCategory.SCAR,
                acquired_at=self.store.now(),
                description=self.config.turn.addict_trait_description,
            )
            batch.add("characters/addTrait", character_id=character_id, trait=trait.to_dict())
        batch.add("turns/transitionState", character_id=character_id, to=TurnPhase.STIMS_LOCKED.value)
        return batch
