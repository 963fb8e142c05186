from __future__ import annotations

from rich.console import Console

from fitgd.application.services.turn_service import TurnService
from fitgd.domain.models.character import Equipment, Trait, TraitCategory
from fitgd.domain.models.turn_state import PushType, TurnPhase
from fitgd.presentation.console import (
    render_crew_status,
    render_probabilities,
    render_roll,
    render_turn_view,
)


def seed_roster(service: TurnService) -> tuple[str, str, str]:
    """Two soldiers and their crew; returns (crew_id, first_id, second_id)."""
    kess = service.create_character(
        "Kess",
        approaches={"force": 2, "guile": 1, "focus": 1, "spirit": 0},
        traits=[Trait(id="trait-kess-1", name="Veteran of Ilion", category=TraitCategory.ROLE)],
        equipment=[Equipment(id="eq-kess-1", name="Plasma carbine", dice_bonus=1)],
    )
    orrin = service.create_character(
        "Orrin",
        approaches={"force": 0, "guile": 2, "focus": 2, "spirit": 0},
        traits=[Trait(id="trait-orrin-1", name="Hive-city ganger", category=TraitCategory.BACKGROUND)],
    )
    crew = service.create_crew("Ashen Lancers", [kess.id, orrin.id])
    return crew.id, kess.id, orrin.id


def play_turn(service: TurnService, console: Console, character_id: str, approach: str, *, push: bool = False) -> None:
    name = service.state.characters[character_id].name
    service.begin_turn(character_id, "risky", "standard")
    service.set_action_plan(character_id, approach)
    if push:
        service.push(character_id, PushType.EXTRA_DIE)
    render_turn_view(console, service.turn_view(character_id))
    render_probabilities(console, service.probabilities(character_id), service.machine.dice_pool(character_id))

    result = service.commit_roll(character_id)
    render_roll(console, name, result)

    phase = service.machine.phase(character_id)
    if phase is TurnPhase.SUCCESS_COMPLETE:
        service.accept_success(character_id)
        return

    if result.outcome.value == "failure":
        stims = service.stims.validate(character_id)
        if stims.is_valid:
            outcome = service.use_stims(character_id)
            if outcome.reroll is not None:
                render_roll(console, f"{name} (stims)", outcome.reroll)
            if service.machine.phase(character_id) is TurnPhase.SUCCESS_COMPLETE:
                service.accept_success(character_id)
                return

    if service.machine.phase(character_id) is TurnPhase.STIMS_LOCKED:
        service.machine.transition(character_id, TurnPhase.GM_RESOLVING_CONSEQUENCE)
    service.set_consequence(character_id, "harm", harm_subtype="physical")
    service.apply_consequence(character_id)


def run_demo(service: TurnService, console: Console | None = None) -> None:
    console = console or Console()
    console.rule("[bold]Forged in the Dark turn demo[/bold]")
    _, kess_id, orrin_id = seed_roster(service)
    play_turn(service, console, kess_id, "force", push=True)
    play_turn(service, console, orrin_id, "guile")
    render_crew_status(console, service.state)
    stats = service.history_stats()
    console.print(f"[dim]{stats.total_commands} command(s) recorded.[/dim]")
