from __future__ import annotations

from typing import Iterable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from fitgd.application.dtos import DiceProbabilities, RollResult, TurnView
from fitgd.domain.events import Notification
from fitgd.domain.models.game_state import GameState

_LEVEL_STYLES = {"info": "cyan", "warning": "yellow", "error": "red"}
_OUTCOME_STYLES = {"critical": "bold green", "success": "green", "partial": "yellow", "failure": "red"}


def render_dice(dice: Iterable[int], *, kept_lowest: bool = False) -> str:
    faces = "  ".join(f"[{face}]" for face in dice)
    return f"{faces}  (lowest kept)" if kept_lowest else faces


def render_turn_view(console: Console, view: TurnView) -> None:
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column(style="dim")
    table.add_column()
    table.add_row("Phase", view.phase)
    table.add_row("Approach", view.approach or "-")
    position = view.base_position
    if view.effective_position != view.base_position:
        position = f"{view.base_position} -> {view.effective_position}"
    effect = view.base_effect
    if view.effective_effect != view.base_effect:
        effect = f"{view.base_effect} -> {view.effective_effect}"
    table.add_row("Position", position)
    table.add_row("Effect", effect)
    table.add_row("Dice pool", str(view.dice_pool))
    table.add_row("Momentum cost", str(view.momentum_cost))
    if view.crew_momentum is not None:
        table.add_row("Crew momentum", str(view.crew_momentum))
    if view.roll:
        style = _OUTCOME_STYLES.get(view.outcome or "", "white")
        table.add_row("Roll", f"{render_dice(view.roll)}  [{style}]{view.outcome}[/{style}]")
    border = "red" if view.dying else "yellow"
    console.print(Panel.fit(table, title=f"[bold]{view.character_name}[/bold]", border_style=border))


def render_roll(console: Console, name: str, result: RollResult) -> None:
    style = _OUTCOME_STYLES.get(result.outcome.value, "white")
    console.print(
        Panel.fit(
            f"{render_dice(result.dice, kept_lowest=result.kept_lowest)}\n[{style}]{result.outcome.value.upper()}[/{style}]",
            title=f"[bold yellow]{name} rolls {result.dice_pool}d6[/bold yellow]",
            border_style="yellow",
        )
    )


def render_probabilities(console: Console, probabilities: DiceProbabilities, dice_pool: int) -> None:
    table = Table(title=f"Odds for {dice_pool}d6")
    table.add_column("Outcome")
    table.add_column("Chance", justify="right")
    for outcome, value in probabilities.as_percent(1).items():
        style = _OUTCOME_STYLES.get(outcome, "white")
        table.add_row(f"[{style}]{outcome}[/{style}]", f"{value:.1f}%")
    console.print(table)


def render_notification(console: Console, notification: Notification) -> None:
    style = _LEVEL_STYLES.get(notification.level, "white")
    console.print(f"[{style}]{notification.title}:[/{style}] {notification.message}")


def render_crew_status(console: Console, state: GameState) -> None:
    table = Table(title="Crew status")
    table.add_column("Crew")
    table.add_column("Momentum", justify="right")
    table.add_column("Member")
    table.add_column("Clocks")
    for crew in state.crews.values():
        members = crew.characters or [""]
        for index, character_id in enumerate(members):
            character = state.characters.get(character_id)
            clocks = ", ".join(
                f"{clock.subtype or clock.clock_type.value} {clock.segments}/{clock.max_segments}"
                for clock in state.clocks_for_owner(character_id)
            )
            table.add_row(
                crew.name if index == 0 else "",
                str(crew.current_momentum) if index == 0 else "",
                character.name if character is not None else character_id,
                clocks or "-",
            )
    console.print(table)
