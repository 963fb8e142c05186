from __future__ import annotations

from typing import Iterable, List, Protocol, Sequence

from fitgd.application.dtos import DiceProbabilities, RollResult
from fitgd.domain.models.character import Character, EquipmentCategory
from fitgd.domain.models.turn_state import PlayerTurnState, PushType, RollMode, RollOutcome

# 2d6-keep-lowest approximation used for a zero-dice pool.
DESPERATE_ROLL_PROBABILITIES = DiceProbabilities(
    critical=0.0,
    success=0.0278,
    partial=0.3056,
    failure=0.6667,
)


class DiceRoller(Protocol):
    def roll(self, count: int) -> List[int]:
        ...

    def roll_keep_lowest(self, count: int = 2) -> int:
        ...


def equipment_bonus(
    character: Character,
    equipment_ids: Iterable[str],
    passive_equipment_id: str | None = None,
) -> int:
    """Dice from equipped items; the passive slot only takes passive gear."""
    equipment_ids = list(equipment_ids)
    total = 0
    for equipment_id in dict.fromkeys(value for value in equipment_ids if value):
        item = character.find_equipment(equipment_id)
        if item is not None and item.equipped:
            total += int(item.dice_bonus)
    if passive_equipment_id and passive_equipment_id not in equipment_ids:
        item = character.find_equipment(passive_equipment_id)
        if item is not None and item.equipped and item.category is EquipmentCategory.PASSIVE:
            total += int(item.dice_bonus)
    return total


def calculate_dice_pool(character: Character, turn: PlayerTurnState) -> int:
    pool = character.approach_rating(turn.selected_approach)
    if turn.roll_mode is RollMode.SYNERGY:
        pool += character.approach_rating(turn.secondary_approach)

    pool += equipment_bonus(character, list(turn.active_equipment_ids), turn.passive_equipment_id)

    if turn.pushed and turn.push_type is PushType.EXTRA_DIE:
        pool += 1
    if turn.flashback_applied:
        pool += 1
    return max(0, pool)


def classify_outcome(dice: Sequence[int]) -> RollOutcome:
    if not dice:
        return RollOutcome.FAILURE
    sixes = sum(1 for die in dice if die == 6)
    if sixes >= 2:
        return RollOutcome.CRITICAL
    if sixes == 1:
        return RollOutcome.SUCCESS
    if max(dice) >= 4:
        return RollOutcome.PARTIAL
    return RollOutcome.FAILURE


def roll_outcome(dice_pool: int, roller: DiceRoller) -> RollResult:
    if dice_pool <= 0:
        lowest = int(roller.roll_keep_lowest(2))
        return RollResult(dice_pool=0, dice=[lowest], outcome=classify_outcome([lowest]), kept_lowest=True)
    dice = sorted(int(value) for value in roller.roll(dice_pool))
    return RollResult(dice_pool=dice_pool, dice=dice, outcome=classify_outcome(dice))


def _desperate_roll_exact() -> DiceProbabilities:
    # Lowest of two d6: P(min >= k) = ((7 - k) / 6) ** 2
    at_least_six = (1 / 6) ** 2
    at_least_four = (3 / 6) ** 2
    return DiceProbabilities(
        critical=0.0,
        success=at_least_six,
        partial=at_least_four - at_least_six,
        failure=1 - at_least_four,
    )


def calculate_dice_probabilities(dice_pool: int, *, exact_desperate: bool = False) -> DiceProbabilities:
    n = int(dice_pool)
    if n <= 0:
        return _desperate_roll_exact() if exact_desperate else DESPERATE_ROLL_PROBABILITIES

    no_six = (5 / 6) ** n
    all_low = (1 / 2) ** n
    exactly_one_six = n * (1 / 6) * (5 / 6) ** (n - 1)
    return DiceProbabilities(
        critical=max(0.0, 1 - no_six - exactly_one_six),
        success=exactly_one_six,
        partial=no_six - all_low,
        failure=all_low,
    )


def format_probabilities_percent(probabilities: DiceProbabilities) -> dict[str, str]:
    return {key: f"{value:.1f}%" for key, value in probabilities.as_percent(1).items()}
