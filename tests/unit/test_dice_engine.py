import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from fitgd.application.services.dice_engine import (
    DESPERATE_ROLL_PROBABILITIES,
    calculate_dice_pool,
    calculate_dice_probabilities,
    classify_outcome,
    format_probabilities_percent,
    roll_outcome,
)
from fitgd.domain.models.character import Character, Equipment
from fitgd.domain.models.turn_state import PlayerTurnState, PushType, RollMode, RollOutcome
from fitgd.infrastructure.randomness import RandomDiceRoller, ScriptedDiceRoller


def _character() -> Character:
    return Character(
        id="kess",
        name="Kess",
        approaches={"force": 2, "guile": 1, "focus": 0, "spirit": 3},
        equipment=[
            Equipment(id="carbine", name="Plasma carbine", dice_bonus=1),
            Equipment(id="scope", name="Auspex scope", category="passive", dice_bonus=1),
            Equipment(id="blade", name="Chain blade", dice_bonus=1, equipped=False),
        ],
    )


class DiceProbabilityTests(unittest.TestCase):
    def test_three_dice_pool_matches_closed_form_outcomes(self) -> None:
        percent = calculate_dice_probabilities(3).as_percent(1)

        self.assertEqual(34.7, percent["success"])
        self.assertEqual(7.4, percent["critical"])
        self.assertEqual(45.4, percent["partial"])
        self.assertEqual(12.5, percent["failure"])

    def test_probabilities_sum_to_one_for_every_pool(self) -> None:
        for pool in range(1, 9):
            with self.subTest(pool=pool):
                self.assertAlmostEqual(1.0, calculate_dice_probabilities(pool).total, places=9)

    def test_zero_pool_uses_desperate_roll_constants(self) -> None:
        self.assertEqual(DESPERATE_ROLL_PROBABILITIES, calculate_dice_probabilities(0))
        self.assertEqual(DESPERATE_ROLL_PROBABILITIES, calculate_dice_probabilities(-2))
        self.assertEqual(0.0, DESPERATE_ROLL_PROBABILITIES.critical)

    def test_exact_desperate_roll_is_derived_from_lowest_of_two(self) -> None:
        exact = calculate_dice_probabilities(0, exact_desperate=True)

        self.assertAlmostEqual(1 / 36, exact.success)
        self.assertAlmostEqual(8 / 36, exact.partial)
        self.assertAlmostEqual(27 / 36, exact.failure)
        self.assertAlmostEqual(1.0, exact.total)

    def test_percent_formatting_uses_one_decimal(self) -> None:
        formatted = format_probabilities_percent(calculate_dice_probabilities(1))

        self.assertEqual("16.7%", formatted["success"])
        self.assertEqual("0.0%", formatted["critical"])
        self.assertEqual("50.0%", formatted["failure"])


class OutcomeClassificationTests(unittest.TestCase):
    def test_classification_follows_highest_die_and_sixes(self) -> None:
        self.assertEqual(RollOutcome.CRITICAL, classify_outcome([6, 6, 1]))
        self.assertEqual(RollOutcome.SUCCESS, classify_outcome([2, 6]))
        self.assertEqual(RollOutcome.PARTIAL, classify_outcome([1, 4]))
        self.assertEqual(RollOutcome.PARTIAL, classify_outcome([5]))
        self.assertEqual(RollOutcome.FAILURE, classify_outcome([3, 2, 1]))
        self.assertEqual(RollOutcome.FAILURE, classify_outcome([]))

    def test_zero_pool_roll_keeps_lowest_of_two(self) -> None:
        roller = ScriptedDiceRoller([6, 2])

        result = roll_outcome(0, roller)

        self.assertEqual([2], result.dice)
        self.assertEqual(RollOutcome.FAILURE, result.outcome)
        self.assertTrue(result.kept_lowest)
        self.assertEqual([("roll_keep_lowest", 2)], roller.calls)

    def test_zero_pool_can_never_crit(self) -> None:
        result = roll_outcome(0, ScriptedDiceRoller([6, 6]))

        self.assertEqual(RollOutcome.SUCCESS, result.outcome)

    def test_roll_outcome_sorts_dice(self) -> None:
        result = roll_outcome(3, ScriptedDiceRoller([5, 1, 3]))

        self.assertEqual([1, 3, 5], result.dice)
        self.assertEqual(RollOutcome.PARTIAL, result.outcome)

    def test_seeded_random_roller_is_repeatable(self) -> None:
        first = RandomDiceRoller(seed=11).roll(5)
        second = RandomDiceRoller(seed=11).roll(5)

        self.assertEqual(first, second)
        self.assertTrue(all(1 <= face <= 6 for face in first))


class DicePoolTests(unittest.TestCase):
    def test_pool_is_approach_rating(self) -> None:
        turn = PlayerTurnState(character_id="kess", selected_approach="force")

        self.assertEqual(2, calculate_dice_pool(_character(), turn))

    def test_synergy_adds_secondary_approach(self) -> None:
        turn = PlayerTurnState(
            character_id="kess",
            selected_approach="force",
            secondary_approach="spirit",
            roll_mode=RollMode.SYNERGY,
        )

        self.assertEqual(5, calculate_dice_pool(_character(), turn))

    def test_secondary_approach_ignored_outside_synergy(self) -> None:
        turn = PlayerTurnState(character_id="kess", selected_approach="force", secondary_approach="spirit")

        self.assertEqual(2, calculate_dice_pool(_character(), turn))

    def test_equipment_counts_each_item_once(self) -> None:
        turn = PlayerTurnState(
            character_id="kess",
            selected_approach="guile",
            active_equipment_ids=["carbine", "carbine", "unknown"],
            passive_equipment_id="scope",
        )

        self.assertEqual(3, calculate_dice_pool(_character(), turn))

    def test_unequipped_items_add_no_dice(self) -> None:
        turn = PlayerTurnState(character_id="kess", selected_approach="guile", active_equipment_ids=["blade"])

        self.assertEqual(1, calculate_dice_pool(_character(), turn))

    def test_passive_slot_only_accepts_passive_gear(self) -> None:
        active_in_passive_slot = PlayerTurnState(
            character_id="kess",
            selected_approach="guile",
            passive_equipment_id="carbine",
        )
        passive = PlayerTurnState(character_id="kess", selected_approach="guile", passive_equipment_id="scope")

        self.assertEqual(1, calculate_dice_pool(_character(), active_in_passive_slot))
        self.assertEqual(2, calculate_dice_pool(_character(), passive))

    def test_push_extra_die_and_flashback_each_add_one(self) -> None:
        turn = PlayerTurnState(
            character_id="kess",
            selected_approach="focus",
            pushed=True,
            push_type=PushType.EXTRA_DIE,
            flashback_applied=True,
        )

        self.assertEqual(2, calculate_dice_pool(_character(), turn))

    def test_improved_effect_push_adds_no_dice(self) -> None:
        turn = PlayerTurnState(
            character_id="kess",
            selected_approach="focus",
            pushed=True,
            push_type=PushType.IMPROVED_EFFECT,
        )

        self.assertEqual(0, calculate_dice_pool(_character(), turn))


if __name__ == "__main__":
    unittest.main()
