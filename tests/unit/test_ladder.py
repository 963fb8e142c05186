import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from fitgd.domain.models.ladder import (
    Effect,
    Position,
    improve_effect,
    improve_position,
    is_best_position,
    is_worst_effect,
    worsen_effect,
    worsen_position,
)


class LadderTests(unittest.TestCase):
    def test_improve_position_moves_one_step_toward_controlled(self) -> None:
        self.assertEqual(Position.RISKY, improve_position(Position.DESPERATE))
        self.assertEqual(Position.CONTROLLED, improve_position("risky"))

    def test_position_steps_clamp_at_ladder_ends(self) -> None:
        self.assertEqual(Position.CONTROLLED, improve_position(Position.CONTROLLED))
        self.assertEqual(Position.IMPOSSIBLE, worsen_position(Position.IMPOSSIBLE))
        self.assertEqual(Position.CONTROLLED, improve_position(Position.IMPOSSIBLE, steps=10))

    def test_effect_steps_clamp_at_ladder_ends(self) -> None:
        self.assertEqual(Effect.GREAT, improve_effect(Effect.STANDARD))
        self.assertEqual(Effect.SPECTACULAR, improve_effect(Effect.SPECTACULAR))
        self.assertEqual(Effect.LIMITED, worsen_effect(Effect.STANDARD))
        self.assertEqual(Effect.LIMITED, worsen_effect(Effect.LIMITED))

    def test_improve_and_worsen_are_inverses_away_from_the_ends(self) -> None:
        ladders = (
            (list(Position), improve_position, worsen_position),
            (list(Effect), improve_effect, worsen_effect),
        )
        for ladder, improve, worsen in ladders:
            for value in ladder[:-1]:
                with self.subTest(value=value, direction="improve"):
                    self.assertEqual(value, worsen(improve(value)))
            for value in ladder[1:]:
                with self.subTest(value=value, direction="worsen"):
                    self.assertEqual(value, improve(worsen(value)))

    def test_normalize_accepts_mixed_case_and_rejects_unknown_values(self) -> None:
        self.assertEqual(Position.DESPERATE, Position.normalize(" Desperate "))
        self.assertEqual(Effect.GREAT, Effect.normalize("GREAT"))
        with self.assertRaises(ValueError):
            Position.normalize("safe")
        with self.assertRaises(ValueError):
            Effect.normalize(None)

    def test_ladder_extremes(self) -> None:
        self.assertTrue(is_best_position("controlled"))
        self.assertFalse(is_best_position("risky"))
        self.assertTrue(is_worst_effect(Effect.LIMITED))
        self.assertFalse(is_worst_effect(Effect.STANDARD))


if __name__ == "__main__":
    unittest.main()
