import unittest

from emotion_catalog import BASIC_EMOTIONS, COMPLEX_EMOTIONS, SUBTLE_EMOTIONS
from engines.progression import LevelRule, ProgressionPolicy
from schemas import LearnerProgress, default_progress


def _progress(**overrides) -> LearnerProgress:
    return LearnerProgress.model_validate({**dict(default_progress()), **overrides})


class LevelTests(unittest.TestCase):
    def setUp(self):
        self.policy = ProgressionPolicy()

    def test_level_three_requires_accuracy_and_sessions(self):
        progress = _progress(total_sessions=21, total_questions=100, total_correct_answers=82)
        self.assertEqual(self.policy.level_for(progress), 3)

    def test_level_two_thresholds(self):
        self.assertEqual(self.policy.computed_level(0.6, 10), 2)
        self.assertEqual(self.policy.computed_level(0.59, 30), 1)
        self.assertEqual(self.policy.computed_level(0.95, 9), 1)
        self.assertEqual(self.policy.computed_level(0.85, 19), 2)

    def test_level_never_decreases(self):
        progress = _progress(
            current_level=3, total_sessions=25, total_questions=100, total_correct_answers=50
        )
        self.assertEqual(self.policy.computed_level(0.5, 25), 1)
        self.assertEqual(self.policy.level_for(progress), 3)

    def test_rejects_rules_for_level_one(self):
        with self.assertRaises(ValueError):
            ProgressionPolicy(level_rules=[LevelRule(level=1, min_accuracy=0.5, min_sessions=1)])


class UnlockTests(unittest.TestCase):
    def setUp(self):
        self.policy = ProgressionPolicy()

    def test_basic_tier_always_unlocked(self):
        self.assertEqual(self.policy.next_unlock_set([], []), set(BASIC_EMOTIONS))

    def test_mastering_basic_unlocks_complex_only(self):
        unlocked = self.policy.next_unlock_set(BASIC_EMOTIONS, BASIC_EMOTIONS)
        self.assertEqual(unlocked, set(BASIC_EMOTIONS) | set(COMPLEX_EMOTIONS))
        self.assertTrue(set(SUBTLE_EMOTIONS).isdisjoint(unlocked))

    def test_subtle_needs_every_lower_tier(self):
        partial = set(BASIC_EMOTIONS) | set(COMPLEX_EMOTIONS[:2])
        self.assertTrue(set(SUBTLE_EMOTIONS).isdisjoint(self.policy.next_unlock_set(partial, partial)))
        everything = set(BASIC_EMOTIONS) | set(COMPLEX_EMOTIONS)
        self.assertTrue(set(SUBTLE_EMOTIONS) <= self.policy.next_unlock_set(everything, everything))

    def test_unlocks_are_monotonic(self):
        current = set(BASIC_EMOTIONS) | set(COMPLEX_EMOTIONS)
        self.assertEqual(self.policy.next_unlock_set([], current), current)

    def test_next_locked_tier(self):
        self.assertEqual(self.policy.next_locked_tier(BASIC_EMOTIONS), ("complex", COMPLEX_EMOTIONS))
        everything = set(BASIC_EMOTIONS) | set(COMPLEX_EMOTIONS) | set(SUBTLE_EMOTIONS)
        self.assertIsNone(self.policy.next_locked_tier(everything))


class EvaluateTests(unittest.TestCase):
    def test_evaluate_reports_changes_and_achievements(self):
        policy = ProgressionPolicy()
        progress = _progress(
            total_sessions=10,
            total_questions=20,
            total_correct_answers=19,
            best_streak=12,
            current_streak=3,
        )
        result = policy.evaluate(progress, BASIC_EMOTIONS)

        self.assertEqual(result.previous_level, 1)
        self.assertEqual(result.new_level, 2)
        self.assertTrue(result.level_changed)
        self.assertEqual(result.newly_unlocked, set(COMPLEX_EMOTIONS))
        for achievement in (
            "first_session",
            "consistency_champion",
            "streak_5",
            "streak_10",
            "accuracy_80",
            "accuracy_90",
            "complex_tier_unlocked",
        ):
            self.assertIn(achievement, result.new_achievements)
        self.assertNotIn("all_emotions_unlocked", result.new_achievements)

    def test_accuracy_achievements_need_ten_questions(self):
        policy = ProgressionPolicy()
        progress = _progress(total_questions=9, total_correct_answers=9, best_streak=9, current_streak=9)
        earned = policy.achievements_for(progress)
        self.assertNotIn("accuracy_90", earned)
        self.assertIn("streak_5", earned)

    def test_existing_achievements_are_not_reported_again(self):
        policy = ProgressionPolicy()
        progress = _progress(total_sessions=1, achievements_unlocked={"first_session"})
        result = policy.evaluate(progress, [])
        self.assertNotIn("first_session", result.new_achievements)
        self.assertFalse(result.level_changed)


if __name__ == "__main__":
    unittest.main()
