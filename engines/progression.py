"""Level and unlock policy for the emotion curriculum.

The policy is deliberately rule based so that every level change and every
unlocked tier can be explained to a therapist: levels follow aggregate
accuracy and session counts, tiers follow per-emotion mastery. Both only ever
move forward.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from emotion_catalog import EMOTION_CATALOG, EmotionCatalog
from schemas import LearnerProgress

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class LevelRule:
    level: int
    min_accuracy: float
    min_sessions: int


DEFAULT_LEVEL_RULES: Tuple[LevelRule, ...] = (
    LevelRule(level=3, min_accuracy=0.8, min_sessions=20),
    LevelRule(level=2, min_accuracy=0.6, min_sessions=10),
)


@dataclass
class ProgressionResult:
    """Outcome of a progression evaluation."""

    previous_level: int
    new_level: int
    unlocked: Set[str]
    newly_unlocked: Set[str] = field(default_factory=set)
    new_achievements: Set[str] = field(default_factory=set)

    @property
    def level_changed(self) -> bool:
        return self.new_level != self.previous_level


class ProgressionPolicy:
    """Tier-gated unlocks plus monotonic accuracy/session levels.

    Parameters
    ----------
    level_rules:
        ``LevelRule`` entries; the highest level whose accuracy and session
        requirements are both met wins. Learners meeting none stay at 1.
    catalog:
        Emotion catalog providing tier membership and order.
    """

    def __init__(
        self,
        level_rules: Sequence[LevelRule] = DEFAULT_LEVEL_RULES,
        catalog: EmotionCatalog = EMOTION_CATALOG,
    ) -> None:
        for rule in level_rules:
            if rule.level < 2:
                raise ValueError("level rules must describe levels above 1")
            if not 0.0 <= rule.min_accuracy <= 1.0:
                raise ValueError("min_accuracy must be within [0, 1]")
            if rule.min_sessions < 0:
                raise ValueError("min_sessions must be non-negative")
        self.level_rules: Tuple[LevelRule, ...] = tuple(
            sorted(level_rules, key=lambda rule: rule.level, reverse=True)
        )
        self.catalog = catalog

    # ----- levels ------------------------------------------------------
    def computed_level(self, overall_accuracy: float, total_sessions: int) -> int:
        for rule in self.level_rules:
            if overall_accuracy >= rule.min_accuracy and total_sessions >= rule.min_sessions:
                return rule.level
        return 1

    def level_for(self, progress: LearnerProgress) -> int:
        """Return the learner's level; never lower than the current one."""

        computed = self.computed_level(progress.overall_accuracy, progress.total_sessions)
        return max(progress.current_level, computed)

    # ----- unlocks -----------------------------------------------------
    def next_unlock_set(self, mastered: Iterable[str], current_unlocked: Iterable[str]) -> Set[str]:
        """Return the selectable emotions after applying tier gating.

        A tier opens once every emotion of all lower tiers is mastered. The
        result always contains ``current_unlocked``.
        """

        mastered_set = set(mastered)
        unlocked = set(current_unlocked)
        required: Set[str] = set()
        for index, (_tier, members) in enumerate(self.catalog.tiers()):
            if index == 0 or required <= mastered_set:
                unlocked.update(members)
            else:
                break
            required.update(members)
        return unlocked

    def next_locked_tier(self, unlocked: Iterable[str]) -> Optional[Tuple[str, Tuple[str, ...]]]:
        """Return the first tier that still has locked members, if any."""

        unlocked_set = set(unlocked)
        for tier, members in self.catalog.tiers():
            if not set(members) <= unlocked_set:
                return tier, members
        return None

    # ----- achievements ------------------------------------------------
    def achievements_for(self, progress: LearnerProgress) -> Set[str]:
        """Return the achievements earned so far, including earlier ones."""

        earned = set(progress.achievements_unlocked)
        for achievement_id, reached in self._achievement_checks(progress):
            if reached:
                earned.add(achievement_id)
        return earned

    def _achievement_checks(self, progress: LearnerProgress) -> List[Tuple[str, bool]]:
        enough_questions = progress.total_questions >= 10
        complex_members = set(self.catalog.tier_members("complex"))
        return [
            ("first_session", progress.total_sessions >= 1),
            ("consistency_champion", progress.total_sessions >= 10),
            ("streak_5", progress.best_streak >= 5),
            ("streak_10", progress.best_streak >= 10),
            ("accuracy_80", enough_questions and progress.overall_accuracy >= 0.8),
            ("accuracy_90", enough_questions and progress.overall_accuracy >= 0.9),
            ("speech_starter", len(progress.speech_practice_history) >= 1),
            ("speech_explorer", len(progress.speech_practice_history) >= 5),
            ("conversation_starter", len(progress.conversation_history) >= 1),
            ("conversation_guide", len(progress.conversation_history) >= 5),
            ("mimicry_starter", len(progress.mimicry_history) >= 1),
            ("mimicry_master", len(progress.mimicry_history) >= 5),
            ("complex_tier_unlocked", complex_members <= progress.unlocked_emotions),
            ("all_emotions_unlocked", set(self.catalog.sequence()) <= progress.unlocked_emotions),
        ]

    # ----- combined ----------------------------------------------------
    def evaluate(self, progress: LearnerProgress, mastered: Iterable[str]) -> ProgressionResult:
        """Recompute level, unlocks and achievements for ``progress``."""

        unlocked = self.next_unlock_set(mastered, progress.unlocked_emotions)
        newly_unlocked = unlocked - progress.unlocked_emotions
        new_level = self.level_for(progress)

        probe = progress.model_copy(update={"unlocked_emotions": unlocked, "current_level": new_level})
        achievements = self.achievements_for(probe)
        new_achievements = achievements - progress.achievements_unlocked

        if new_level != progress.current_level:
            _LOGGER.info("Level advanced from %s to %s", progress.current_level, new_level)
        if newly_unlocked:
            _LOGGER.info("Unlocked emotions: %s", ", ".join(sorted(newly_unlocked)))

        return ProgressionResult(
            previous_level=progress.current_level,
            new_level=new_level,
            unlocked=unlocked,
            newly_unlocked=newly_unlocked,
            new_achievements=new_achievements,
        )
