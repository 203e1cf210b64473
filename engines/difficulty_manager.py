"""Round-to-round difficulty adjustment for emotion practice."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from emotion_catalog import EMOTION_CATALOG, EmotionCatalog
from engines.progression import ProgressionPolicy
from engines.validation import validate_accuracy, validate_emotional_state, validate_round_outcome
from schemas import EmotionalState, RoundOutcome

logger = logging.getLogger(__name__)

INTERVENTION_KINDS = (
    "breakTime",
    "calmingExercise",
    "clearerInstructions",
    "visualHints",
    "encouragement",
)


@dataclass
class DifficultyAdjustment:
    difficulty_delta: str = "maintain"  # 'increase', 'decrease', 'maintain'
    time_limit_delta_seconds: int = 0
    emotion_focus: List[str] = field(default_factory=list)
    interventions: List[str] = field(default_factory=list)
    break_seconds: int = 0

    def add_intervention(self, kind: str) -> None:
        if kind not in INTERVENTION_KINDS:
            raise ValueError(f"Unknown intervention: {kind}")
        if kind not in self.interventions:
            self.interventions.append(kind)


class DifficultyAdapter:
    """Combine an accuracy rule with an emotional-state rule.

    The accuracy rule sets the direction, the time limit change and the
    emotion focus. The emotional-state rule only adds interventions, except
    for ``confident`` which forces ``increase``.
    """

    def __init__(
        self,
        lower_accuracy: float = 0.6,
        upper_accuracy: float = 0.85,
        extend_seconds: int = 10,
        reduce_seconds: int = 5,
        break_seconds: int = 30,
        catalog: EmotionCatalog = EMOTION_CATALOG,
        policy: Optional[ProgressionPolicy] = None,
    ) -> None:
        if not 0.0 <= lower_accuracy < upper_accuracy <= 1.0:
            raise ValueError("lower_accuracy must be lower than upper_accuracy")
        if extend_seconds < 0 or reduce_seconds < 0 or break_seconds < 0:
            raise ValueError("time values must be non-negative")
        self.lower_accuracy = float(lower_accuracy)
        self.upper_accuracy = float(upper_accuracy)
        self.extend_seconds = int(extend_seconds)
        self.reduce_seconds = int(reduce_seconds)
        self.break_seconds = int(break_seconds)
        self.catalog = catalog
        self.policy = policy or ProgressionPolicy(catalog=catalog)

    def adjust(
        self,
        outcome: RoundOutcome,
        emotional_state: Optional[EmotionalState] = None,
        *,
        recent_accuracy: Optional[float] = None,
        unlocked_emotions: Optional[Iterable[str]] = None,
    ) -> DifficultyAdjustment:
        """Compute the next round's parameters.

        ``recent_accuracy`` is the rolling accuracy chosen by the caller,
        usually the accuracy of the last session. Without it the single
        round's correctness is used.
        """

        validate_round_outcome(outcome)
        validate_emotional_state(emotional_state)
        if recent_accuracy is None:
            accuracy = 1.0 if outcome.is_correct else 0.0
        else:
            accuracy = validate_accuracy(recent_accuracy, "recent_accuracy")

        adjustment = DifficultyAdjustment()

        if accuracy < self.lower_accuracy:
            adjustment.difficulty_delta = "decrease"
            adjustment.time_limit_delta_seconds = self.extend_seconds
            adjustment.emotion_focus = list(self.catalog.clearest(2))
        elif accuracy > self.upper_accuracy:
            adjustment.difficulty_delta = "increase"
            adjustment.time_limit_delta_seconds = -self.reduce_seconds
            adjustment.emotion_focus = self._harder_focus(unlocked_emotions)

        if emotional_state is not None:
            self._apply_emotional_state(adjustment, emotional_state)

        logger.debug(
            "Adjustment for %s (accuracy=%.2f, state=%s): %s",
            outcome.emotion_target,
            accuracy,
            emotional_state.primary if emotional_state else None,
            adjustment,
        )
        return adjustment

    def _harder_focus(self, unlocked_emotions: Optional[Iterable[str]]) -> List[str]:
        if unlocked_emotions is None:
            return list(self.catalog.tier_members("complex"))
        unlocked = set(unlocked_emotions)
        locked_tier = self.policy.next_locked_tier(unlocked)
        if locked_tier is None:
            return list(self.catalog.tier_members("subtle"))
        _tier, members = locked_tier
        return [member for member in members if member not in unlocked]

    def _apply_emotional_state(self, adjustment: DifficultyAdjustment, state: EmotionalState) -> None:
        if state.primary == "frustrated":
            adjustment.add_intervention("breakTime")
            adjustment.add_intervention("calmingExercise")
            adjustment.break_seconds = self.break_seconds
        elif state.primary == "confident":
            adjustment.difficulty_delta = "increase"
        elif state.primary == "confused":
            adjustment.add_intervention("clearerInstructions")
            adjustment.add_intervention("visualHints")


def apply_time_limit(
    current_seconds: float,
    adjustment: DifficultyAdjustment,
    *,
    minimum: float = 10.0,
    maximum: float = 60.0,
) -> float:
    """Return the next question time limit clamped to ``[minimum, maximum]``."""

    if minimum > maximum:
        raise ValueError("minimum must not exceed maximum")
    proposed = current_seconds + adjustment.time_limit_delta_seconds
    return max(minimum, min(maximum, proposed))
