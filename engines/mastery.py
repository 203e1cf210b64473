"""Per-emotion mastery classification from a rolling window of attempts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from statistics import pvariance
from typing import Dict, Iterable, List, Sequence

from schemas import RoundOutcome

logger = logging.getLogger(__name__)

CLASSIFICATIONS = ("struggling", "learning", "proficient", "mastered")
TRENDS = ("improving", "flat", "declining")


@dataclass(frozen=True)
class EmotionMasteryState:
    emotion: str
    accuracy: float
    trend: str
    classification: str
    attempts: int = 0
    consistent: bool = False


class MasteryTracker:
    """Classify mastery of one emotion from its most recent attempts.

    Parameters
    ----------
    window_size:
        Maximum number of recent attempts for the emotion that are inspected.
    trend_tolerance:
        Minimum accuracy difference between the later and the earlier half of
        the window before the trend counts as improving or declining.
    consistency_threshold:
        Upper bound (exclusive) on the population variance of the 0/1
        outcomes in the window for performance to count as consistent.
    min_consistent_attempts:
        Minimum number of attempts required before performance can be
        considered consistent at all.
    """

    def __init__(
        self,
        window_size: int = 10,
        trend_tolerance: float = 0.1,
        consistency_threshold: float = 0.1,
        min_consistent_attempts: int = 5,
        mastered_threshold: float = 0.9,
        proficient_threshold: float = 0.7,
        learning_threshold: float = 0.5,
    ) -> None:
        if window_size <= 0:
            raise ValueError("window_size must be positive")
        if not 0.0 <= trend_tolerance < 1.0:
            raise ValueError("trend_tolerance must be in [0, 1)")
        if consistency_threshold <= 0.0:
            raise ValueError("consistency_threshold must be positive")
        if min_consistent_attempts <= 0:
            raise ValueError("min_consistent_attempts must be positive")
        if not 0.0 <= learning_threshold <= proficient_threshold <= mastered_threshold <= 1.0:
            raise ValueError("thresholds must satisfy learning <= proficient <= mastered")

        self.window_size = int(window_size)
        self.trend_tolerance = float(trend_tolerance)
        self.consistency_threshold = float(consistency_threshold)
        self.min_consistent_attempts = int(min_consistent_attempts)
        self.mastered_threshold = float(mastered_threshold)
        self.proficient_threshold = float(proficient_threshold)
        self.learning_threshold = float(learning_threshold)

    # ----- public API --------------------------------------------------
    def classify(self, emotion: str, history: Iterable[RoundOutcome]) -> EmotionMasteryState:
        """Classify ``emotion`` from ``history`` given in chronological order."""

        window = self.window(emotion, history)
        if not window:
            return EmotionMasteryState(
                emotion=emotion,
                accuracy=0.0,
                trend="flat",
                classification="struggling",
            )

        outcomes = [1.0 if item.is_correct else 0.0 for item in window]
        accuracy = sum(outcomes) / len(outcomes)
        trend = self._trend(outcomes)
        consistent = self._is_consistent(outcomes)

        if accuracy >= self.mastered_threshold and consistent:
            classification = "mastered"
        elif accuracy >= self.proficient_threshold and trend == "improving":
            classification = "proficient"
        elif accuracy >= self.learning_threshold:
            classification = "learning"
        else:
            classification = "struggling"

        logger.debug(
            "Mastery for %s: accuracy=%.2f trend=%s consistent=%s -> %s",
            emotion,
            accuracy,
            trend,
            consistent,
            classification,
        )
        return EmotionMasteryState(
            emotion=emotion,
            accuracy=accuracy,
            trend=trend,
            classification=classification,
            attempts=len(window),
            consistent=consistent,
        )

    def classify_all(
        self, emotions: Iterable[str], history: Sequence[RoundOutcome]
    ) -> Dict[str, EmotionMasteryState]:
        return {emotion: self.classify(emotion, history) for emotion in emotions}

    def mastered(self, emotions: Iterable[str], history: Sequence[RoundOutcome]) -> set[str]:
        return {
            emotion
            for emotion, state in self.classify_all(emotions, history).items()
            if state.classification == "mastered"
        }

    def window(self, emotion: str, history: Iterable[RoundOutcome]) -> List[RoundOutcome]:
        """Return the most recent ``window_size`` attempts for ``emotion``, oldest first."""

        matching = [item for item in history if item.emotion_target == emotion]
        return matching[-self.window_size :]

    # ----- helpers -----------------------------------------------------
    def _trend(self, outcomes: Sequence[float]) -> str:
        if len(outcomes) < 2:
            return "flat"
        half = len(outcomes) // 2
        earlier = outcomes[:half]
        later = outcomes[half:]
        delta = sum(later) / len(later) - sum(earlier) / len(earlier)
        if delta > self.trend_tolerance:
            return "improving"
        if delta < -self.trend_tolerance:
            return "declining"
        return "flat"

    def _is_consistent(self, outcomes: Sequence[float]) -> bool:
        if len(outcomes) < self.min_consistent_attempts:
            return False
        return pvariance(outcomes) < self.consistency_threshold
