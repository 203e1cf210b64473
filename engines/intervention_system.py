"""Engagement and frustration monitoring from external emotion readings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from schemas import MONITORED_STATES, EmotionalState

logger = logging.getLogger(__name__)

POSITIVE_READINGS = frozenset({"happy", "surprised", "neutral"})
NEGATIVE_READINGS = frozenset({"sad", "angry", "fear"})

# (engagement level, frustration level) -> action
_ACTION_TABLE: Dict[tuple[str, str], str] = {
    ("low", "high"): "take_break",
    ("low", "moderate"): "change_activity",
    ("moderate", "high"): "provide_encouragement",
    ("high", "low"): "continue_activity",
    ("high", "moderate"): "adjust_difficulty",
}


@dataclass
class MonitoringStats:
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    total_readings: int = 0
    high_confidence_readings: int = 0
    engagement_score: float = 0.5
    emotion_distribution: Dict[str, int] = field(default_factory=dict)


@dataclass
class MonitoringReport:
    session_duration_seconds: float
    total_readings: int
    emotion_distribution: Dict[str, int]
    average_engagement: float
    engagement_level: str
    frustration_level: str
    recommended_action: str
    recommendations: List[str]


class EngagementMonitor:
    """Aggregate emotion readings for one practice session.

    The face/voice classifier is external; this class only consumes its
    labels and confidences. Create one monitor per session.
    """

    def __init__(self) -> None:
        self.engagement_step = 0.05
        self.high_engagement = 0.7
        self.moderate_engagement = 0.4
        self.high_frustration = 0.6
        self.moderate_frustration = 0.3
        self.high_confidence = 0.8

        self.stats = MonitoringStats()
        self._last_state: Optional[EmotionalState] = None

    def record_reading(self, label: str, confidence: float) -> EmotionalState:
        """Fold one classifier reading into the session statistics."""

        if not 0.0 <= confidence <= 1.0:
            raise ValueError("confidence must be between 0 and 1")
        emotion = label.strip().lower()
        if emotion not in MONITORED_STATES:
            logger.warning("Unrecognised emotion reading %r; treating as neutral", label)
            emotion = "neutral"

        stats = self.stats
        stats.total_readings += 1
        stats.emotion_distribution[emotion] = stats.emotion_distribution.get(emotion, 0) + 1
        if confidence > self.high_confidence:
            stats.high_confidence_readings += 1

        if emotion in POSITIVE_READINGS:
            stats.engagement_score += self.engagement_step
        elif emotion in NEGATIVE_READINGS:
            stats.engagement_score -= self.engagement_step
        stats.engagement_score = min(1.0, max(0.0, stats.engagement_score))

        self._last_state = EmotionalState(primary=emotion, intensity=confidence, confidence=confidence)
        return self._last_state

    def engagement_level(self) -> str:
        score = self.stats.engagement_score
        if score > self.high_engagement:
            return "high"
        if score > self.moderate_engagement:
            return "moderate"
        return "low"

    def frustration_ratio(self) -> float:
        if self.stats.total_readings == 0:
            return 0.0
        negative = sum(self.stats.emotion_distribution.get(e, 0) for e in NEGATIVE_READINGS)
        return negative / self.stats.total_readings

    def frustration_level(self) -> str:
        ratio = self.frustration_ratio()
        if ratio > self.high_frustration:
            return "high"
        if ratio > self.moderate_frustration:
            return "moderate"
        return "low"

    def recommended_action(self) -> str:
        return _ACTION_TABLE.get((self.engagement_level(), self.frustration_level()), "monitor")

    def inferred_state(self) -> Optional[EmotionalState]:
        """Summarise the session into a state the difficulty adapter understands."""

        if self._last_state is None:
            return None
        frustration = self.frustration_level()
        if frustration == "high":
            return EmotionalState(
                primary="frustrated",
                intensity=self.frustration_ratio(),
                confidence=self._last_state.confidence,
            )
        if self.engagement_level() == "high" and frustration == "low":
            return EmotionalState(
                primary="confident",
                intensity=self.stats.engagement_score,
                confidence=self._last_state.confidence,
            )
        return self._last_state

    def recommendations(self) -> List[str]:
        recommendations: List[str] = []
        if self.engagement_level() == "low":
            recommendations.append("Consider shorter sessions or more interactive activities")
        if self.frustration_level() == "high":
            recommendations.append("Reduce difficulty level and provide more positive reinforcement")
        distribution = self.stats.emotion_distribution
        if distribution:
            dominant = max(distribution, key=lambda emotion: distribution[emotion])
            if dominant == "confused":
                recommendations.append("Provide clearer instructions and visual cues")
        return recommendations

    def generate_report(self, now: Optional[datetime] = None) -> MonitoringReport:
        """Build the therapist-facing summary of this session."""

        now = now or datetime.now(timezone.utc)
        return MonitoringReport(
            session_duration_seconds=max(0.0, (now - self.stats.started_at).total_seconds()),
            total_readings=self.stats.total_readings,
            emotion_distribution=dict(self.stats.emotion_distribution),
            average_engagement=self.stats.engagement_score,
            engagement_level=self.engagement_level(),
            frustration_level=self.frustration_level(),
            recommended_action=self.recommended_action(),
            recommendations=self.recommendations(),
        )

    def generate_intervention(self) -> Dict[str, Any]:
        """Translate the recommended action into a message for the practice screen."""

        action = self.recommended_action()
        if action == "take_break":
            return {
                "type": "break_suggestion",
                "message": "Let's take a short break together.",
                "suggestions": ["Breathe slowly with the bubble", "Stretch and come back"],
            }
        if action == "change_activity":
            return {
                "type": "activity_change",
                "message": "How about trying a different game?",
                "suggestions": ["Switch to mimicry practice", "Try a story conversation"],
            }
        if action == "provide_encouragement":
            return {
                "type": "encouragement",
                "message": "You're doing great, keep going!",
                "suggestions": ["Celebrate the last correct answer"],
            }
        if action == "adjust_difficulty":
            return {
                "type": "difficulty_adjustment",
                "message": "Let's make the next round a little different.",
                "suggestions": ["Review the clearest emotions", "Allow more time per question"],
            }
        if action == "continue_activity":
            return {"type": "continue", "message": "Keep it up!", "suggestions": []}
        return {"type": "monitor", "message": "", "suggestions": []}
