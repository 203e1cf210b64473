"""Pydantic schemas for practice results and the persistent learner record."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field, field_serializer, model_validator

from emotion_catalog import BASIC_EMOTIONS

__all__ = [
    "Modality",
    "MONITORED_STATES",
    "MAX_HISTORY_LENGTH",
    "RoundOutcome",
    "EmotionalState",
    "SessionSummary",
    "SessionReport",
    "EmotionTally",
    "SpeechPracticeResult",
    "MimicrySession",
    "ConversationSummary",
    "LearnerProgress",
    "default_progress",
]

Modality = Literal["visual", "speech", "mimicry", "conversation"]

MONITORED_STATES = frozenset(
    {
        "happy",
        "sad",
        "angry",
        "surprised",
        "fear",
        "disgusted",
        "neutral",
        "frustrated",
        "confident",
        "confused",
        "excited",
        "disappointed",
        "proud",
    }
)
"""Labels an external face/voice monitor may report as ``EmotionalState.primary``."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:12]}"


MAX_HISTORY_LENGTH = 20
"""Upper bound for ``session_history`` and each modality history."""


class RoundOutcome(BaseModel):
    """Result of a single practice question emitted by a practice screen."""

    emotion_target: str = Field(description="Catalog id of the emotion the round asked for.")
    emotion_recognized: str | None = Field(
        default=None,
        description="Emotion the learner chose, said or mimicked; None when the round timed out.",
    )
    is_correct: bool
    response_time_seconds: float = Field(ge=0.0)
    modality: Modality = "visual"
    recorded_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}


class EmotionalState(BaseModel):
    """Reading from the external monitoring collaborator."""

    primary: str
    intensity: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    model_config = {"frozen": True}


class SessionSummary(BaseModel):
    """Condensed record of a completed practice session."""

    session_id: str = Field(default_factory=lambda: _new_id("session"))
    modality: Modality = "visual"
    started_at: datetime = Field(default_factory=_utcnow)
    ended_at: datetime | None = None
    score: int = Field(default=0, ge=0)
    questions_answered: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)
    max_streak: int = Field(default=0, ge=0)
    average_response_time: float = Field(default=0.0, ge=0.0)

    @computed_field  # type: ignore[misc]
    @property
    def accuracy(self) -> float:
        if self.questions_answered == 0:
            return 0.0
        return self.correct_answers / self.questions_answered

    @model_validator(mode="after")
    def _check_counts(self) -> "SessionSummary":
        if self.correct_answers > self.questions_answered:
            raise ValueError("correct_answers cannot exceed questions_answered")
        if self.max_streak > self.correct_answers:
            raise ValueError("max_streak cannot exceed correct_answers")
        return self


class SessionReport(BaseModel):
    """Batch of rounds completed in one session."""

    session_id: str = Field(default_factory=lambda: _new_id("session"))
    modality: Modality = "visual"
    started_at: datetime = Field(default_factory=_utcnow)
    ended_at: datetime | None = None
    rounds: List[RoundOutcome] = Field(default_factory=list)


class EmotionTally(BaseModel):
    attempts: int = Field(default=0, ge=0)
    correct: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[misc]
    @property
    def accuracy(self) -> float:
        return self.correct / self.attempts if self.attempts else 0.0


class SpeechPracticeResult(BaseModel):
    result_id: str = Field(default_factory=lambda: _new_id("speech"))
    recorded_at: datetime = Field(default_factory=_utcnow)
    target_emotion: str
    recognized_text: str = ""
    is_correct: bool
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    total_prompts: int = Field(default=1, ge=1)
    correct_responses: int = Field(default=0, ge=0)
    score: int = Field(default=0, ge=0)


class MimicrySession(BaseModel):
    session_id: str = Field(default_factory=lambda: _new_id("mimicry"))
    recorded_at: datetime = Field(default_factory=_utcnow)
    target_emotion: str
    detected_emotion: str | None = None
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    rounds_completed: int = Field(default=0, ge=0)
    average_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    score: int = Field(default=0, ge=0)


class ConversationSummary(BaseModel):
    conversation_id: str = Field(default_factory=lambda: _new_id("conversation"))
    recorded_at: datetime = Field(default_factory=_utcnow)
    scenario: str
    message_count: int = Field(default=0, ge=0)
    duration_seconds: float = Field(default=0.0, ge=0.0)
    sentiment: str | None = None


_BOUNDED_HISTORIES = (
    "session_history",
    "speech_practice_history",
    "mimicry_history",
    "conversation_history",
)


class LearnerProgress(BaseModel):
    """Cumulative mastery record owned by a learner's account.

    Only :class:`engines.curriculum.CurriculumSelector` produces new
    instances; ``session_history`` and the modality histories are kept
    most-recent-first, ``recent_rounds`` in chronological order.
    """

    current_level: int = Field(default=1, ge=1)
    total_sessions: int = Field(default=0, ge=0)
    total_score: int = Field(default=0, ge=0)
    total_correct_answers: int = Field(default=0, ge=0)
    total_questions: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    best_streak: int = Field(default=0, ge=0)
    unlocked_emotions: set[str] = Field(default_factory=lambda: set(BASIC_EMOTIONS))
    session_history: List[SessionSummary] = Field(default_factory=list)
    achievements_unlocked: set[str] = Field(default_factory=set)
    emotion_stats: Dict[str, EmotionTally] = Field(default_factory=dict)
    recent_rounds: List[RoundOutcome] = Field(default_factory=list)
    speech_practice_history: List[SpeechPracticeResult] = Field(default_factory=list)
    mimicry_history: List[MimicrySession] = Field(default_factory=list)
    conversation_history: List[ConversationSummary] = Field(default_factory=list)
    last_session_at: datetime | None = None

    @computed_field  # type: ignore[misc]
    @property
    def overall_accuracy(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return self.total_correct_answers / self.total_questions

    @model_validator(mode="after")
    def _check_invariants(self) -> "LearnerProgress":
        if self.best_streak < self.current_streak:
            raise ValueError("best_streak must be >= current_streak")
        if self.total_correct_answers > self.total_questions:
            raise ValueError("total_correct_answers cannot exceed total_questions")
        if not self.unlocked_emotions:
            raise ValueError("unlocked_emotions may not be empty")
        for name in _BOUNDED_HISTORIES:
            if len(getattr(self, name)) > MAX_HISTORY_LENGTH:
                raise ValueError(f"{name} may hold at most {MAX_HISTORY_LENGTH} entries")
        return self

    @field_serializer("unlocked_emotions", "achievements_unlocked")
    def _serialize_sorted(self, value: set[str]) -> List[str]:
        return sorted(value)


def default_progress() -> LearnerProgress:
    """Signup defaults: level 1, empty history, basic tier unlocked."""

    return LearnerProgress()
