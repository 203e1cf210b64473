"""Validation of practice input before it reaches the progression engines."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from pydantic import ValidationError as PydanticValidationError

from emotion_catalog import EMOTION_CATALOG
from schemas import MONITORED_STATES, EmotionalState, RoundOutcome, SessionReport


class ValidationError(ValueError):
    """Base class for malformed or out-of-catalog engine input."""


class UnknownEmotionError(ValidationError):
    """Raised when an emotion id is not part of the catalog."""

    def __init__(self, emotion_id: Any, field: str = "emotion") -> None:
        super().__init__(f"Unknown emotion for {field}: {emotion_id!r}")
        self.emotion_id = emotion_id
        self.field = field


class RoundValidationError(ValidationError):
    """Raised when a round outcome fails validation."""


class SessionValidationError(ValidationError):
    """Raised when a session report or summary fails validation."""


def validate_emotion(emotion_id: Any, field: str = "emotion") -> str:
    if not isinstance(emotion_id, str) or emotion_id not in EMOTION_CATALOG:
        raise UnknownEmotionError(emotion_id, field)
    return emotion_id


def validate_emotions(emotion_ids: Iterable[Any], field: str = "emotions") -> set[str]:
    return {validate_emotion(emotion_id, field) for emotion_id in emotion_ids}


def validate_round_outcome(outcome: RoundOutcome) -> RoundOutcome:
    """Check catalog membership of a round's emotions."""

    if not isinstance(outcome, RoundOutcome):
        raise RoundValidationError(
            f"Expected RoundOutcome, got {type(outcome).__name__}"
        )
    validate_emotion(outcome.emotion_target, "emotion_target")
    if outcome.emotion_recognized is not None:
        validate_emotion(outcome.emotion_recognized, "emotion_recognized")
    if outcome.emotion_recognized is not None and outcome.is_correct != (
        outcome.emotion_recognized == outcome.emotion_target
    ):
        raise RoundValidationError(
            "is_correct contradicts emotion_recognized/emotion_target"
        )
    return outcome


def validate_emotional_state(state: EmotionalState | None) -> EmotionalState | None:
    if state is None:
        return None
    if state.primary not in MONITORED_STATES:
        raise ValidationError(f"Unsupported emotional state: {state.primary!r}")
    return state


def validate_accuracy(value: float, field: str = "accuracy") -> float:
    if not 0.0 <= value <= 1.0:
        raise ValidationError(f"{field} must be between 0 and 1")
    return float(value)


def parse_round_outcome(payload: Mapping[str, Any]) -> RoundOutcome:
    """Build a validated :class:`RoundOutcome` from a raw mapping."""

    try:
        outcome = RoundOutcome.model_validate(payload)
    except PydanticValidationError as exc:
        raise RoundValidationError(f"Invalid round outcome: {exc.error_count()} error(s)") from exc
    return validate_round_outcome(outcome)


def parse_session_report(payload: Mapping[str, Any]) -> SessionReport:
    """Build a validated :class:`SessionReport` from a raw mapping."""

    try:
        report = SessionReport.model_validate(payload)
    except PydanticValidationError as exc:
        raise SessionValidationError(f"Invalid session report: {exc.error_count()} error(s)") from exc
    for outcome in report.rounds:
        validate_round_outcome(outcome)
    return report
