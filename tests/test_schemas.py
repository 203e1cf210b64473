import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from emotion_catalog import BASIC_EMOTIONS
from engines.validation import (
    RoundValidationError,
    SessionValidationError,
    UnknownEmotionError,
    ValidationError,
    parse_round_outcome,
    parse_session_report,
    validate_emotions,
)
from schemas import (
    MAX_HISTORY_LENGTH,
    ConversationSummary,
    EmotionalState,
    LearnerProgress,
    MimicrySession,
    SessionSummary,
    SpeechPracticeResult,
    default_progress,
)


def test_default_progress_matches_signup_state():
    progress = default_progress()
    assert progress.current_level == 1
    assert progress.unlocked_emotions == set(BASIC_EMOTIONS)
    assert progress.session_history == []
    assert progress.achievements_unlocked == set()
    assert progress.overall_accuracy == 0.0


def test_progress_invariants_enforced():
    with pytest.raises(PydanticValidationError):
        LearnerProgress(current_streak=4, best_streak=2)
    with pytest.raises(PydanticValidationError):
        LearnerProgress(total_questions=3, total_correct_answers=4)
    with pytest.raises(PydanticValidationError):
        LearnerProgress(unlocked_emotions=set())
    with pytest.raises(PydanticValidationError):
        LearnerProgress(current_level=0)


def test_progress_json_round_trip_sorts_sets():
    progress = LearnerProgress(achievements_unlocked={"streak_5", "first_session"})
    payload = json.loads(progress.model_dump_json())
    assert payload["achievements_unlocked"] == ["first_session", "streak_5"]
    assert payload["unlocked_emotions"] == sorted(BASIC_EMOTIONS)
    assert LearnerProgress.model_validate_json(progress.model_dump_json()) == progress


def test_session_summary_counts_checked():
    with pytest.raises(PydanticValidationError):
        SessionSummary(questions_answered=2, correct_answers=3)
    with pytest.raises(PydanticValidationError):
        SessionSummary(questions_answered=5, correct_answers=2, max_streak=3)
    assert SessionSummary(questions_answered=4, correct_answers=3).accuracy == pytest.approx(0.75)


def test_emotional_state_bounds():
    with pytest.raises(PydanticValidationError):
        EmotionalState(primary="happy", intensity=1.5)


def test_parse_round_outcome():
    outcome = parse_round_outcome(
        {
            "emotion_target": "fear",
            "emotion_recognized": "fear",
            "is_correct": True,
            "response_time_seconds": 2.5,
        }
    )
    assert outcome.modality == "visual"

    with pytest.raises(RoundValidationError) as excinfo:
        parse_round_outcome({"emotion_target": "fear", "is_correct": True, "response_time_seconds": -1})
    assert isinstance(excinfo.value.__cause__, PydanticValidationError)

    with pytest.raises(UnknownEmotionError) as excinfo:
        parse_round_outcome({"emotion_target": "joy", "is_correct": False, "response_time_seconds": 1})
    assert excinfo.value.field == "emotion_target"


def test_contradictory_round_rejected():
    with pytest.raises(RoundValidationError):
        parse_round_outcome(
            {
                "emotion_target": "sad",
                "emotion_recognized": "happy",
                "is_correct": True,
                "response_time_seconds": 1,
            }
        )


def test_parse_session_report():
    report = parse_session_report(
        {
            "session_id": "s1",
            "rounds": [
                {"emotion_target": "happy", "emotion_recognized": "happy", "is_correct": True, "response_time_seconds": 1},
            ],
        }
    )
    assert report.session_id == "s1"
    assert len(report.rounds) == 1
    with pytest.raises(SessionValidationError):
        parse_session_report({"rounds": "nope"})


def test_validation_errors_are_value_errors():
    assert issubclass(ValidationError, ValueError)
    with pytest.raises(UnknownEmotionError):
        validate_emotions(["happy", "neutral"])


@pytest.mark.parametrize(
    "field, item",
    [
        ("session_history", lambda: SessionSummary()),
        ("conversation_history", lambda: ConversationSummary(scenario="park")),
        ("speech_practice_history", lambda: SpeechPracticeResult(target_emotion="happy", is_correct=True)),
        ("mimicry_history", lambda: MimicrySession(target_emotion="sad")),
    ],
)
def test_histories_are_bounded(field, item):
    LearnerProgress(**{field: [item() for _ in range(MAX_HISTORY_LENGTH)]})
    with pytest.raises(PydanticValidationError):
        LearnerProgress(**{field: [item() for _ in range(MAX_HISTORY_LENGTH + 5)]})
