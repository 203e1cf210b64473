from datetime import datetime, timezone

import pytest

from emotion_catalog import BASIC_EMOTIONS, COMPLEX_EMOTIONS, SUBTLE_EMOTIONS
from engines.curriculum import CurriculumSelector, retain_mastery_window, weighted_choice
from engines.validation import SessionValidationError, UnknownEmotionError, ValidationError
from schemas import (
    ConversationSummary,
    LearnerProgress,
    MimicrySession,
    SessionReport,
    SessionSummary,
    SpeechPracticeResult,
    default_progress,
)


@pytest.fixture
def selector(sequence_rng):
    return CurriculumSelector(rng=sequence_rng(0.0))


@pytest.fixture
def recorded(selector):
    events = []
    selector.events.subscribe(events.append)
    return events


def _record(selector, progress, rounds):
    for outcome in rounds:
        progress = selector.record_round(progress, outcome)
    return progress


def _master_basic(selector, progress, make_round):
    for emotion in BASIC_EMOTIONS:
        progress = _record(selector, progress, [make_round(emotion) for _ in range(10)])
    return progress


def test_streak_resets_on_miss(selector, make_round):
    rounds = [make_round("happy") for _ in range(5)] + [make_round("sad", correct=False)]
    progress = _record(selector, default_progress(), rounds)
    assert progress.current_streak == 0
    assert progress.best_streak == 5
    assert progress.total_questions == 6
    assert progress.total_correct_answers == 5
    assert progress.overall_accuracy == pytest.approx(5 / 6)


def test_round_score_uses_streak_before(selector, make_round):
    progress = _record(
        selector,
        default_progress(),
        [make_round("happy", response_time=1.0), make_round("sad", response_time=3.0)],
    )
    assert progress.total_score == 150 + 135


def test_record_round_does_not_mutate_input(selector, make_round):
    original = default_progress()
    updated = selector.record_round(original, make_round("happy"))
    assert original.total_questions == 0
    assert original.recent_rounds == []
    assert updated.total_questions == 1
    assert updated.emotion_stats["happy"].attempts == 1
    assert updated.emotion_stats["happy"].accuracy == 1.0


def test_invalid_round_leaves_progress_untouched(selector, make_round, recorded):
    progress = default_progress()
    with pytest.raises(UnknownEmotionError):
        selector.record_round(progress, make_round("bored", recognized="bored"))
    assert progress.total_questions == 0
    assert recorded == []


def test_recent_rounds_keep_mastery_window(selector, make_round):
    progress = _record(selector, default_progress(), [make_round("happy") for _ in range(12)])
    progress = selector.record_round(progress, make_round("sad"))
    happy = [r for r in progress.recent_rounds if r.emotion_target == "happy"]
    assert len(happy) == 10
    assert progress.recent_rounds[-1].emotion_target == "sad"
    assert progress.emotion_stats["happy"].attempts == 12


def test_retain_mastery_window_preserves_order(make_round):
    rounds = [make_round("happy"), make_round("sad"), make_round("happy"), make_round("happy")]
    kept = retain_mastery_window(rounds, 2)
    assert kept == [rounds[1], rounds[2], rounds[3]]


def test_mastering_basic_unlocks_complex(selector, make_round, recorded):
    progress = _master_basic(selector, default_progress(), make_round)
    assert set(COMPLEX_EMOTIONS) <= progress.unlocked_emotions
    assert set(SUBTLE_EMOTIONS).isdisjoint(progress.unlocked_emotions)
    assert "complex_tier_unlocked" in progress.achievements_unlocked

    unlock_events = [e for e in recorded if e.type == "emotions_unlocked"]
    assert len(unlock_events) == 1
    assert unlock_events[0].payload["emotions"] == sorted(COMPLEX_EMOTIONS)


def test_unlocks_survive_later_mistakes(selector, make_round):
    progress = _master_basic(selector, default_progress(), make_round)
    before = set(progress.unlocked_emotions)
    progress = _record(selector, progress, [make_round("happy", correct=False) for _ in range(10)])
    assert before <= progress.unlocked_emotions


def test_level_is_monotonic(selector, make_round, recorded):
    start = LearnerProgress(total_sessions=20, total_questions=100, total_correct_answers=82)
    progress = selector.record_session(start, SessionSummary(questions_answered=0))
    assert progress.current_level == 3
    level_events = [e for e in recorded if e.type == "level_up"]
    assert [(e.payload["previous_level"], e.payload["new_level"]) for e in level_events] == [(1, 3)]

    progress = _record(selector, progress, [make_round("angry", correct=False) for _ in range(64)])
    assert progress.overall_accuracy == pytest.approx(0.5)
    assert progress.current_level == 3


def test_zero_questions_means_zero_accuracy():
    assert default_progress().overall_accuracy == 0.0


def test_selection_only_draws_unlocked(sequence_rng):
    selector = CurriculumSelector(rng=sequence_rng(0.0, 0.5, 0.999))
    drawn = selector.build_round_queue(default_progress(), 6)
    assert drawn == ["happy", "sad", "angry", "happy", "sad", "angry"]


def test_selection_favours_weaker_emotions(sequence_rng, make_round):
    selector = CurriculumSelector(rng=sequence_rng(0.05, 0.1))
    progress = _record(selector, default_progress(), [make_round("happy") for _ in range(10)])
    weights = selector.selection_weights(progress)
    assert weights == {"happy": 0.5, "sad": 3.0, "angry": 3.0}
    assert selector.select_next(progress) == "happy"
    assert selector.select_next(progress) == "sad"


def test_weighted_choice_rejects_bad_input(sequence_rng):
    with pytest.raises(ValueError):
        weighted_choice([], [], sequence_rng())
    with pytest.raises(ValueError):
        weighted_choice(["a"], [0.0], sequence_rng())


def test_session_history_is_bounded_and_most_recent_first(sequence_rng):
    selector = CurriculumSelector(rng=sequence_rng(), session_history_limit=3)
    progress = default_progress()
    for index in range(5):
        progress = selector.record_session(progress, SessionSummary(session_id=f"s{index}"))
    assert [s.session_id for s in progress.session_history] == ["s4", "s3", "s2"]
    assert progress.total_sessions == 5
    assert progress.last_session_at == progress.session_history[0].started_at
    assert "first_session" in progress.achievements_unlocked


def test_record_session_rejects_other_types(selector):
    with pytest.raises(SessionValidationError):
        selector.record_session(default_progress(), {"score": 10})


def test_record_session_report_merges_rounds_and_summary(selector, make_round, recorded):
    rounds = [make_round("happy", response_time=1.0), make_round("sad", correct=False)]
    ended = datetime(2024, 3, 1, 9, 5, tzinfo=timezone.utc)
    report = SessionReport(session_id="abc", rounds=rounds, ended_at=ended)
    progress = selector.record_session_report(default_progress(), report)

    assert progress.total_questions == 2
    assert progress.total_sessions == 1
    assert progress.session_history[0].session_id == "abc"
    assert progress.session_history[0].score == 150
    assert progress.last_session_at == ended
    assert [e.type for e in recorded][:3] == ["round_recorded", "round_recorded", "session_recorded"]


def test_session_report_with_bad_round_changes_nothing(selector, make_round):
    report = SessionReport(rounds=[make_round("happy"), make_round("bored", recognized=None)])
    with pytest.raises(UnknownEmotionError):
        selector.record_session_report(default_progress(), report)


def test_practice_histories_are_bounded(sequence_rng):
    selector = CurriculumSelector(rng=sequence_rng(), practice_history_limit=20)
    progress = default_progress()
    for _ in range(22):
        progress = selector.record_speech_practice(
            progress, SpeechPracticeResult(target_emotion="happy", is_correct=True)
        )
    assert len(progress.speech_practice_history) == 20
    assert {"speech_starter", "speech_explorer"} <= progress.achievements_unlocked


def test_mimicry_and_conversation_results(selector, recorded):
    progress = selector.record_mimicry(
        default_progress(), MimicrySession(target_emotion="sad", detected_emotion="sad")
    )
    progress = selector.record_conversation(progress, ConversationSummary(scenario="playground"))
    assert len(progress.mimicry_history) == 1
    assert len(progress.conversation_history) == 1
    assert {"mimicry_starter", "conversation_starter"} <= progress.achievements_unlocked
    kinds = [e.payload["kind"] for e in recorded if e.type == "practice_recorded"]
    assert kinds == ["mimicry_history", "conversation_history"]

    with pytest.raises(UnknownEmotionError):
        selector.record_mimicry(progress, MimicrySession(target_emotion="sad", detected_emotion="sleepy"))


def test_apply_dispatches_by_event_type(selector, make_round):
    progress = selector.apply(default_progress(), make_round("happy"))
    progress = selector.apply(progress, SessionSummary())
    progress = selector.apply(progress, ConversationSummary(scenario="lunch"))
    assert progress.total_questions == 1
    assert progress.total_sessions == 1
    assert len(progress.conversation_history) == 1
    with pytest.raises(ValidationError):
        selector.apply(progress, "not an event")


def test_invalid_selector_configuration():
    with pytest.raises(ValueError):
        CurriculumSelector(session_history_limit=0)
    with pytest.raises(ValueError):
        CurriculumSelector(practice_history_limit=21)
    with pytest.raises(ValueError):
        CurriculumSelector(selection_weights={"struggling": 1.0})
