"""Curriculum selection and the single merge path for learner progress."""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from emotion_catalog import EMOTION_CATALOG, EmotionCatalog
from engines.events import ProgressEventBus
from engines.mastery import EmotionMasteryState, MasteryTracker
from engines.progression import ProgressionPolicy, ProgressionResult
from engines.scoring import score_round, summarize_session
from engines.validation import (
    SessionValidationError,
    ValidationError,
    validate_emotion,
    validate_round_outcome,
)
from schemas import (
    MAX_HISTORY_LENGTH,
    ConversationSummary,
    EmotionTally,
    LearnerProgress,
    MimicrySession,
    RoundOutcome,
    SessionReport,
    SessionSummary,
    SpeechPracticeResult,
)

logger = logging.getLogger(__name__)

DEFAULT_SELECTION_WEIGHTS: Dict[str, float] = {
    "struggling": 3.0,
    "learning": 2.0,
    "proficient": 1.0,
    "mastered": 0.5,
}

PracticeEvent = Union[
    RoundOutcome,
    SessionSummary,
    SessionReport,
    SpeechPracticeResult,
    MimicrySession,
    ConversationSummary,
]


class RandomSource(Protocol):
    def random(self) -> float: ...


def weighted_choice(items: Sequence[str], weights: Sequence[float], rng: RandomSource) -> str:
    """Pick one of ``items`` with probability proportional to ``weights``."""

    if not items:
        raise ValueError("items may not be empty")
    if len(items) != len(weights):
        raise ValueError("items and weights must have the same length")
    total = sum(weights)
    if total <= 0:
        raise ValueError("weights must sum to a positive value")

    threshold = rng.random() * total
    cumulative = 0.0
    for item, weight in zip(items, weights):
        cumulative += weight
        if threshold < cumulative:
            return item
    return items[-1]


def _evolve(progress: LearnerProgress, **changes: Any) -> LearnerProgress:
    """Return a validated copy of ``progress`` with ``changes`` applied."""

    return LearnerProgress.model_validate({**dict(progress), **changes})


def retain_mastery_window(rounds: Sequence[RoundOutcome], window_size: int) -> List[RoundOutcome]:
    """Keep the newest ``window_size`` rounds per emotion, preserving chronological order."""

    counts: Dict[str, int] = {}
    kept: List[RoundOutcome] = []
    for outcome in reversed(rounds):
        seen = counts.get(outcome.emotion_target, 0)
        if seen < window_size:
            counts[outcome.emotion_target] = seen + 1
            kept.append(outcome)
    kept.reverse()
    return kept


class CurriculumSelector:
    """Pick the next emotion to practise and merge results into the learner record.

    Every ``record_*`` method is a pure transformation: it returns a new
    :class:`LearnerProgress` and leaves its input untouched. Callers load the
    record before and persist the returned snapshot afterwards.
    """

    def __init__(
        self,
        *,
        tracker: Optional[MasteryTracker] = None,
        policy: Optional[ProgressionPolicy] = None,
        rng: Optional[RandomSource] = None,
        event_bus: Optional[ProgressEventBus] = None,
        selection_weights: Optional[Mapping[str, float]] = None,
        session_history_limit: int = 20,
        practice_history_limit: int = 20,
        catalog: EmotionCatalog = EMOTION_CATALOG,
    ) -> None:
        for limit in (session_history_limit, practice_history_limit):
            if not 0 < limit <= MAX_HISTORY_LENGTH:
                raise ValueError(f"history limits must be between 1 and {MAX_HISTORY_LENGTH}")
        weights = dict(selection_weights or DEFAULT_SELECTION_WEIGHTS)
        if set(weights) != set(DEFAULT_SELECTION_WEIGHTS):
            raise ValueError("selection_weights must define every mastery classification")
        if any(value <= 0 for value in weights.values()):
            raise ValueError("selection weights must be positive")

        self.catalog = catalog
        self.tracker = tracker or MasteryTracker()
        self.policy = policy or ProgressionPolicy(catalog=catalog)
        self.rng: RandomSource = rng or random.Random()
        self.events = event_bus or ProgressEventBus()
        self.selection_weights_by_class = weights
        self.session_history_limit = int(session_history_limit)
        self.practice_history_limit = int(practice_history_limit)

    # ----- selection ---------------------------------------------------
    def mastery_states(self, progress: LearnerProgress) -> Dict[str, EmotionMasteryState]:
        """Classify every catalog emotion from the learner's recent rounds."""

        return self.tracker.classify_all(self.catalog.sequence(), progress.recent_rounds)

    def selection_weights(self, progress: LearnerProgress) -> Dict[str, float]:
        """Return the sampling weight of each unlocked emotion in catalog order."""

        weights: Dict[str, float] = {}
        for emotion in self.catalog.sequence():
            if emotion not in progress.unlocked_emotions:
                continue
            state = self.tracker.classify(emotion, progress.recent_rounds)
            weights[emotion] = self.selection_weights_by_class[state.classification]
        return weights

    def select_next(self, progress: LearnerProgress) -> str:
        """Draw the next target emotion, favouring weak emotions."""

        weights = self.selection_weights(progress)
        if not weights:
            raise ValidationError("learner has no unlocked catalog emotions")
        emotion = weighted_choice(list(weights), list(weights.values()), self.rng)
        logger.debug("Selected %s from weights %s", emotion, weights)
        return emotion

    def build_round_queue(self, progress: LearnerProgress, count: int = 8) -> List[str]:
        if count <= 0:
            raise ValueError("count must be positive")
        return [self.select_next(progress) for _ in range(count)]

    # ----- merges ------------------------------------------------------
    def record_round(self, progress: LearnerProgress, outcome: RoundOutcome) -> LearnerProgress:
        """Merge one round into ``progress`` and re-evaluate progression."""

        validate_round_outcome(outcome)
        emotion = outcome.emotion_target

        points = score_round(outcome, progress.current_streak).total
        if outcome.is_correct:
            current_streak = progress.current_streak + 1
            best_streak = max(progress.best_streak, current_streak)
        else:
            current_streak = 0
            best_streak = progress.best_streak

        stats = dict(progress.emotion_stats)
        tally = stats.get(emotion, EmotionTally())
        stats[emotion] = EmotionTally(
            attempts=tally.attempts + 1,
            correct=tally.correct + (1 if outcome.is_correct else 0),
        )
        recent_rounds = retain_mastery_window(
            [*progress.recent_rounds, outcome], self.tracker.window_size
        )

        updated = _evolve(
            progress,
            total_score=progress.total_score + points,
            total_questions=progress.total_questions + 1,
            total_correct_answers=progress.total_correct_answers + (1 if outcome.is_correct else 0),
            current_streak=current_streak,
            best_streak=best_streak,
            emotion_stats=stats,
            recent_rounds=recent_rounds,
        )
        state = self.tracker.classify(emotion, recent_rounds)
        final, result = self._progress(updated)

        self.events.emit(
            "round_recorded",
            progress=final,
            outcome=outcome,
            points=points,
            mastery=state,
        )
        self._emit_progression(final, result)
        return final

    def record_session(self, progress: LearnerProgress, summary: SessionSummary) -> LearnerProgress:
        """Prepend ``summary`` to the bounded session history and count the session."""

        if not isinstance(summary, SessionSummary):
            raise SessionValidationError(
                f"Expected SessionSummary, got {type(summary).__name__}"
            )
        history = [summary, *progress.session_history][: self.session_history_limit]
        updated = _evolve(
            progress,
            session_history=history,
            total_sessions=progress.total_sessions + 1,
            last_session_at=summary.ended_at or summary.started_at,
        )
        final, result = self._progress(updated)
        self.events.emit("session_recorded", progress=final, summary=summary)
        self._emit_progression(final, result)
        return final

    def record_session_report(self, progress: LearnerProgress, report: SessionReport) -> LearnerProgress:
        """Merge every round of ``report`` and then its summary."""

        if not isinstance(report, SessionReport):
            raise SessionValidationError(f"Expected SessionReport, got {type(report).__name__}")
        for outcome in report.rounds:
            validate_round_outcome(outcome)
        for outcome in report.rounds:
            progress = self.record_round(progress, outcome)
        return self.record_session(progress, summarize_session(report))

    def record_speech_practice(
        self, progress: LearnerProgress, result: SpeechPracticeResult
    ) -> LearnerProgress:
        validate_emotion(result.target_emotion, "target_emotion")
        return self._record_practice(progress, "speech_practice_history", result)

    def record_mimicry(self, progress: LearnerProgress, session: MimicrySession) -> LearnerProgress:
        validate_emotion(session.target_emotion, "target_emotion")
        if session.detected_emotion is not None:
            validate_emotion(session.detected_emotion, "detected_emotion")
        return self._record_practice(progress, "mimicry_history", session)

    def record_conversation(
        self, progress: LearnerProgress, summary: ConversationSummary
    ) -> LearnerProgress:
        return self._record_practice(progress, "conversation_history", summary)

    def apply(self, progress: LearnerProgress, event: PracticeEvent) -> LearnerProgress:
        """State transition ``(LearnerProgress, event) -> LearnerProgress``."""

        if isinstance(event, RoundOutcome):
            return self.record_round(progress, event)
        if isinstance(event, SessionSummary):
            return self.record_session(progress, event)
        if isinstance(event, SessionReport):
            return self.record_session_report(progress, event)
        if isinstance(event, SpeechPracticeResult):
            return self.record_speech_practice(progress, event)
        if isinstance(event, MimicrySession):
            return self.record_mimicry(progress, event)
        if isinstance(event, ConversationSummary):
            return self.record_conversation(progress, event)
        raise ValidationError(f"Unsupported practice event: {type(event).__name__}")

    # ----- helpers -----------------------------------------------------
    def _record_practice(self, progress: LearnerProgress, history_field: str, item: Any) -> LearnerProgress:
        history = [item, *getattr(progress, history_field)][: self.practice_history_limit]
        updated = _evolve(progress, **{history_field: history})
        final, result = self._progress(updated)
        self.events.emit("practice_recorded", progress=final, kind=history_field, item=item)
        self._emit_progression(final, result)
        return final

    def _progress(self, progress: LearnerProgress) -> tuple[LearnerProgress, ProgressionResult]:
        mastered = self.tracker.mastered(self.catalog.sequence(), progress.recent_rounds)
        result = self.policy.evaluate(progress, mastered)
        final = _evolve(
            progress,
            current_level=result.new_level,
            unlocked_emotions=result.unlocked,
            achievements_unlocked=progress.achievements_unlocked | result.new_achievements,
        )
        return final, result

    def _emit_progression(self, progress: LearnerProgress, result: ProgressionResult) -> None:
        if result.level_changed:
            self.events.emit(
                "level_up",
                progress=progress,
                previous_level=result.previous_level,
                new_level=result.new_level,
            )
        if result.newly_unlocked:
            self.events.emit(
                "emotions_unlocked", progress=progress, emotions=sorted(result.newly_unlocked)
            )
        for achievement in sorted(result.new_achievements):
            logger.info("Achievement unlocked: %s", achievement)
            self.events.emit("achievement_unlocked", progress=progress, achievement=achievement)
