"""Practice-screen facade: load progress, merge results, plan the next round, save."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import List, Optional

from emotion_catalog import EMOTION_CATALOG
from engines.curriculum import CurriculumSelector, PracticeEvent
from engines.difficulty_manager import DifficultyAdapter, DifficultyAdjustment, apply_time_limit
from engines.mastery import MasteryTracker
from engines.validation import ValidationError, validate_accuracy, validate_emotional_state
from env_validation import get_env_float, get_env_int, validate_environment
from progress_store import ProgressStore
from schemas import EmotionalState, LearnerProgress, RoundOutcome, SessionReport

logger = logging.getLogger(__name__)

DEFAULT_TIME_LIMIT = 25.0


@dataclass
class RoundPlan:
    emotion: str
    time_limit_seconds: float
    adjustment: DifficultyAdjustment


@dataclass
class RoundResult:
    progress: LearnerProgress
    next_round: RoundPlan


class PracticeCoordinator:
    """Run the round loop for practice screens against a :class:`ProgressStore`.

    All I/O happens here: the record is loaded before and saved after each
    engine call, the engines themselves stay pure.
    """

    def __init__(
        self,
        store: ProgressStore,
        selector: Optional[CurriculumSelector] = None,
        adapter: Optional[DifficultyAdapter] = None,
        base_time_limit: float = DEFAULT_TIME_LIMIT,
    ) -> None:
        if base_time_limit <= 0:
            raise ValueError("base_time_limit must be positive")
        self.store = store
        self.selector = selector or CurriculumSelector()
        self.adapter = adapter or DifficultyAdapter(policy=self.selector.policy)
        self.base_time_limit = float(base_time_limit)

    @classmethod
    def from_environment(cls, store: ProgressStore) -> "PracticeCoordinator":
        """Build a coordinator configured from environment variables."""

        validate_environment()
        seed = get_env_int("CURRICULUM_RANDOM_SEED")
        selector = CurriculumSelector(
            tracker=MasteryTracker(window_size=get_env_int("MASTERY_WINDOW", 10)),
            rng=random.Random(seed),
            session_history_limit=get_env_int("SESSION_HISTORY_LIMIT", 20),
        )
        return cls(
            store,
            selector=selector,
            base_time_limit=get_env_float("QUESTION_TIME_LIMIT", DEFAULT_TIME_LIMIT),
        )

    # ------------------------------------------------------------------
    def start_session(self, learner_id: str, count: int = 8) -> List[str]:
        progress = self.store.load(learner_id)
        return self.selector.build_round_queue(progress, count)

    def complete_round(
        self,
        learner_id: str,
        outcome: RoundOutcome,
        emotional_state: Optional[EmotionalState] = None,
        *,
        recent_accuracy: Optional[float] = None,
        current_time_limit: Optional[float] = None,
    ) -> RoundResult:
        """Merge ``outcome``, plan the next round and persist the record.

        All inputs are validated before the round is recorded or saved.
        """

        validate_emotional_state(emotional_state)
        if recent_accuracy is not None:
            validate_accuracy(recent_accuracy, "recent_accuracy")
        progress = self.store.load(learner_id)
        updated = self.selector.record_round(progress, outcome)

        if recent_accuracy is None and updated.session_history:
            recent_accuracy = updated.session_history[0].accuracy
        adjustment = self.adapter.adjust(
            outcome,
            emotional_state,
            recent_accuracy=recent_accuracy,
            unlocked_emotions=updated.unlocked_emotions,
        )
        time_limit = apply_time_limit(
            current_time_limit if current_time_limit is not None else self.base_time_limit,
            adjustment,
        )
        plan = RoundPlan(
            emotion=self.selector.select_next(updated),
            time_limit_seconds=time_limit,
            adjustment=adjustment,
        )
        self.store.save(learner_id, updated)
        return RoundResult(progress=updated, next_round=plan)

    def complete_session(self, learner_id: str, report: SessionReport) -> LearnerProgress:
        progress = self.store.load(learner_id)
        updated = self.selector.record_session_report(progress, report)
        self.store.save(learner_id, updated)
        return updated

    def record(self, learner_id: str, event: PracticeEvent) -> LearnerProgress:
        """Merge any practice event (speech, mimicry, conversation, ...) and persist."""

        progress = self.store.load(learner_id)
        updated = self.selector.apply(progress, event)
        self.store.save(learner_id, updated)
        return updated

    # ------------------------------------------------------------------
    def default_round(self) -> RoundPlan:
        return RoundPlan(
            emotion=EMOTION_CATALOG.clearest(1)[0],
            time_limit_seconds=self.base_time_limit,
            adjustment=DifficultyAdjustment(),
        )

    def next_round_or_default(self, learner_id: str) -> RoundPlan:
        """Plan the next round, falling back to a safe basic round on invalid data."""

        try:
            progress = self.store.load(learner_id)
            emotion = self.selector.select_next(progress)
        except ValidationError as exc:
            logger.warning("Falling back to default round for %s: %s", learner_id, exc)
            return self.default_round()
        return RoundPlan(
            emotion=emotion,
            time_limit_seconds=self.base_time_limit,
            adjustment=DifficultyAdjustment(),
        )
