"""Simulation utilities for curriculum policy evaluation."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from statistics import mean
from typing import Callable, Dict, List, Sequence, Tuple

from emotion_catalog import EMOTION_CATALOG, EmotionCatalog
from engines.curriculum import CurriculumSelector
from engines.mastery import MasteryTracker
from engines.progression import ProgressionPolicy
from schemas import LearnerProgress, RoundOutcome, SessionReport, default_progress

_TIER_PENALTY = {"basic": 0.0, "complex": 0.12, "subtle": 0.22}
_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


@dataclass
class Persona:
    """Represents a simulated learner profile."""

    name: str
    accuracy_bias: float
    latency_bias: float
    learning_rate: float


@dataclass
class SessionTrace:
    """State of a simulated learner after one practice session."""

    persona: str
    session: int
    level: int
    session_accuracy: float
    session_score: int
    unlocked: List[str]


@dataclass
class SimulationMetrics:
    """Aggregated statistics for a persona across a simulated run."""

    persona: str
    sessions: int
    final_level: int
    overall_accuracy: float
    mean_session_accuracy: float
    best_streak: int
    total_score: int
    unlocked_emotions: List[str]
    achievements: List[str]
    level_history: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "persona": self.persona,
            "sessions": self.sessions,
            "final_level": self.final_level,
            "overall_accuracy": round(self.overall_accuracy, 4),
            "mean_session_accuracy": round(self.mean_session_accuracy, 4),
            "best_streak": self.best_streak,
            "total_score": self.total_score,
            "unlocked_emotions": list(self.unlocked_emotions),
            "achievements": list(self.achievements),
            "level_history": list(self.level_history),
        }


DEFAULT_PERSONAS: Tuple[Persona, ...] = (
    Persona(name="Novice", accuracy_bias=0.5, latency_bias=1.3, learning_rate=0.02),
    Persona(name="FastAdvancer", accuracy_bias=0.85, latency_bias=0.6, learning_rate=0.04),
    Persona(name="SteadyPractice", accuracy_bias=0.68, latency_bias=1.0, learning_rate=0.03),
)

# (rng, persona, target emotion, current skill) -> (is_correct, response_time_seconds)
AttemptModel = Callable[[random.Random, Persona, str, float], Tuple[bool, float]]


class LearningSimulation:
    """Replay simulated learners through the curriculum selector.

    All randomness (emotion selection and attempt outcomes) flows through one
    seeded generator so a run is reproducible from ``random_seed``.
    """

    def __init__(
        self,
        *,
        personas: Sequence[Persona] | None = None,
        random_seed: int | None = None,
        attempt_model: AttemptModel | None = None,
        tracker: MasteryTracker | None = None,
        policy: ProgressionPolicy | None = None,
        catalog: EmotionCatalog = EMOTION_CATALOG,
    ) -> None:
        self.personas: List[Persona] = list(personas) if personas is not None else list(DEFAULT_PERSONAS)
        self.rng = random.Random(random_seed)
        self.attempt_model: AttemptModel = attempt_model or self._default_attempt_model
        self.catalog = catalog
        self.tracker = tracker or MasteryTracker()
        self.policy = policy or ProgressionPolicy(catalog=catalog)

    # ------------------------------------------------------------------
    def run(self, *, sessions: int = 5, rounds: int = 8) -> List[SimulationMetrics]:
        """Simulate every persona and return one metrics row per persona."""

        return [
            self.summarise(persona.name, *self.run_persona(persona.name, sessions=sessions, rounds=rounds))
            for persona in self.personas
        ]

    # ------------------------------------------------------------------
    def run_persona(
        self, persona_name: str, *, sessions: int = 5, rounds: int = 8
    ) -> Tuple[LearnerProgress, List[SessionTrace]]:
        if sessions <= 0 or rounds <= 0:
            raise ValueError("sessions and rounds must be positive")
        persona = self.persona_by_name(persona_name)
        selector = CurriculumSelector(
            tracker=self.tracker, policy=self.policy, rng=self.rng, catalog=self.catalog
        )
        progress = default_progress()
        skills: Dict[str, float] = {}
        traces: List[SessionTrace] = []
        for index in range(sessions):
            report = self._play_session(selector, progress, persona, skills, index, rounds)
            progress = selector.record_session_report(progress, report)
            summary = progress.session_history[0]
            traces.append(
                SessionTrace(
                    persona=persona.name,
                    session=index + 1,
                    level=progress.current_level,
                    session_accuracy=summary.accuracy,
                    session_score=summary.score,
                    unlocked=sorted(progress.unlocked_emotions),
                )
            )
        return progress, traces

    # ------------------------------------------------------------------
    def summarise(
        self, persona: str, progress: LearnerProgress, traces: Sequence[SessionTrace]
    ) -> SimulationMetrics:
        """Aggregate one persona's run for reporting."""

        return SimulationMetrics(
            persona=persona,
            sessions=len(traces),
            final_level=progress.current_level,
            overall_accuracy=progress.overall_accuracy,
            mean_session_accuracy=mean(t.session_accuracy for t in traces) if traces else 0.0,
            best_streak=progress.best_streak,
            total_score=progress.total_score,
            unlocked_emotions=[e for e in self.catalog.sequence() if e in progress.unlocked_emotions],
            achievements=sorted(progress.achievements_unlocked),
            level_history=[t.level for t in traces],
        )

    # ------------------------------------------------------------------
    def persona_by_name(self, name: str) -> Persona:
        for persona in self.personas:
            if persona.name.lower() == name.lower():
                return persona
        raise ValueError(f"Persona {name} not defined")

    # ------------------------------------------------------------------
    def _play_session(
        self,
        selector: CurriculumSelector,
        progress: LearnerProgress,
        persona: Persona,
        skills: Dict[str, float],
        index: int,
        rounds: int,
    ) -> SessionReport:
        started_at = _EPOCH + timedelta(days=index)
        clock = started_at
        outcomes: List[RoundOutcome] = []
        # the queue is drawn up front like a real session; skills move within it
        for target in selector.build_round_queue(progress, rounds):
            skill = skills.get(target, persona.accuracy_bias - _TIER_PENALTY[self.catalog.tier_of(target)])
            correct, response_time = self.attempt_model(self.rng, persona, target, skill)
            step = persona.learning_rate if correct else persona.learning_rate / 2
            skills[target] = min(0.98, skill + step)
            clock += timedelta(seconds=response_time)
            outcomes.append(
                RoundOutcome(
                    emotion_target=target,
                    emotion_recognized=target if correct else self._distractor(target),
                    is_correct=correct,
                    response_time_seconds=response_time,
                    recorded_at=clock,
                )
            )
        return SessionReport(started_at=started_at, ended_at=clock, rounds=outcomes)

    def _distractor(self, target: str) -> str:
        return self.rng.choice([e for e in self.catalog.sequence() if e != target])

    # ------------------------------------------------------------------
    @staticmethod
    def _default_attempt_model(
        rng: random.Random,
        persona: Persona,
        emotion: str,
        skill: float,
    ) -> Tuple[bool, float]:
        """Heuristic attempt model: skill drives accuracy, persona drives speed."""

        success = rng.random() < max(0.05, min(0.98, skill))
        response_time = round(rng.uniform(1.0, 6.0) * persona.latency_bias, 2)
        return success, max(0.2, response_time)


__all__ = [
    "Persona",
    "SessionTrace",
    "SimulationMetrics",
    "LearningSimulation",
    "DEFAULT_PERSONAS",
]
