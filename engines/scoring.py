"""Point scoring for practice rounds and session summaries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from schemas import RoundOutcome, SessionReport, SessionSummary

BASE_POINTS = 100
STREAK_BONUS = 10
# (upper bound in seconds, bonus); first match wins
SPEED_BONUSES: Tuple[Tuple[float, int], ...] = ((2.0, 50), (5.0, 25))


@dataclass(frozen=True)
class RoundScore:
    base: int
    speed_bonus: int
    streak_bonus: int

    @property
    def total(self) -> int:
        return self.base + self.speed_bonus + self.streak_bonus


def speed_bonus(response_time_seconds: float) -> int:
    for limit, bonus in SPEED_BONUSES:
        if response_time_seconds < limit:
            return bonus
    return 0


def score_round(outcome: RoundOutcome, streak_before: int) -> RoundScore:
    """Score one round; ``streak_before`` is the streak prior to this round."""

    if not outcome.is_correct:
        return RoundScore(0, 0, 0)
    return RoundScore(
        base=BASE_POINTS,
        speed_bonus=speed_bonus(outcome.response_time_seconds),
        streak_bonus=STREAK_BONUS * max(0, streak_before),
    )


def summarize_session(report: SessionReport, *, score: Optional[int] = None) -> SessionSummary:
    """Condense a session report into a :class:`SessionSummary`.

    Streaks restart at zero for each session, as on the practice screens.
    """

    streak = 0
    max_streak = 0
    points = 0
    correct = 0
    for outcome in report.rounds:
        points += score_round(outcome, streak).total
        if outcome.is_correct:
            correct += 1
            streak += 1
            max_streak = max(max_streak, streak)
        else:
            streak = 0

    answered = len(report.rounds)
    average_time = (
        sum(outcome.response_time_seconds for outcome in report.rounds) / answered
        if answered
        else 0.0
    )
    return SessionSummary(
        session_id=report.session_id,
        modality=report.modality,
        started_at=report.started_at,
        ended_at=report.ended_at,
        score=points if score is None else score,
        questions_answered=answered,
        correct_answers=correct,
        max_streak=max_streak,
        average_response_time=average_time,
    )
