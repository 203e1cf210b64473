import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def temp_db(monkeypatch, tmp_path):
    import db

    db_path = tmp_path / "test.db"
    monkeypatch.setattr(db, "DB_PATH", str(db_path))
    db.init()
    return str(db_path)


class SequenceRandom:
    """Deterministic stand-in for ``random.Random`` returning queued values."""

    def __init__(self, *values):
        self.values = list(values) or [0.0]
        self.calls = 0

    def random(self):
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value


@pytest.fixture
def make_round():
    from schemas import RoundOutcome

    start = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make(emotion="happy", correct=True, response_time=3.0, recognized=None, modality="visual"):
        counter["n"] += 1
        if recognized is None:
            recognized = emotion if correct else ("sad" if emotion != "sad" else "happy")
        return RoundOutcome(
            emotion_target=emotion,
            emotion_recognized=recognized,
            is_correct=correct,
            response_time_seconds=response_time,
            modality=modality,
            recorded_at=start + timedelta(seconds=counter["n"]),
        )

    return _make


@pytest.fixture
def sequence_rng():
    return SequenceRandom
