import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from schemas import LearnerProgress, default_progress

logger = logging.getLogger(__name__)

DB_PATH = os.getenv("DB_PATH", "progress.db")


@contextmanager
def _conn() -> Iterator[sqlite3.Connection]:
    """Open a connection to ``DB_PATH``; commits on success, always closes."""
    con = sqlite3.connect(DB_PATH)
    con.row_factory = sqlite3.Row
    try:
        yield con
        con.commit()
    except Exception:
        con.rollback()
        raise
    finally:
        con.close()


def _exec(sql: str, params: Iterable = ()) -> int:
    with _conn() as con:
        cur = con.execute(sql, tuple(params))
        return cur.rowcount


def _query(sql: str, params: Iterable = ()) -> list[sqlite3.Row]:
    with _conn() as con:
        return con.execute(sql, tuple(params)).fetchall()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def init():
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    with _conn() as con:
        con.executescript(
            """
            PRAGMA journal_mode=WAL;

            CREATE TABLE IF NOT EXISTS learner_progress (
              learner_id  TEXT PRIMARY KEY,
              payload     TEXT NOT NULL,
              level       INTEGER NOT NULL DEFAULT 1,
              created_at  TEXT NOT NULL,
              updated_at  TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_learner_progress_level ON learner_progress(level);
            """
        )


# -------------- learner progress --------------
def get_learner_progress(learner_id: str) -> Optional[LearnerProgress]:
    """Return the stored record for ``learner_id`` or ``None``."""
    rows = _query("SELECT payload FROM learner_progress WHERE learner_id = ?", (learner_id,))
    if not rows:
        return None
    return LearnerProgress.model_validate_json(rows[0]["payload"])


def save_learner_progress(learner_id: str, progress: LearnerProgress) -> None:
    if not learner_id:
        raise ValueError("learner_id required")
    payload = progress.model_dump_json()
    now = _now()
    _exec(
        """
        INSERT INTO learner_progress(learner_id, payload, level, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(learner_id) DO UPDATE SET
          payload = excluded.payload,
          level = excluded.level,
          updated_at = excluded.updated_at
        """,
        (learner_id, payload, progress.current_level, now, now),
    )
    logger.info("Saved progress for %s (level %s)", learner_id, progress.current_level)


def ensure_learner_progress(learner_id: str) -> LearnerProgress:
    """Return the stored record, creating the signup defaults on first use."""
    existing = get_learner_progress(learner_id)
    if existing is not None:
        return existing
    progress = default_progress()
    save_learner_progress(learner_id, progress)
    return progress


def delete_learner_progress(learner_id: str) -> bool:
    return _exec("DELETE FROM learner_progress WHERE learner_id = ?", (learner_id,)) > 0


def list_learners(level: Optional[int] = None) -> List[Dict[str, Any]]:
    if level is None:
        rows = _query(
            "SELECT learner_id, level, updated_at FROM learner_progress ORDER BY learner_id"
        )
    else:
        rows = _query(
            "SELECT learner_id, level, updated_at FROM learner_progress WHERE level = ? ORDER BY learner_id",
            (int(level),),
        )
    return [dict(row) for row in rows]


def export_learner_progress(learner_id: str) -> Optional[Dict[str, Any]]:
    """Return the stored record as plain JSON data (for therapist exports)."""
    rows = _query("SELECT payload FROM learner_progress WHERE learner_id = ?", (learner_id,))
    if not rows:
        return None
    return json.loads(rows[0]["payload"])
