"""Persistence collaborators for :class:`schemas.LearnerProgress`."""

from __future__ import annotations

import logging
from typing import Dict, Protocol

import db
from schemas import LearnerProgress, default_progress

logger = logging.getLogger(__name__)


class ProgressStore(Protocol):
    def load(self, learner_id: str) -> LearnerProgress: ...

    def save(self, learner_id: str, progress: LearnerProgress) -> None: ...


class SQLiteProgressStore:
    """Store learner records as JSON rows in the SQLite database at ``db.DB_PATH``."""

    def __init__(self, initialise: bool = True) -> None:
        if initialise:
            db.init()

    def load(self, learner_id: str) -> LearnerProgress:
        return db.ensure_learner_progress(learner_id)

    def save(self, learner_id: str, progress: LearnerProgress) -> None:
        db.save_learner_progress(learner_id, progress)


class InMemoryProgressStore:
    """Dictionary-backed store for tests and simulations."""

    def __init__(self) -> None:
        self._records: Dict[str, str] = {}

    def load(self, learner_id: str) -> LearnerProgress:
        payload = self._records.get(learner_id)
        if payload is None:
            progress = default_progress()
            self.save(learner_id, progress)
            return progress
        return LearnerProgress.model_validate_json(payload)

    def save(self, learner_id: str, progress: LearnerProgress) -> None:
        # serialised so callers never share a mutable snapshot with the store
        self._records[learner_id] = progress.model_dump_json()
        logger.debug("Stored progress for %s in memory", learner_id)

    def __contains__(self, learner_id: object) -> bool:
        return learner_id in self._records
