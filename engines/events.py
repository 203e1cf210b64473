"""Progress change notifications for practice screens.

Practice screens subscribe to the bus instead of observing mutable state;
the curriculum selector publishes one event per noteworthy change after a
new :class:`schemas.LearnerProgress` snapshot has been produced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

LOGGER = logging.getLogger("epe.events")

EVENT_TYPES: dict[str, str] = {
    "round_recorded": "A practice round was merged into the learner record.",
    "session_recorded": "A completed session summary was merged into the learner record.",
    "practice_recorded": "A speech, mimicry or conversation result was stored.",
    "level_up": "The learner reached a higher level.",
    "emotions_unlocked": "New emotions became selectable.",
    "achievement_unlocked": "The learner earned a new achievement.",
}


@dataclass(frozen=True)
class ProgressEvent:
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.type not in EVENT_TYPES:
            raise ValueError(f"Unsupported event type: {self.type}")


ProgressListener = Callable[[ProgressEvent], None]


class ProgressEventBus:
    """Synchronous fan-out of :class:`ProgressEvent` objects to listeners."""

    def __init__(self) -> None:
        self._listeners: List[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it again."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, event: ProgressEvent) -> None:
        LOGGER.debug("Publishing %s to %d listener(s)", event.type, len(self._listeners))
        for listener in list(self._listeners):
            listener(event)

    def emit(self, event_type: str, **payload: Any) -> ProgressEvent:
        event = ProgressEvent(type=event_type, payload=payload)
        self.publish(event)
        return event

    def __len__(self) -> int:
        return len(self._listeners)
