"""Synchronous in-process bus keeping open surfaces on the latest assignments."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Callable

from staffing.domain.events import AssignmentsSynchronized
from staffing.domain.models import ResourceAssignment

logger = logging.getLogger(__name__)

Subscriber = Callable[[AssignmentsSynchronized], None]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncBus:
    """Publish/subscribe registry of assignment snapshots keyed by event id.

    Subscribers are called synchronously in registration order and receive
    every publish for every event; they filter on ``event_id`` themselves.
    A publish issued from inside a subscriber is queued until the current
    dispatch has reached every subscriber, so all subscribers observe
    publishes in issue order.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or _utcnow
        self._subscribers: list[tuple[Subscriber, str | None]] = []
        self._latest: dict[str, AssignmentsSynchronized] = {}
        self._queue: deque[tuple[AssignmentsSynchronized, bool]] = deque()
        self._dispatching = False
        self._sequence = 0

    def subscribe(
        self, callback: Subscriber, subscriber_id: str | None = None
    ) -> Callable[[], None]:
        """Register *callback*; return a function that unregisters it."""
        entry = (callback, subscriber_id)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(
        self,
        event_id: str,
        assignments: Iterable[ResourceAssignment],
        origin_id: str | None = None,
        *,
        exclude_origin: bool = True,
    ) -> AssignmentsSynchronized:
        """Store *assignments* as the latest snapshot and notify subscribers."""
        self._sequence += 1
        record = AssignmentsSynchronized(
            event_id=event_id,
            assignments=tuple(assignments),
            timestamp=self._clock(),
            origin_id=origin_id,
            sequence=self._sequence,
        )
        self._latest[event_id] = record
        self._queue.append((record, exclude_origin))
        if not self._dispatching:
            self._drain()
        return record

    def get_latest(self, event_id: str) -> tuple[ResourceAssignment, ...] | None:
        record = self._latest.get(event_id)
        return record.assignments if record is not None else None

    def get_record(self, event_id: str) -> AssignmentsSynchronized | None:
        return self._latest.get(event_id)

    def reset(self) -> None:
        self._subscribers.clear()
        self._latest.clear()
        self._queue.clear()

    # ------------------------------------------------------------------

    def _drain(self) -> None:
        self._dispatching = True
        try:
            while self._queue:
                record, skip_origin = self._queue.popleft()
                self._dispatch(record, skip_origin)
        finally:
            self._dispatching = False

    def _dispatch(self, record: AssignmentsSynchronized, skip_origin: bool) -> None:
        logger.debug(
            "Dispatching assignments of event %s (seq %d, origin %s)",
            record.event_id,
            record.sequence,
            record.origin_id,
        )
        for callback, subscriber_id in list(self._subscribers):
            if (
                skip_origin
                and record.origin_id is not None
                and subscriber_id == record.origin_id
            ):
                continue
            try:
                callback(record)
            except Exception:
                logger.exception(
                    "Subscriber %s failed on event %s", subscriber_id, record.event_id
                )
