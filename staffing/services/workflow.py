"""Single entry point for assignment mutations.

Every mutation runs in two phases:

1. local: read the latest assignments (bus snapshot over the store), apply
   the state machine, keep the result as the optimistic local state and
   broadcast it on the bus.  This phase never suspends.
2. remote: write the committed event to the store.  A failed write is
   reported on the result and to persistence observers; the local state is
   not rolled back.

Only the fields this engine writes (assignments, quota, ``updated_at``) are
held locally, and only until the store has accepted them.  Everything else
(date, times, title, location) is always read from the store.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict

from staffing.config import Settings, get_settings
from staffing.domain.bus import SyncBus
from staffing.domain.errors import PersistenceFailure, UnknownEvent, UnknownResource
from staffing.domain.events import ConflictDetected, PersistenceReported
from staffing.domain.models import ConflictResult, Event, Resource, TransitionResult
from staffing.repos.memory import EventStore, ResourceDirectory
from staffing.services import assignments
from staffing.services.conflicts import find_conflicts

logger = logging.getLogger(__name__)

PersistenceObserver = Callable[[PersistenceReported], None]


class MutationResult(BaseModel):
    """What a workflow mutation did, locally and remotely.

    ``conflict`` is set (and nothing applied) when a non-forced confirm would
    double-book the resource.  ``persistence_error`` is set when the local
    commit succeeded but the store write did not.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    event: Event
    transition: TransitionResult | None = None
    conflict: ConflictDetected | None = None
    persistence_error: PersistenceFailure | None = None
    committed: bool = False

    @property
    def persisted(self) -> bool:
        return self.persistence_error is None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssignmentWorkflow:
    """Coordinates the state machine, the conflict advisory, the bus and the store."""

    def __init__(
        self,
        store: EventStore,
        directory: ResourceDirectory,
        bus: SyncBus,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.directory = directory
        self.bus = bus
        self.settings = settings or get_settings()
        self._clock = clock or _utcnow
        self._committed: dict[str, dict[str, Any]] = {}
        self._write_locks: dict[str, asyncio.Lock] = {}
        self._writers: dict[str, int] = {}
        self._persistence_observers: list[PersistenceObserver] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _latest(self, base: Event) -> Event:
        """Overlay unsaved local fields and the bus snapshot on a stored event."""
        unsaved = self._committed.get(base.id)
        event = base.model_copy(update=unsaved) if unsaved else base
        snapshot = self.bus.get_latest(base.id)
        if snapshot is None:
            return event
        return event.model_copy(update={"assignments": list(snapshot)})

    async def load_event(self, event_id: str) -> Event:
        stored = await self.store.get_event(event_id)
        if stored is None:
            raise UnknownEvent(event_id)
        return self._latest(stored)

    async def list_events(self) -> list[Event]:
        return [self._latest(e) for e in await self.store.list_events()]

    def _resource(self, resource_id: str) -> Resource:
        resource = self.directory.get(resource_id)
        if resource is None:
            raise UnknownResource(resource_id)
        return resource

    async def check_conflicts(self, event_id: str, resource_id: str) -> ConflictResult:
        """Advisory double-booking check for confirming *resource_id*."""
        self._resource(resource_id)
        target = await self.load_event(event_id)
        return find_conflicts(
            target,
            resource_id,
            await self.list_events(),
            self.settings.default_duration_minutes,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_resource(
        self, event_id: str, resource_id: str, origin_id: str | None = None
    ) -> MutationResult:
        resource = self._resource(resource_id)
        event = await self.load_event(event_id)
        result = assignments.add_resource(event, resource, self._clock())
        return await self._commit(result, origin_id)

    async def confirm(
        self,
        event_id: str,
        resource_id: str,
        origin_id: str | None = None,
        *,
        force: bool = False,
    ) -> MutationResult:
        """Confirm *resource_id* on the event.

        Quota is always enforced.  A double-booking is returned as
        ``conflict`` without applying anything unless *force* is set.
        """
        self._resource(resource_id)
        event = await self.load_event(event_id)
        assignments.check_can_confirm(event, resource_id)

        if not force:
            conflict = find_conflicts(
                event,
                resource_id,
                await self.list_events(),
                self.settings.default_duration_minutes,
            )
            if conflict.has_conflict:
                logger.info(
                    "Confirm of %s on event %s held back: %s",
                    resource_id,
                    event_id,
                    conflict.describe(),
                )
                return MutationResult(
                    event=self._latest(event),
                    conflict=ConflictDetected(
                        event_id=event_id,
                        resource_id=resource_id,
                        conflicting_event_ids=[
                            e.id for e in conflict.conflicting_events
                        ],
                        message=conflict.describe(),
                    ),
                )

        result = assignments.confirm(
            self._latest(event),
            resource_id,
            self.settings.message_signature,
            self.settings.message_date_format,
        )
        return await self._commit(result, origin_id)

    async def refuse(
        self, event_id: str, resource_id: str, origin_id: str | None = None
    ) -> MutationResult:
        event = await self.load_event(event_id)
        result = assignments.refuse(event, resource_id)
        return await self._commit(result, origin_id)

    async def remove(
        self, event_id: str, resource_id: str, origin_id: str | None = None
    ) -> MutationResult:
        event = await self.load_event(event_id)
        result = assignments.remove(event, resource_id)
        return await self._commit(result, origin_id)

    async def set_required_count(
        self, event_id: str, count: int, origin_id: str | None = None
    ) -> MutationResult:
        event = await self.load_event(event_id)
        result = assignments.set_required_count(event, count)
        return await self._commit(result, origin_id, force_write=True)

    # ------------------------------------------------------------------
    # Commit / persist
    # ------------------------------------------------------------------

    def subscribe_persistence(self, observer: PersistenceObserver) -> Callable[[], None]:
        """Register *observer* for store write outcomes; return an unsubscriber."""
        self._persistence_observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._persistence_observers:
                self._persistence_observers.remove(observer)

        return unsubscribe

    async def _commit(
        self,
        result: TransitionResult,
        origin_id: str | None,
        *,
        force_write: bool = False,
    ) -> MutationResult:
        if not result.changed and not force_write:
            return MutationResult(event=result.event, transition=result)

        event = result.event.model_copy(update={"updated_at": self._clock()})
        result = result.model_copy(update={"event": event})

        unsaved = {
            "assignments": event.assignments,
            "required_resource_count": event.required_resource_count,
            "updated_at": event.updated_at,
        }
        self._committed[event.id] = unsaved
        self.bus.publish(event.id, event.assignments, origin_id)
        if result.primary_transition is not None:
            transition = result.primary_transition
            logger.info(
                "Event %s: %s %s -> %s",
                event.id,
                transition.resource_id,
                transition.from_status,
                transition.to_status,
            )

        error = await self._persist(event, origin_id)
        # a later commit may have replaced the entry while this write waited
        if error is None and self._committed.get(event.id) is unsaved:
            del self._committed[event.id]
        return MutationResult(
            event=event, transition=result, persistence_error=error, committed=True
        )

    async def _persist(
        self, event: Event, origin_id: str | None
    ) -> PersistenceFailure | None:
        fields = {
            "assignments": event.persisted_assignments(),
            "requiredResourceCount": event.required_resource_count,
            "updatedAt": event.updated_at.isoformat() if event.updated_at else None,
        }
        try:
            await self._write(event.id, fields)
        except Exception as exc:
            failure = PersistenceFailure(event.id, exc)
            logger.warning(
                "Persistence failure for event %s, local state kept: %s",
                event.id,
                exc,
            )
            self._report(
                PersistenceReported(
                    event_id=event.id, origin_id=origin_id, ok=False, error=str(exc)
                )
            )
            return failure

        self._report(PersistenceReported(event_id=event.id, origin_id=origin_id, ok=True))
        return None

    async def _write(self, event_id: str, fields: dict) -> None:
        """Write *fields* to the store, one write per event at a time, FIFO."""
        lock = self._write_locks.setdefault(event_id, asyncio.Lock())
        self._writers[event_id] = self._writers.get(event_id, 0) + 1
        try:
            async with lock:
                await self.store.update_event(event_id, fields)
        finally:
            self._writers[event_id] -= 1
            if not self._writers[event_id]:
                del self._writers[event_id]
                del self._write_locks[event_id]

    def _report(self, outcome: PersistenceReported) -> None:
        for observer in list(self._persistence_observers):
            try:
                observer(outcome)
            except Exception:
                logger.exception("Persistence observer failed on event %s", outcome.event_id)
