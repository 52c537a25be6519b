"""Open views of one event (detail modal, calendar popup, ...).

A ``SurfaceView`` keeps a local copy of an event's assignments.  It edits
through the shared workflow and refreshes itself from bus broadcasts issued
by any other surface on the same event.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable

from staffing.domain.events import AssignmentsSynchronized
from staffing.domain.models import ResourceAssignment
from staffing.services.workflow import AssignmentWorkflow, MutationResult

logger = logging.getLogger(__name__)


class SurfaceView:
    def __init__(
        self,
        workflow: AssignmentWorkflow,
        event_id: str,
        surface_id: str | None = None,
    ) -> None:
        self.workflow = workflow
        self.event_id = event_id
        self.surface_id = surface_id or f"surface-{uuid.uuid4()}"
        self.assignments: tuple[ResourceAssignment, ...] = ()
        self.refresh_count = 0
        self._last_sequence = 0
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def is_open(self) -> bool:
        return self._unsubscribe is not None

    async def open(self) -> SurfaceView:
        """Pull the latest assignments and start listening for updates."""
        event = await self.workflow.load_event(self.event_id)
        self.assignments = tuple(event.assignments)
        record = self.workflow.bus.get_record(self.event_id)
        self._last_sequence = record.sequence if record else 0
        if self._unsubscribe is None:
            self._unsubscribe = self.workflow.bus.subscribe(
                self._on_synchronized, subscriber_id=self.surface_id
            )
        return self

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def is_outdated(self) -> bool:
        """True when the bus holds a newer snapshot than this view shows."""
        record = self.workflow.bus.get_record(self.event_id)
        return record is not None and record.sequence > self._last_sequence

    def _on_synchronized(self, record: AssignmentsSynchronized) -> None:
        if record.event_id != self.event_id:
            return
        self._apply(record)
        self.refresh_count += 1
        logger.debug(
            "Surface %s refreshed from %s", self.surface_id, record.origin_id
        )

    def _apply(self, record: AssignmentsSynchronized) -> None:
        if record.sequence <= self._last_sequence:
            return
        self.assignments = record.assignments
        self._last_sequence = record.sequence

    def _adopt(self, result: MutationResult) -> MutationResult:
        # Own publishes skip this surface's subscriber; take the snapshot here.
        record = self.workflow.bus.get_record(self.event_id)
        if record is not None:
            self._apply(record)
        return result

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    async def add_resource(self, resource_id: str) -> MutationResult:
        return self._adopt(
            await self.workflow.add_resource(self.event_id, resource_id, self.surface_id)
        )

    async def confirm(self, resource_id: str, *, force: bool = False) -> MutationResult:
        return self._adopt(
            await self.workflow.confirm(
                self.event_id, resource_id, self.surface_id, force=force
            )
        )

    async def refuse(self, resource_id: str) -> MutationResult:
        return self._adopt(
            await self.workflow.refuse(self.event_id, resource_id, self.surface_id)
        )

    async def remove(self, resource_id: str) -> MutationResult:
        return self._adopt(
            await self.workflow.remove(self.event_id, resource_id, self.surface_id)
        )

    async def set_required_count(self, count: int) -> MutationResult:
        return self._adopt(
            await self.workflow.set_required_count(self.event_id, count, self.surface_id)
        )
