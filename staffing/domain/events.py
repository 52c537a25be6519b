"""Domain events emitted by the assignment workflow."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from staffing.domain.models import ResourceAssignment


class AssignmentsSynchronized(BaseModel):
    """Latest known assignment list of one event, as broadcast on the bus.

    Never persisted.  ``sequence`` is the publish order; it decides which
    record is the latest, ``timestamp`` is informational.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str
    assignments: tuple[ResourceAssignment, ...]
    timestamp: datetime
    origin_id: str | None = None
    sequence: int


class ConflictDetected(BaseModel):
    """A confirm would double-book the resource. Advisory, not an error."""

    event_id: str
    resource_id: str
    conflicting_event_ids: list[str]
    message: str


class PersistenceReported(BaseModel):
    """Outcome of the store write that follows a local commit."""

    event_id: str
    origin_id: str | None = None
    ok: bool
    error: str | None = None
