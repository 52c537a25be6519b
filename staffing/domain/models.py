"""Domain models for the florist staffing engine."""

from __future__ import annotations

import uuid
import datetime as dt
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class AssignmentStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REFUSED = "refused"
    NOT_SELECTED = "not_selected"


class MissionStatus(StrEnum):
    AVAILABLE = "available"
    ON_MISSION = "on_mission"
    UNAVAILABLE = "unavailable"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def normalize_time(value: str) -> str:
    """Return *value* as a zero-padded ``HH:MM`` time-of-day string.

    Accepts the loose forms people type into the dashboard ("9:00", "9am").
    Raises ``ValueError`` when unparseable.
    """
    raw = value.strip()
    if not raw:
        raise ValueError("time must not be empty")
    try:
        parsed = date_parser.parse(raw, default=datetime(2000, 1, 1))
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"unrecognized time of day: {value!r}") from exc
    return parsed.strftime("%H:%M")


class _CamelModel(BaseModel):
    """Base for models persisted with the camelCase keys of the event store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Resource(_CamelModel):
    """A florist that can be staffed on events. Read-only for this engine."""

    id: str = Field(default_factory=_new_id)
    name: str
    phone: str | None = None
    is_available: bool = True


class ResourceAssignment(_CamelModel):
    """One resource's relationship to one event.

    Frozen: every transition produces a new value, so snapshots handed to
    observers can never be mutated behind the state machine's back.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    resource_id: str
    resource_name: str
    status: AssignmentStatus = AssignmentStatus.PENDING
    assigned_at: datetime = Field(default_factory=_utcnow)
    generated_message: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _collapse_legacy_shape(cls, data: Any) -> Any:
        # Older records carry florist* keys and isConfirmed/isRefused flags
        # instead of a status.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "floristId" in data and "resourceId" not in data:
            data["resourceId"] = data.pop("floristId")
        if "floristName" in data and "resourceName" not in data:
            data["resourceName"] = data.pop("floristName")
        if "preWrittenMessage" in data and "generatedMessage" not in data:
            data["generatedMessage"] = data.pop("preWrittenMessage")
        is_confirmed = data.pop("isConfirmed", None)
        is_refused = data.pop("isRefused", None)
        if data.get("status") is None:
            if is_confirmed:
                data["status"] = AssignmentStatus.CONFIRMED
            elif is_refused:
                data["status"] = AssignmentStatus.REFUSED
            else:
                data["status"] = AssignmentStatus.PENDING
        if "resourceName" not in data and "resource_name" not in data:
            data["resourceName"] = ""
        return data

    @property
    def is_pending(self) -> bool:
        return self.status == AssignmentStatus.PENDING

    @property
    def is_confirmed(self) -> bool:
        return self.status == AssignmentStatus.CONFIRMED

    @property
    def is_refused(self) -> bool:
        return self.status == AssignmentStatus.REFUSED

    @property
    def is_not_selected(self) -> bool:
        return self.status == AssignmentStatus.NOT_SELECTED

    def to_persisted(self) -> dict:
        """Return the camelCase shape written to the event store."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Event(_CamelModel):
    id: str = Field(default_factory=_new_id)
    title: str
    date: dt.date
    start_time: str
    end_time: str | None = None
    location: str | None = None
    required_resource_count: int = Field(default=2, ge=1)
    assignments: list[ResourceAssignment] = Field(default_factory=list)
    updated_at: datetime | None = None

    @field_validator("start_time")
    @classmethod
    def _normalize_start(cls, value: str) -> str:
        return normalize_time(value)

    @field_validator("end_time")
    @classmethod
    def _normalize_end(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return normalize_time(value)

    @model_validator(mode="after")
    def _one_assignment_per_resource(self) -> Event:
        seen: set[str] = set()
        for assignment in self.assignments:
            if assignment.resource_id in seen:
                raise ValueError(
                    f"resource {assignment.resource_id} is assigned more than once"
                )
            seen.add(assignment.resource_id)
        return self

    def find_assignment(self, resource_id: str) -> ResourceAssignment | None:
        for assignment in self.assignments:
            if assignment.resource_id == resource_id:
                return assignment
        return None

    def count(self, status: AssignmentStatus) -> int:
        return sum(1 for a in self.assignments if a.status == status)

    @property
    def confirmed_count(self) -> int:
        return self.count(AssignmentStatus.CONFIRMED)

    def persisted_assignments(self) -> list[dict]:
        return [a.to_persisted() for a in self.assignments]


# ---------------------------------------------------------------------------
# Engine results
# ---------------------------------------------------------------------------


class Transition(BaseModel):
    resource_id: str
    from_status: AssignmentStatus | None
    to_status: AssignmentStatus | None


class TransitionResult(BaseModel):
    """Outcome of one state-machine operation.

    ``primary_transition`` is ``None`` when the call changed nothing.
    ``side_effects`` holds the automatic ``pending -> not_selected`` batch.
    """

    event: Event
    primary_transition: Transition | None = None
    side_effects: list[Transition] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.primary_transition is not None

    @property
    def team_completed(self) -> bool:
        return bool(self.side_effects)


class ConflictResult(BaseModel):
    has_conflict: bool = False
    conflicting_events: list[Event] = Field(default_factory=list)

    def describe(self) -> str:
        if not self.has_conflict:
            return "no scheduling conflict"
        labels = ", ".join(
            f'"{e.title}" ({e.start_time}-{e.end_time or "?"})'
            for e in self.conflicting_events
        )
        return f"scheduling conflict with event {labels}"


class TeamSummary(BaseModel):
    confirmed: int
    required: int
    missing: int
    is_complete: bool
    counts_by_status: dict[AssignmentStatus, int]
    message: str


class ResourceStatus(BaseModel):
    resource_id: str
    status: MissionStatus
    current_missions: list[str] = Field(default_factory=list)
    total_missions: int = 0


class ResourceCandidate(BaseModel):
    """A directory resource as seen from one event's staffing panel."""

    resource: Resource
    status: ResourceStatus
    assignment_status: AssignmentStatus | None = None
    conflict: ConflictResult


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class AddAssignmentRequest(BaseModel):
    resource_id: str
    origin_id: str | None = None


class MutationRequest(BaseModel):
    origin_id: str | None = None


class RequiredCountRequest(BaseModel):
    required_resource_count: int = Field(ge=1)
    origin_id: str | None = None


class MutationResponse(BaseModel):
    event: Event
    primary_transition: Transition | None = None
    side_effects: list[Transition] = Field(default_factory=list)
    team_completed: bool = False
    persisted: bool = True
    warnings: list[str] = Field(default_factory=list)
