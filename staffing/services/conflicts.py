"""Service for detecting double-booked resources across events."""

from __future__ import annotations

from collections.abc import Iterable

from staffing.domain.models import AssignmentStatus, ConflictResult, Event
from staffing.services.overlap import (
    DEFAULT_DURATION_MINUTES,
    ranges_overlap,
    resolve_range,
)


def holds_confirmed(event: Event, resource_id: str) -> bool:
    assignment = event.find_assignment(resource_id)
    return assignment is not None and assignment.status == AssignmentStatus.CONFIRMED


def find_conflicts(
    target: Event,
    resource_id: str,
    all_events: Iterable[Event],
    default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
) -> ConflictResult:
    """Return the other events where *resource_id* is confirmed and the time
    ranges overlap *target* on the same calendar date.

    Advisory only: the caller decides whether to confirm anyway.
    """
    target_range = resolve_range(
        target.start_time, target.end_time, default_duration_minutes
    )
    conflicting = [
        event
        for event in all_events
        if event.id != target.id
        and event.date == target.date
        and holds_confirmed(event, resource_id)
        and ranges_overlap(
            target_range,
            resolve_range(event.start_time, event.end_time, default_duration_minutes),
        )
    ]
    return ConflictResult(
        has_conflict=bool(conflicting), conflicting_events=conflicting
    )
