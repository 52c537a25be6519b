"""Staffing summaries shown next to an event and a florist."""

from __future__ import annotations

from collections.abc import Iterable

from staffing.domain.models import (
    AssignmentStatus,
    Event,
    MissionStatus,
    Resource,
    ResourceCandidate,
    ResourceStatus,
    TeamSummary,
)
from staffing.services.conflicts import find_conflicts, holds_confirmed
from staffing.services.overlap import DEFAULT_DURATION_MINUTES


def team_summary(event: Event) -> TeamSummary:
    """Confirmed vs. required count, with the banner text for the event."""
    confirmed = event.confirmed_count
    required = event.required_resource_count
    missing = max(0, required - confirmed)
    if missing == 0:
        message = "Team complete! The event can be confirmed."
    else:
        plural = "s" if missing > 1 else ""
        message = f"{missing} florist{plural} missing."
    return TeamSummary(
        confirmed=confirmed,
        required=required,
        missing=missing,
        is_complete=missing == 0,
        counts_by_status={status: event.count(status) for status in AssignmentStatus},
        message=message,
    )


def resource_status(resource: Resource, events: Iterable[Event]) -> ResourceStatus:
    missions = [e.id for e in events if holds_confirmed(e, resource.id)]
    if not resource.is_available:
        status = MissionStatus.UNAVAILABLE
    elif missions:
        status = MissionStatus.ON_MISSION
    else:
        status = MissionStatus.AVAILABLE
    return ResourceStatus(
        resource_id=resource.id,
        status=status,
        current_missions=missions,
        total_missions=len(missions),
    )


def resources_for_event(
    event: Event,
    resources: Iterable[Resource],
    events: Iterable[Event],
    default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
) -> list[ResourceCandidate]:
    """Every florist with their status and the double-booking advisory."""
    events = list(events)
    candidates = []
    for resource in resources:
        assignment = event.find_assignment(resource.id)
        candidates.append(
            ResourceCandidate(
                resource=resource,
                status=resource_status(resource, events),
                assignment_status=assignment.status if assignment else None,
                conflict=find_conflicts(
                    event, resource.id, events, default_duration_minutes
                ),
            )
        )
    return candidates
