"""Assignment state machine for one event's staffing.

Transitions::

    add      -> pending
    confirm  pending | refused | not_selected -> confirmed   (quota-checked)
    refuse   any -> refused
    remove   deletes the entry
    auto-complete  pending -> not_selected, once confirmed == required

Operations never mutate the event they receive; they return a
``TransitionResult`` holding the new event value.  Nothing here suspends,
so an auto-complete batch cannot interleave with another mutation.
"""

from __future__ import annotations

import logging
from datetime import datetime

from staffing.domain.errors import AssignmentNotFound, QuotaExceeded
from staffing.domain.models import (
    AssignmentStatus,
    Event,
    Resource,
    ResourceAssignment,
    Transition,
    TransitionResult,
)
from staffing.services.messages import (
    DEFAULT_DATE_FORMAT,
    DEFAULT_SIGNATURE,
    first_name,
    generate_not_selected_message,
)

logger = logging.getLogger(__name__)


def _with_assignments(event: Event, assignments: list[ResourceAssignment]) -> Event:
    return event.model_copy(update={"assignments": assignments})


def _replace(
    event: Event, resource_id: str, new: ResourceAssignment
) -> list[ResourceAssignment]:
    return [new if a.resource_id == resource_id else a for a in event.assignments]


def _require(event: Event, resource_id: str) -> ResourceAssignment:
    assignment = event.find_assignment(resource_id)
    if assignment is None:
        raise AssignmentNotFound(event.id, resource_id)
    return assignment


def add_resource(event: Event, resource: Resource, now: datetime) -> TransitionResult:
    """Put *resource* on the event as ``pending``.

    A refused or not-selected resource is reset to pending in place.  A
    resource already pending or confirmed is left untouched.
    """
    existing = event.find_assignment(resource.id)
    if existing is None:
        assignment = ResourceAssignment(
            resource_id=resource.id,
            resource_name=resource.name,
            status=AssignmentStatus.PENDING,
            assigned_at=now,
        )
        return TransitionResult(
            event=_with_assignments(event, [*event.assignments, assignment]),
            primary_transition=Transition(
                resource_id=resource.id,
                from_status=None,
                to_status=AssignmentStatus.PENDING,
            ),
        )

    if existing.status in (AssignmentStatus.PENDING, AssignmentStatus.CONFIRMED):
        return TransitionResult(event=event)

    reset = existing.model_copy(
        update={
            "status": AssignmentStatus.PENDING,
            "assigned_at": now,
            "generated_message": None,
            "resource_name": resource.name,
        }
    )
    return TransitionResult(
        event=_with_assignments(event, _replace(event, resource.id, reset)),
        primary_transition=Transition(
            resource_id=resource.id,
            from_status=existing.status,
            to_status=AssignmentStatus.PENDING,
        ),
    )


def check_can_confirm(event: Event, resource_id: str) -> ResourceAssignment:
    """Raise unless confirming *resource_id* is allowed right now."""
    assignment = _require(event, resource_id)
    if assignment.status == AssignmentStatus.CONFIRMED:
        return assignment
    confirmed = event.confirmed_count
    if confirmed >= event.required_resource_count:
        raise QuotaExceeded(event.id, event.required_resource_count, confirmed)
    return assignment


def confirm(
    event: Event,
    resource_id: str,
    signature: str = DEFAULT_SIGNATURE,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> TransitionResult:
    """Confirm *resource_id*; complete the team if the quota is now reached."""
    assignment = check_can_confirm(event, resource_id)
    if assignment.status == AssignmentStatus.CONFIRMED:
        return TransitionResult(event=event)

    confirmed = assignment.model_copy(
        update={"status": AssignmentStatus.CONFIRMED, "generated_message": None}
    )
    updated = _with_assignments(event, _replace(event, resource_id, confirmed))
    primary = Transition(
        resource_id=resource_id,
        from_status=assignment.status,
        to_status=AssignmentStatus.CONFIRMED,
    )

    if updated.confirmed_count != updated.required_resource_count:
        return TransitionResult(event=updated, primary_transition=primary)

    completed = auto_complete(updated, signature, date_format)
    return TransitionResult(
        event=completed.event,
        primary_transition=primary,
        side_effects=completed.side_effects,
    )


def auto_complete(
    event: Event,
    signature: str = DEFAULT_SIGNATURE,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> TransitionResult:
    """Move every pending assignment to ``not_selected`` in one batch.

    Each moved assignment carries the message telling the florist the team
    is complete.
    """
    assignments: list[ResourceAssignment] = []
    side_effects: list[Transition] = []
    for assignment in event.assignments:
        if assignment.status != AssignmentStatus.PENDING:
            assignments.append(assignment)
            continue
        message = generate_not_selected_message(
            first_name(assignment.resource_name),
            event.title,
            event.date,
            signature,
            date_format,
        )
        assignments.append(
            assignment.model_copy(
                update={
                    "status": AssignmentStatus.NOT_SELECTED,
                    "generated_message": message,
                }
            )
        )
        side_effects.append(
            Transition(
                resource_id=assignment.resource_id,
                from_status=AssignmentStatus.PENDING,
                to_status=AssignmentStatus.NOT_SELECTED,
            )
        )

    if side_effects:
        logger.info(
            "Team complete for event %s: %d pending florist(s) not selected",
            event.id,
            len(side_effects),
        )
    return TransitionResult(
        event=_with_assignments(event, assignments), side_effects=side_effects
    )


def refuse(event: Event, resource_id: str) -> TransitionResult:
    assignment = _require(event, resource_id)
    if assignment.status == AssignmentStatus.REFUSED:
        return TransitionResult(event=event)
    refused = assignment.model_copy(
        update={"status": AssignmentStatus.REFUSED, "generated_message": None}
    )
    return TransitionResult(
        event=_with_assignments(event, _replace(event, resource_id, refused)),
        primary_transition=Transition(
            resource_id=resource_id,
            from_status=assignment.status,
            to_status=AssignmentStatus.REFUSED,
        ),
    )


def remove(event: Event, resource_id: str) -> TransitionResult:
    assignment = _require(event, resource_id)
    remaining = [a for a in event.assignments if a.resource_id != resource_id]
    return TransitionResult(
        event=_with_assignments(event, remaining),
        primary_transition=Transition(
            resource_id=resource_id, from_status=assignment.status, to_status=None
        ),
    )


def set_required_count(event: Event, count: int) -> TransitionResult:
    """Change the confirmed quota.

    Never re-runs auto-complete and never demotes confirmations above the
    new quota; both wait for the next explicit mutation.
    """
    if count < 1:
        raise ValueError("required_resource_count must be at least 1")
    return TransitionResult(
        event=event.model_copy(update={"required_resource_count": count})
    )
