"""Errors raised by the assignment engine.

``QuotaExceeded``, ``UnknownResource``, ``UnknownEvent`` and
``AssignmentNotFound`` block a mutation: nothing is committed when they are
raised.  ``PersistenceFailure`` is never raised out of a mutation; the local
commit has already happened and the failure travels on the mutation result.
"""

from __future__ import annotations


class AssignmentError(Exception):
    """Base class for refused assignment operations."""


class QuotaExceeded(AssignmentError):
    def __init__(self, event_id: str, required: int, confirmed: int) -> None:
        self.event_id = event_id
        self.required = required
        self.confirmed = confirmed
        super().__init__(f"team already complete ({confirmed}/{required} confirmed)")


class UnknownResource(AssignmentError, LookupError):
    def __init__(self, resource_id: str) -> None:
        self.resource_id = resource_id
        super().__init__(f"Resource not found: {resource_id}")


class UnknownEvent(LookupError):
    def __init__(self, event_id: str) -> None:
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}")


class AssignmentNotFound(AssignmentError, LookupError):
    def __init__(self, event_id: str, resource_id: str) -> None:
        self.event_id = event_id
        self.resource_id = resource_id
        super().__init__(f"Resource {resource_id} is not assigned to event {event_id}")


class PersistenceFailure(Exception):
    """The event store rejected a write that was already applied locally."""

    def __init__(self, event_id: str, cause: BaseException) -> None:
        self.event_id = event_id
        self.cause = cause
        super().__init__(f"Could not persist event {event_id}: {cause}")
