"""FastAPI application, entry point for the florist staffing service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException

from staffing.config import get_settings
from staffing.domain.bus import SyncBus
from staffing.domain.errors import (
    AssignmentNotFound,
    QuotaExceeded,
    UnknownEvent,
    UnknownResource,
)
from staffing.domain.models import (
    AddAssignmentRequest,
    ConflictResult,
    Event,
    MutationRequest,
    MutationResponse,
    RequiredCountRequest,
    Resource,
    ResourceCandidate,
    ResourceStatus,
    TeamSummary,
)
from staffing.repos.memory import (
    EventStore,
    ResourceDirectory,
    create_directory,
    create_event_store,
)
from staffing.services.messages import message_for_status
from staffing.services.schedule import (
    resource_status,
    resources_for_event,
    team_summary,
)
from staffing.services.workflow import AssignmentWorkflow, MutationResult

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Florist Staffing Service")

# ── Singletons (created at import time for simplicity) ────────────────
sync_bus = SyncBus()
event_store = create_event_store() if settings.seed_demo_data else EventStore()
directory = create_directory() if settings.seed_demo_data else ResourceDirectory()
workflow = AssignmentWorkflow(
    store=event_store, directory=directory, bus=sync_bus, settings=settings
)


# ── Helpers ───────────────────────────────────────────────────────────


async def _load(event_id: str) -> Event:
    try:
        return await workflow.load_event(event_id)
    except UnknownEvent:
        raise HTTPException(status_code=404, detail="Event not found")


async def _run(mutation) -> MutationResponse:
    """Await a workflow mutation and map refusals to HTTP errors."""
    try:
        result: MutationResult = await mutation
    except UnknownEvent:
        raise HTTPException(status_code=404, detail="Event not found")
    except UnknownResource:
        raise HTTPException(status_code=404, detail="Resource not found")
    except AssignmentNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except QuotaExceeded as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    if result.conflict is not None:
        raise HTTPException(
            status_code=409,
            detail={
                "message": result.conflict.message,
                "conflicting_event_ids": result.conflict.conflicting_event_ids,
                "hint": "retry with force=true to confirm anyway",
            },
        )

    transition = result.transition
    warnings = []
    if result.persistence_error is not None:
        warnings.append(
            f"Change applied locally but not saved: {result.persistence_error}"
        )
    return MutationResponse(
        event=result.event,
        primary_transition=transition.primary_transition if transition else None,
        side_effects=transition.side_effects if transition else [],
        team_completed=transition.team_completed if transition else False,
        persisted=result.persisted,
        warnings=warnings,
    )


# ── Routes ────────────────────────────────────────────────────────────


@app.get("/events", response_model=list[Event])
async def list_events() -> list[Event]:
    """Return all events with their latest assignments."""
    return await workflow.list_events()


@app.get("/events/{event_id}", response_model=Event)
async def get_event(event_id: str) -> Event:
    return await _load(event_id)


@app.get("/events/{event_id}/team", response_model=TeamSummary)
async def get_team(event_id: str) -> TeamSummary:
    return team_summary(await _load(event_id))


@app.get("/events/{event_id}/candidates", response_model=list[ResourceCandidate])
async def list_candidates(event_id: str) -> list[ResourceCandidate]:
    """Every florist with status and double-booking advisory for this event."""
    event = await _load(event_id)
    return resources_for_event(
        event,
        directory.list_resources(),
        await workflow.list_events(),
        settings.default_duration_minutes,
    )


@app.patch("/events/{event_id}/required-count", response_model=MutationResponse)
async def update_required_count(
    event_id: str, body: RequiredCountRequest
) -> MutationResponse:
    return await _run(
        workflow.set_required_count(
            event_id, body.required_resource_count, body.origin_id
        )
    )


@app.post("/events/{event_id}/assignments", response_model=MutationResponse)
async def add_assignment(event_id: str, body: AddAssignmentRequest) -> MutationResponse:
    return await _run(workflow.add_resource(event_id, body.resource_id, body.origin_id))


@app.post(
    "/events/{event_id}/assignments/{resource_id}/confirm",
    response_model=MutationResponse,
)
async def confirm_assignment(
    event_id: str,
    resource_id: str,
    body: MutationRequest | None = None,
    force: bool = False,
) -> MutationResponse:
    """Confirm a florist; 409 on full team or double-booking (unless forced)."""
    origin_id = body.origin_id if body else None
    return await _run(
        workflow.confirm(event_id, resource_id, origin_id, force=force)
    )


@app.post(
    "/events/{event_id}/assignments/{resource_id}/refuse",
    response_model=MutationResponse,
)
async def refuse_assignment(
    event_id: str, resource_id: str, body: MutationRequest | None = None
) -> MutationResponse:
    origin_id = body.origin_id if body else None
    return await _run(workflow.refuse(event_id, resource_id, origin_id))


@app.delete(
    "/events/{event_id}/assignments/{resource_id}", response_model=MutationResponse
)
async def remove_assignment(
    event_id: str, resource_id: str, body: MutationRequest | None = None
) -> MutationResponse:
    origin_id = body.origin_id if body else None
    return await _run(workflow.remove(event_id, resource_id, origin_id))


@app.get(
    "/events/{event_id}/assignments/{resource_id}/conflicts",
    response_model=ConflictResult,
)
async def get_conflicts(event_id: str, resource_id: str) -> ConflictResult:
    try:
        return await workflow.check_conflicts(event_id, resource_id)
    except UnknownEvent:
        raise HTTPException(status_code=404, detail="Event not found")
    except UnknownResource:
        raise HTTPException(status_code=404, detail="Resource not found")


@app.get("/events/{event_id}/assignments/{resource_id}/message")
async def get_message(event_id: str, resource_id: str) -> dict:
    """Return the message to send this florist for their current status."""
    event = await _load(event_id)
    assignment = event.find_assignment(resource_id)
    if assignment is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    message = assignment.generated_message or message_for_status(
        assignment.status,
        assignment.resource_name,
        event.title,
        event.date,
        event.start_time,
        event.location,
        settings.message_signature,
        settings.message_date_format,
    )
    return {"resource_id": resource_id, "status": assignment.status, "message": message}


@app.get("/resources", response_model=list[Resource])
async def list_resources() -> list[Resource]:
    return directory.list_resources()


@app.get("/resources/{resource_id}/status", response_model=ResourceStatus)
async def get_resource_status(resource_id: str) -> ResourceStatus:
    resource = directory.get(resource_id)
    if resource is None:
        raise HTTPException(status_code=404, detail="Resource not found")
    return resource_status(resource, await workflow.list_events())
