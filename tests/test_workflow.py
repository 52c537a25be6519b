"""Tests for the assignment workflow, its surfaces and persistence reporting."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

import pytest

from staffing.config import Settings
from staffing.domain.bus import SyncBus
from staffing.domain.errors import QuotaExceeded, UnknownEvent, UnknownResource
from staffing.domain.models import AssignmentStatus, Event, Resource, ResourceAssignment
from staffing.repos.memory import EventStore, ResourceDirectory
from staffing.services.surfaces import SurfaceView
from staffing.services.workflow import AssignmentWorkflow

_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
DAY = date(2024, 6, 15)


class FailingStore(EventStore):
    """Store whose writes always fail, as an unreachable backend would."""

    async def update_event(self, event_id: str, fields: dict) -> None:
        raise ConnectionError("backend unreachable")


class SlowStore(EventStore):
    """Store that suspends on every write and records the write order."""

    def __init__(self) -> None:
        super().__init__()
        self.writes: list[list[str]] = []

    async def update_event(self, event_id: str, fields: dict) -> None:
        await asyncio.sleep(0.01)
        self.writes.append([a["resourceId"] for a in fields["assignments"]])
        await super().update_event(event_id, fields)


def _directory() -> ResourceDirectory:
    return ResourceDirectory(
        [
            Resource(id="alice", name="Alice Martin"),
            Resource(id="bruno", name="Bruno Leroy"),
            Resource(id="chloe", name="Chloe Durand"),
            Resource(id="rose", name="Rose Lambert"),
        ]
    )


def _workflow(store: EventStore | None = None) -> AssignmentWorkflow:
    return AssignmentWorkflow(
        store=store or EventStore(),
        directory=_directory(),
        bus=SyncBus(clock=lambda: _NOW),
        settings=Settings(seed_demo_data=False),
        clock=lambda: _NOW,
    )


def _make_event(**overrides) -> Event:
    defaults = dict(
        id="event-e",
        title="Mariage Dupont",
        date=DAY,
        start_time="14:00",
        end_time="18:00",
        required_resource_count=2,
    )
    defaults.update(overrides)
    return Event(**defaults)


@pytest.fixture()
def workflow() -> AssignmentWorkflow:
    wf = _workflow()
    wf.store.add(_make_event())
    return wf


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_add_and_confirm_persist_and_broadcast(workflow):
    await workflow.add_resource("event-e", "alice")
    result = await workflow.confirm("event-e", "alice")

    assert result.committed and result.persisted
    assert result.event.updated_at == _NOW
    stored = await workflow.store.get_event("event-e")
    assert stored.find_assignment("alice").status == AssignmentStatus.CONFIRMED
    assert stored.updated_at == _NOW
    latest = workflow.bus.get_latest("event-e")
    assert latest[0].status == AssignmentStatus.CONFIRMED


@pytest.mark.asyncio
async def test_auto_complete_through_workflow(workflow):
    for resource_id in ("alice", "bruno", "chloe"):
        await workflow.add_resource("event-e", resource_id)
    await workflow.confirm("event-e", "alice")
    result = await workflow.confirm("event-e", "bruno")

    assert result.transition.team_completed
    stored = await workflow.store.get_event("event-e")
    chloe = stored.find_assignment("chloe")
    assert chloe.status == AssignmentStatus.NOT_SELECTED
    assert "Chloe" in chloe.generated_message
    assert "15/06/2024" in chloe.generated_message


@pytest.mark.asyncio
async def test_quota_exceeded_leaves_state_unchanged(workflow):
    for resource_id in ("alice", "bruno", "chloe"):
        await workflow.add_resource("event-e", resource_id)
    await workflow.confirm("event-e", "alice")
    await workflow.confirm("event-e", "bruno")
    before = workflow.bus.get_record("event-e")

    with pytest.raises(QuotaExceeded):
        await workflow.confirm("event-e", "chloe", force=True)

    assert workflow.bus.get_record("event-e") == before


@pytest.mark.asyncio
async def test_unknown_resource_is_refused(workflow):
    with pytest.raises(UnknownResource):
        await workflow.add_resource("event-e", "nobody")
    assert workflow.bus.get_latest("event-e") is None


@pytest.mark.asyncio
async def test_unknown_event_is_refused(workflow):
    with pytest.raises(UnknownEvent):
        await workflow.add_resource("missing", "alice")


@pytest.mark.asyncio
async def test_noop_mutation_is_not_broadcast(workflow):
    await workflow.add_resource("event-e", "alice")
    record = workflow.bus.get_record("event-e")

    result = await workflow.add_resource("event-e", "alice")

    assert not result.committed
    assert workflow.bus.get_record("event-e") is record


@pytest.mark.asyncio
async def test_required_count_change_is_persisted(workflow):
    result = await workflow.set_required_count("event-e", 3)

    assert result.committed
    stored = await workflow.store.get_event("event-e")
    assert stored.required_resource_count == 3


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_conflict_is_reported_then_force_confirm_succeeds():
    """Rose confirmed 14:00-16:00, then 15:00-17:00 the same day."""
    wf = _workflow()
    wf.store.add(
        _make_event(
            id="event-1",
            title="Mariage Dupont",
            start_time="14:00",
            end_time="16:00",
            assignments=[
                ResourceAssignment(
                    resource_id="rose", resource_name="Rose Lambert", status="confirmed"
                )
            ],
        )
    )
    wf.store.add(
        _make_event(id="event-2", title="Cocktail", start_time="15:00", end_time="17:00")
    )
    await wf.add_resource("event-2", "rose")

    advisory = await wf.check_conflicts("event-2", "rose")
    assert advisory.has_conflict
    assert [e.id for e in advisory.conflicting_events] == ["event-1"]

    held = await wf.confirm("event-2", "rose")
    assert held.conflict is not None
    assert held.conflict.conflicting_event_ids == ["event-1"]
    assert not held.committed
    assert held.event.find_assignment("rose").status == AssignmentStatus.PENDING

    forced = await wf.confirm("event-2", "rose", force=True)
    assert forced.committed
    assert forced.conflict is None
    assert forced.event.find_assignment("rose").status == AssignmentStatus.CONFIRMED
    first = await wf.load_event("event-1")
    assert first.find_assignment("rose").status == AssignmentStatus.CONFIRMED


@pytest.mark.asyncio
async def test_conflict_check_sees_unsaved_local_commits():
    wf = _workflow(FailingStore())
    wf.store.add(_make_event(id="event-1", start_time="14:00", end_time="16:00"))
    wf.store.add(_make_event(id="event-2", start_time="15:00", end_time="17:00"))
    await wf.add_resource("event-1", "rose")
    await wf.confirm("event-1", "rose")
    await wf.add_resource("event-2", "rose")

    result = await wf.confirm("event-2", "rose")

    assert result.conflict is not None
    assert result.conflict.conflicting_event_ids == ["event-1"]


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_persistence_failure_keeps_local_state_and_reports():
    wf = _workflow(FailingStore())
    wf.store.add(_make_event())
    outcomes = []
    wf.subscribe_persistence(outcomes.append)

    result = await wf.add_resource("event-e", "alice", origin_id="modal")

    assert result.committed
    assert not result.persisted
    assert "backend unreachable" in str(result.persistence_error)
    assert isinstance(result.persistence_error.cause, ConnectionError)
    # local commit and broadcast already happened
    assert wf.bus.get_latest("event-e")[0].resource_id == "alice"
    assert (await wf.load_event("event-e")).find_assignment("alice") is not None
    # the store itself never saw the change
    stored = await wf.store.get_event("event-e")
    assert stored.assignments == []
    assert [(o.ok, o.origin_id) for o in outcomes] == [(False, "modal")]


@pytest.mark.asyncio
async def test_persistence_success_is_reported():
    wf = _workflow()
    wf.store.add(_make_event())
    outcomes = []
    unsubscribe = wf.subscribe_persistence(outcomes.append)

    await wf.add_resource("event-e", "alice")
    unsubscribe()
    await wf.add_resource("event-e", "bruno")

    assert [o.ok for o in outcomes] == [True]


@pytest.mark.asyncio
async def test_saved_commit_leaves_no_local_overlay(workflow):
    await workflow.add_resource("event-e", "alice")
    await workflow.confirm("event-e", "alice")

    assert workflow._committed == {}
    assert workflow._write_locks == {}


@pytest.mark.asyncio
async def test_store_edits_are_seen_after_commit():
    """The event moves to another day in the store after Rose was confirmed."""
    wf = _workflow()
    wf.store.add(_make_event(id="event-1", start_time="14:00", end_time="16:00"))
    wf.store.add(_make_event(id="event-2", start_time="15:00", end_time="17:00"))
    await wf.add_resource("event-1", "rose")
    await wf.confirm("event-1", "rose")

    await wf.store.update_event("event-1", {"date": "2024-06-16"})

    moved = await wf.load_event("event-1")
    assert moved.date == date(2024, 6, 16)
    assert moved.find_assignment("rose").status == AssignmentStatus.CONFIRMED
    await wf.add_resource("event-2", "rose")
    assert not (await wf.check_conflicts("event-2", "rose")).has_conflict


@pytest.mark.asyncio
async def test_not_selected_message_uses_current_title():
    wf = _workflow()
    wf.store.add(_make_event(required_resource_count=1))
    await wf.add_resource("event-e", "alice")
    await wf.add_resource("event-e", "bruno")

    await wf.store.update_event("event-e", {"title": "Mariage Leroy"})
    result = await wf.confirm("event-e", "alice")

    assert "Mariage Leroy" in result.event.find_assignment("bruno").generated_message


@pytest.mark.asyncio
async def test_unsaved_assignments_overlay_fresh_store_fields():
    wf = _workflow(FailingStore())
    wf.store.add(_make_event())
    await wf.add_resource("event-e", "alice")

    wf.store.add(_make_event(title="Mariage Dupont-Leroy", location="Orangerie"))

    event = await wf.load_event("event-e")
    assert event.title == "Mariage Dupont-Leroy"
    assert event.location == "Orangerie"
    assert [a.resource_id for a in event.assignments] == ["alice"]
    assert "event-e" in wf._committed


@pytest.mark.asyncio
async def test_check_conflicts_unknown_resource(workflow):
    with pytest.raises(UnknownResource):
        await workflow.check_conflicts("event-e", "nobody")


@pytest.mark.asyncio
async def test_concurrent_mutations_write_in_issue_order():
    store = SlowStore()
    wf = _workflow(store)
    store.add(_make_event())

    await asyncio.gather(
        wf.add_resource("event-e", "alice"),
        wf.add_resource("event-e", "bruno"),
        wf.add_resource("event-e", "chloe"),
    )

    assert store.writes == [
        ["alice"],
        ["alice", "bruno"],
        ["alice", "bruno", "chloe"],
    ]
    stored = await store.get_event("event-e")
    assert [a.resource_id for a in stored.assignments] == ["alice", "bruno", "chloe"]


# ---------------------------------------------------------------------------
# Surfaces
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_other_surface_sees_latest_without_mutating(workflow):
    """Observer X opens E; observer Y confirms; X's view reflects Y's change."""
    await workflow.add_resource("event-e", "alice")

    modal = await SurfaceView(workflow, "event-e", surface_id="modal").open()
    popup = await SurfaceView(workflow, "event-e", surface_id="popup").open()

    await popup.confirm("alice")

    assert workflow.bus.get_latest("event-e")[0].status == AssignmentStatus.CONFIRMED
    assert modal.assignments[0].status == AssignmentStatus.CONFIRMED
    assert modal.refresh_count == 1
    assert popup.assignments[0].status == AssignmentStatus.CONFIRMED
    # the originating surface is not notified of its own publish
    assert popup.refresh_count == 0
    assert not modal.is_outdated()


@pytest.mark.asyncio
async def test_surface_ignores_other_events(workflow):
    workflow.store.add(_make_event(id="event-f", title="Cocktail"))
    modal = await SurfaceView(workflow, "event-e").open()

    await workflow.add_resource("event-f", "alice")

    assert modal.refresh_count == 0
    assert modal.assignments == ()


@pytest.mark.asyncio
async def test_closed_surface_goes_stale(workflow):
    modal = await SurfaceView(workflow, "event-e").open()
    modal.close()
    assert not modal.is_open

    await workflow.add_resource("event-e", "alice")

    assert modal.assignments == ()
    assert modal.is_outdated()

    await modal.open()
    assert [a.resource_id for a in modal.assignments] == ["alice"]
    assert not modal.is_outdated()


@pytest.mark.asyncio
async def test_same_tick_edits_last_call_wins(workflow):
    await workflow.add_resource("event-e", "alice")
    modal = await SurfaceView(workflow, "event-e", surface_id="modal").open()
    popup = await SurfaceView(workflow, "event-e", surface_id="popup").open()

    await asyncio.gather(modal.confirm("alice"), popup.refuse("alice"))

    latest = workflow.bus.get_latest("event-e")
    assert latest[0].status == AssignmentStatus.REFUSED
    assert modal.assignments == popup.assignments == latest
