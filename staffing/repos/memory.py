"""In-memory event store and florist directory."""

from __future__ import annotations

from datetime import date, timedelta

from staffing.domain.errors import UnknownEvent
from staffing.domain.models import Event, Resource, ResourceAssignment


class EventStore:
    """Dict-backed record of truth for events, keyed by id.

    Reads and writes are coroutines so the engine treats the store the way it
    would treat a remote backend.  Writes take the persisted camelCase shape.
    """

    def __init__(self) -> None:
        self._store: dict[str, Event] = {}

    def add(self, event: Event) -> None:
        self._store[event.id] = event

    async def get_event(self, event_id: str) -> Event | None:
        return self._store.get(event_id)

    async def list_events(self) -> list[Event]:
        return list(self._store.values())

    async def update_event(self, event_id: str, fields: dict) -> None:
        """Apply *fields* (persisted shape) to the stored event."""
        stored = self._store.get(event_id)
        if stored is None:
            raise UnknownEvent(event_id)
        data = stored.model_dump(by_alias=True)
        data.update(fields)
        self._store[event_id] = Event.model_validate(data)

    def clear(self) -> None:
        self._store.clear()


class ResourceDirectory:
    """Dict-backed directory of florists, keyed by id."""

    def __init__(self, resources: list[Resource] | None = None) -> None:
        self._resources: dict[str, Resource] = {}
        for resource in resources or []:
            self.add(resource)

    def add(self, resource: Resource) -> None:
        self._resources[resource.id] = resource

    def get(self, resource_id: str) -> Resource | None:
        return self._resources.get(resource_id)

    def list_resources(self) -> list[Resource]:
        return list(self._resources.values())

    def clear(self) -> None:
        self._resources.clear()


# ---------------------------------------------------------------------------
# Seed data – a small team and a busy Saturday useful for conflict testing
# ---------------------------------------------------------------------------


def _seed_resources(directory: ResourceDirectory) -> None:
    for resource in (
        Resource(id="florist-bill", name="Bill Billsantec", phone="+33 6 12 34 56 78"),
        Resource(id="florist-claire", name="Claire Moreau", phone="+33 6 23 45 67 89"),
        Resource(id="florist-lucas", name="Lucas Bernard", phone="+33 6 34 56 78 90"),
        Resource(
            id="florist-emma",
            name="Emma Petit",
            phone="+33 6 45 67 89 01",
            is_available=False,
        ),
    ):
        directory.add(resource)


def _seed_events(store: EventStore, today: date) -> None:
    saturday = today + timedelta(days=(5 - today.weekday()) % 7 or 7)

    store.add(
        Event(
            id="event-wedding",
            title="Mariage Dupont",
            date=saturday,
            start_time="14:00",
            end_time="18:00",
            location="Château de Vaux",
            required_resource_count=2,
            assignments=[
                ResourceAssignment(
                    resource_id="florist-bill",
                    resource_name="Bill Billsantec",
                    status="confirmed",
                ),
                ResourceAssignment(
                    resource_id="florist-claire", resource_name="Claire Moreau"
                ),
            ],
        )
    )
    store.add(
        Event(
            id="event-cocktail",
            title="Cocktail Société Générale",
            date=saturday,
            start_time="17:00",
            location="La Défense",
            required_resource_count=1,
        )
    )
    store.add(
        Event(
            id="event-baptism",
            title="Baptême Martin",
            date=saturday + timedelta(days=1),
            start_time="10:00",
            end_time="12:00",
            location="Église Saint-Roch",
            required_resource_count=3,
        )
    )


def create_directory() -> ResourceDirectory:
    """Return a ResourceDirectory pre-loaded with sample florists."""
    directory = ResourceDirectory()
    _seed_resources(directory)
    return directory


def create_event_store(today: date | None = None) -> EventStore:
    """Return an EventStore pre-loaded with sample events."""
    store = EventStore()
    _seed_events(store, today or date.today())
    return store
