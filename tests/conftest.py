import datetime

import pytest

from innovia_booking.db import create_schema, get_engine, get_session
from innovia_booking.models import Resource, ResourceType
from innovia_booking.repository import BookingStore
from innovia_booking.resources import ResourceDirectory
from innovia_booking.service import BookingService

# the store's notion of "now" in tests; bookings in June 2025 are upcoming
NOW = datetime.datetime(2025, 6, 1, 12, 0, tzinfo=datetime.timezone.utc)


class RecordingDispatcher:
    def __init__(self):
        self.events = []

    async def emit(self, event):
        self.events.append(event)

    @property
    def event_types(self) -> list[str]:
        return [e.event_type for e in self.events]


@pytest.fixture
async def engine(tmp_path):
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(engine):
    factory = get_session(engine)
    async with factory() as db:
        db.add_all(
            [
                ResourceType(id=1, name="Desk"),
                ResourceType(id=2, name="Meeting room"),
                ResourceType(id=3, name="VR set"),
            ]
        )
        await db.flush()
        db.add_all(
            [
                Resource(id=7, name="Desk 7", resource_type_id=1, is_booked=True),
                Resource(id=8, name="Room Alpha", resource_type_id=2),
                Resource(id=9, name="VR Headset 1", resource_type_id=3),
            ]
        )
        await db.commit()
    return factory


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db) -> BookingStore:
    return BookingStore(db, now=lambda: NOW)


@pytest.fixture
def service(db, store, dispatcher) -> BookingService:
    return BookingService(store, ResourceDirectory(db), dispatcher)
