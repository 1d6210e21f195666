import asyncio

import pytest

from innovia_booking.errors import BookingNotFound, SlotAlreadyBooked
from innovia_booking.events import BOOKING_CANCELLED, BOOKING_CREATED, BOOKING_UPDATED
from innovia_booking.repository import BookingStore
from innovia_booking.resources import ResourceDirectory
from innovia_booking.schemas import BookingRequest
from innovia_booking.service import BookingService

from tests.conftest import NOW

N = 8


class BlindStore(BookingStore):
    """Every pre-check passes, as if all requests raced past it at once."""

    async def exists_conflict(self, *args, **kwargs) -> bool:
        return False


async def race(session_factory, dispatcher, store_cls, n=N):
    async def attempt(i):
        async with session_factory() as db:
            service = BookingService(store_cls(db, now=lambda: NOW), ResourceDirectory(db), dispatcher)
            req = BookingRequest(resource_id=7, booking_date="2025-06-10", timeslot="FM")
            return await service.create(f"user-{i}", req)

    return await asyncio.gather(*(attempt(i) for i in range(n)), return_exceptions=True)


def split(results):
    ok = [r for r in results if not isinstance(r, BaseException)]
    errors = [r for r in results if isinstance(r, BaseException)]
    return ok, errors


async def test_parallel_creates_yield_one_booking(session_factory, dispatcher):
    ok, errors = split(await race(session_factory, dispatcher, BookingStore))

    assert len(ok) == 1
    assert len(errors) == N - 1
    assert all(isinstance(e, SlotAlreadyBooked) for e in errors), errors
    assert dispatcher.event_types == [BOOKING_CREATED]


async def test_unique_index_is_the_guard_when_prechecks_race(session_factory, dispatcher):
    ok, errors = split(await race(session_factory, dispatcher, BlindStore))

    assert len(ok) == 1
    assert all(isinstance(e, SlotAlreadyBooked) for e in errors), errors
    assert len(dispatcher.events) == 1

    async with session_factory() as db:
        rows = await BookingStore(db, now=lambda: NOW).list_all()
    assert len(rows) == 1
    assert rows[0].booking.user_id == ok[0].user_id


def engine_for(db, dispatcher, store_cls=BookingStore) -> BookingService:
    return BookingService(store_cls(db, now=lambda: NOW), ResourceDirectory(db), dispatcher)


async def book(session_factory, dispatcher, user_id, date, slot):
    async with session_factory() as db:
        req = BookingRequest(resource_id=7, booking_date=date, timeslot=slot)
        return await engine_for(db, dispatcher).create(user_id, req)


async def test_parallel_updates_into_one_slot(session_factory, dispatcher):
    first = await book(session_factory, dispatcher, "alice", "2025-06-10", "EF")
    second = await book(session_factory, dispatcher, "bob", "2025-06-11", "FM")

    async def move(booking_id):
        async with session_factory() as db:
            req = BookingRequest(resource_id=7, booking_date="2025-06-12", timeslot="FM")
            return await engine_for(db, dispatcher, BlindStore).update(booking_id, req)

    ok, errors = split(
        await asyncio.gather(move(first.booking_id), move(second.booking_id), return_exceptions=True)
    )

    assert len(ok) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], SlotAlreadyBooked), errors
    assert dispatcher.event_types.count(BOOKING_UPDATED) == 1

    async with session_factory() as db:
        rows = await BookingStore(db, now=lambda: NOW).list_for_resource(7)
    assert len(rows) == 2
    assert len(set(rows)) == 2


async def test_blind_update_into_a_taken_slot(session_factory, dispatcher):
    await book(session_factory, dispatcher, "alice", "2025-06-10", "FM")
    mine = await book(session_factory, dispatcher, "bob", "2025-06-10", "EF")

    async with session_factory() as db:
        req = BookingRequest(resource_id=7, booking_date="2025-06-10", timeslot="FM")
        with pytest.raises(SlotAlreadyBooked):
            await engine_for(db, dispatcher, BlindStore).update(mine.booking_id, req)

    async with session_factory() as db:
        unchanged = await engine_for(db, dispatcher).get(mine.booking_id)
    assert unchanged.timeslot == "EF"


async def test_parallel_cancels_emit_once(session_factory, dispatcher):
    booking = await book(session_factory, dispatcher, "alice", "2025-06-10", "FM")

    async def cancel():
        async with session_factory() as db:
            return await engine_for(db, dispatcher).cancel("alice", False, booking.booking_id)

    ok, errors = split(await asyncio.gather(cancel(), cancel(), return_exceptions=True))

    assert len(ok) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], BookingNotFound), errors
    assert dispatcher.event_types == [BOOKING_CREATED, BOOKING_CANCELLED]
