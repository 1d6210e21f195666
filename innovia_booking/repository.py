import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, NamedTuple

from sqlalchemy import and_, exists, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import BookingNotFound, SlotAlreadyBooked, StorageUnavailable
from .models import Booking, Resource
from .timeslots import Interval

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@asynccontextmanager
async def storage_guard(db: AsyncSession):
    """Translate driver faults into the booking error taxonomy, rolling back first."""
    try:
        yield
    except IntegrityError as exc:
        await _rollback(db)
        raise SlotAlreadyBooked("Timeslot already booked") from exc
    except (DBAPIError, OSError) as exc:
        await _rollback(db)
        raise StorageUnavailable(f"Booking store unavailable: {exc}") from exc


async def _rollback(db: AsyncSession):
    try:
        await db.rollback()
    except (DBAPIError, OSError):
        logger.exception("rollback failed after storage error")


class BookingRow(NamedTuple):
    booking: Booking
    resource_name: str


class BookingStore:
    """
    Persistence primitives for bookings. No business rules live here apart
    from the active-slot unique index, which is the authoritative guard
    against double booking when two requests race past the engine's check.
    """

    def __init__(self, db: AsyncSession, now: Callable[[], datetime] = utcnow):
        self.db = db
        self.now = now

    def _with_resource_name(self):
        return (
            select(Booking, Resource.name)
            .outerjoin(Resource, Resource.id == Booking.resource_id)
        )

    async def find_by_id(self, booking_id: int) -> Booking | None:
        async with storage_guard(self.db):
            res = await self.db.execute(select(Booking).where(Booking.id == booking_id))
            return res.scalar_one_or_none()

    async def list_all(self) -> list[BookingRow]:
        async with storage_guard(self.db):
            res = await self.db.execute(self._with_resource_name().order_by(Booking.start_at, Booking.id))
            return [BookingRow(b, name or "") for b, name in res.all()]

    async def list_for_user(self, user_id: str, include_inactive: bool = False) -> list[BookingRow]:
        stmt = self._with_resource_name().where(Booking.user_id == user_id)
        if not include_inactive:
            stmt = stmt.where(Booking.is_active.is_(True), Booking.end_at > self.now())

        async with storage_guard(self.db):
            res = await self.db.execute(stmt.order_by(Booking.start_at, Booking.id))
            return [BookingRow(b, name or "") for b, name in res.all()]

    async def list_for_resource(self, resource_id: int, include_inactive: bool = False) -> list[Interval]:
        # cancelled bookings never hold a slot; include_inactive only brings back expired ones
        stmt = (
            select(Booking.start_at, Booking.end_at)
            .where(Booking.resource_id == resource_id, Booking.is_active.is_(True))
        )
        if not include_inactive:
            stmt = stmt.where(Booking.end_at > self.now())

        async with storage_guard(self.db):
            res = await self.db.execute(stmt.order_by(Booking.start_at))
            return [Interval(start, end) for start, end in res.all()]

    async def exists_conflict(
        self,
        resource_id: int,
        start: datetime,
        end: datetime,
        active: bool = True,
        exclude_id: int | None = None,
    ) -> bool:
        """
        Equality on both instants, not interval overlap. Every booking is one
        of two canonical half-day shapes, so equality is enough; flexible slot
        boundaries would need `a.start < b.end and b.start < a.end` instead.
        """
        cond = and_(
            Booking.resource_id == resource_id,
            Booking.is_active.is_(active),
            Booking.start_at == start,
            Booking.end_at == end,
        )
        if exclude_id is not None:
            cond = and_(cond, Booking.id != exclude_id)

        async with storage_guard(self.db):
            res = await self.db.execute(select(exists().where(cond)))
            return bool(res.scalar())

    async def insert(self, booking: Booking) -> Booking:
        async with storage_guard(self.db):
            self.db.add(booking)
            await self.db.commit()
        return booking

    async def update(self, booking: Booking) -> Booking:
        async with storage_guard(self.db):
            await self.db.commit()
        return booking

    async def deactivate(self, booking: Booking) -> Booking:
        """Soft delete. Only one of several concurrent cancels can flip the flag."""
        stmt = (
            update(Booking)
            .where(Booking.id == booking.id, Booking.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        booking_id = booking.id
        async with storage_guard(self.db):
            res = await self.db.execute(stmt)
            if res.rowcount == 0:
                await self.db.rollback()
                raise BookingNotFound(f"Booking {booking_id} not found")
            await self.db.commit()
        set_committed_value(booking, "is_active", False)
        return booking

    async def remove(self, booking_id: int) -> Booking | None:
        async with storage_guard(self.db):
            res = await self.db.execute(select(Booking).where(Booking.id == booking_id))
            booking = res.scalar_one_or_none()
            if not booking:
                return None
            await self.db.delete(booking)
            await self.db.commit()
        return booking
