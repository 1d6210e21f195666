import logging

from .config import LOCAL_TZ
from .errors import BookingNotFound, Forbidden, ResourceNotFound, SlotAlreadyBooked
from .events import (
    ai_recommendation,
    booking_cancelled,
    booking_created,
    booking_deleted,
    booking_updated,
    resource_updated,
)
from .models import Booking
from .repository import BookingStore
from .resources import ResourceDirectory, ResourceInfo
from .schemas import BookingRequest, BookingResponse, Recommendation, ResourceBooking
from .timeslots import interval_for

logger = logging.getLogger(__name__)


class BookingService:
    """
    Scheduling engine: decides whether a booking mutation is legal, persists
    it through the store and emits a domain event once the write is committed.

    `dispatcher` is anything with an async `emit(event)`.
    """

    def __init__(self, store: BookingStore, resources: ResourceDirectory, dispatcher, zone=LOCAL_TZ):
        self.store = store
        self.resources = resources
        self.dispatcher = dispatcher
        self.zone = zone

    async def _resolve_resource(self, resource_id: int) -> ResourceInfo:
        resource = await self.resources.get_by_id(resource_id)
        if resource is None:
            raise ResourceNotFound(f"Resource {resource_id} does not exist")
        return resource

    async def _get_active(self, booking_id: int) -> Booking:
        booking = await self.store.find_by_id(booking_id)
        if booking is None or not booking.is_active:
            raise BookingNotFound(f"Booking {booking_id} not found")
        return booking

    async def _resource_name(self, resource_id: int) -> str:
        resource = await self.resources.get_by_id(resource_id)
        return resource.name if resource else ""

    async def create(self, user_id: str, request: BookingRequest) -> BookingResponse:
        resource = await self._resolve_resource(request.resource_id)
        slot, interval = interval_for(request.booking_date, request.timeslot, self.zone)

        # fast path only; the unique index decides races at insert time
        if await self.store.exists_conflict(resource.resource_id, interval.start, interval.end, active=True):
            logger.info("slot taken: resource=%s start=%s", resource.resource_id, interval.start.isoformat())
            raise SlotAlreadyBooked("Timeslot already booked")

        booking = Booking(
            is_active=True,
            user_id=user_id,
            resource_id=resource.resource_id,
            start_at=interval.start,
            end_at=interval.end,
            timeslot=slot.value,
        )
        booking = await self.store.insert(booking)
        logger.info("booking %s created: resource=%s user=%s slot=%s", booking.id, resource.resource_id, user_id, slot.value)

        await self.dispatcher.emit(booking_created(resource.name, user_id))
        return BookingResponse.from_booking(booking, resource.name)

    async def update(
        self,
        booking_id: int,
        request: BookingRequest,
        requester_id: str | None = None,
        is_admin: bool = False,
    ) -> BookingResponse:
        booking = await self._get_active(booking_id)
        if requester_id is not None and not is_admin and booking.user_id != requester_id:
            raise Forbidden("Only the owner or an admin may change this booking")

        # the request resource must exist, but a booking never changes resource
        await self._resolve_resource(request.resource_id)
        slot, interval = interval_for(request.booking_date, request.timeslot, self.zone)

        conflict = await self.store.exists_conflict(
            booking.resource_id, interval.start, interval.end, active=True, exclude_id=booking_id
        )
        if conflict:
            raise SlotAlreadyBooked("Timeslot already booked by another user")

        booking.start_at = interval.start
        booking.end_at = interval.end
        booking.timeslot = slot.value
        booking = await self.store.update(booking)
        logger.info("booking %s moved: start=%s slot=%s", booking_id, interval.start.isoformat(), slot.value)

        response = BookingResponse.from_booking(booking, await self._resource_name(booking.resource_id))
        await self.dispatcher.emit(booking_updated(response.to_payload()))
        return response

    async def cancel(self, requester_id: str, is_admin: bool, booking_id: int) -> BookingResponse:
        booking = await self._get_active(booking_id)
        if not is_admin and booking.user_id != requester_id:
            logger.warning("user %s tried to cancel booking %s owned by %s", requester_id, booking_id, booking.user_id)
            raise Forbidden("Only the owner or an admin may cancel this booking")

        resource_name = await self._resource_name(booking.resource_id)
        booking = await self.store.deactivate(booking)
        logger.info("booking %s cancelled by %s", booking_id, requester_id)

        response = BookingResponse.from_booking(booking, resource_name)
        await self.dispatcher.emit(booking_cancelled(response.to_payload()))
        return response

    async def delete(self, booking_id: int) -> BookingResponse:
        """Permanent removal. Privilege is checked by the caller."""
        booking = await self.store.find_by_id(booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found")

        resource_name = await self._resource_name(booking.resource_id)
        removed = await self.store.remove(booking_id)
        if removed is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        logger.info("booking %s deleted", booking_id)

        response = BookingResponse.from_booking(removed, resource_name)

        resource = await self.resources.mark_available(removed.resource_id)
        if resource is not None:
            await self.dispatcher.emit(resource_updated(resource.to_payload()))
        await self.dispatcher.emit(booking_deleted(response.to_payload()))
        return response

    async def get(self, booking_id: int) -> BookingResponse | None:
        booking = await self.store.find_by_id(booking_id)
        if booking is None:
            return None
        return BookingResponse.from_booking(booking, await self._resource_name(booking.resource_id))

    async def list_mine(self, user_id: str, include_inactive: bool = False) -> list[BookingResponse]:
        rows = await self.store.list_for_user(user_id, include_inactive)
        return [BookingResponse.from_booking(r.booking, r.resource_name) for r in rows]

    async def list_all(self) -> list[BookingResponse]:
        rows = await self.store.list_all()
        return [BookingResponse.from_booking(r.booking, r.resource_name) for r in rows]

    async def list_for_resource(self, resource_id: int, include_inactive: bool = False) -> list[ResourceBooking]:
        intervals = await self.store.list_for_resource(resource_id, include_inactive)
        return [ResourceBooking(booking_date=i.start, end_date=i.end) for i in intervals]

    async def book_recommendation(self, user_id: str, recommendation: Recommendation) -> BookingResponse:
        detail = recommendation.recommendation
        resource = await self.resources.get_by_name(detail.resource_name)
        if resource is None:
            raise ResourceNotFound(f"Resource {detail.resource_name!r} does not exist")

        request = BookingRequest(
            resource_id=resource.resource_id,
            booking_date=detail.date,
            timeslot=detail.timeslot,
        )
        return await self.create(user_id, request)

    async def share_recommendation(self, user_id: str, recommendation: Recommendation):
        await self.dispatcher.emit(ai_recommendation(user_id, recommendation.model_dump(by_alias=True)))
