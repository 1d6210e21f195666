from dataclasses import dataclass, field
from typing import List

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import (
    BookingError,
    BookingNotFound,
    Forbidden,
    InvalidDate,
    InvalidSlot,
    ResourceNotFound,
    SlotAlreadyBooked,
    StorageUnavailable,
)
from .repository import BookingStore
from .resources import ResourceDirectory
from .schemas import BookingRequest, BookingResponse, Recommendation, ResourceBooking
from .service import BookingService

# integer primary keys; larger values would overflow the driver
ROW_ID = Path(ge=1, le=2**31 - 1)

router = APIRouter()

ERROR_STATUS = {
    InvalidDate: status.HTTP_400_BAD_REQUEST,
    InvalidSlot: status.HTTP_400_BAD_REQUEST,
    Forbidden: status.HTTP_403_FORBIDDEN,
    ResourceNotFound: status.HTTP_404_NOT_FOUND,
    BookingNotFound: status.HTTP_404_NOT_FOUND,
    SlotAlreadyBooked: status.HTTP_409_CONFLICT,
    StorageUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def booking_error_handler(request: Request, exc: BookingError):
    code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=code, content={"detail": str(exc)})


@dataclass
class Caller:
    user_id: str
    roles: set = field(default_factory=set)

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


def get_caller(
    x_user_id: str | None = Header(None),
    x_user_roles: str | None = Header(None),
) -> Caller:
    # identity is validated by the gateway and forwarded as headers
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    roles = {r.strip().lower() for r in (x_user_roles or "").split(",") if r.strip()}
    return Caller(user_id=x_user_id, roles=roles)


def require_admin(caller: Caller):
    if not caller.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access forbidden for this role")


async def get_db(request: Request):
    async with request.app.state.session_factory() as session:
        yield session


def get_service(request: Request, db: AsyncSession = Depends(get_db)) -> BookingService:
    return BookingService(BookingStore(db), ResourceDirectory(db), request.app.state.dispatcher)


@router.get("/bookings", response_model=List[BookingResponse])
async def list_bookings(caller: Caller = Depends(get_caller), service: BookingService = Depends(get_service)):
    require_admin(caller)
    return await service.list_all()


@router.get("/bookings/myBookings", response_model=List[BookingResponse])
async def my_bookings(
    include_expired: bool = Query(False, alias="includeExpiredBookings"),
    caller: Caller = Depends(get_caller),
    service: BookingService = Depends(get_service),
):
    return await service.list_mine(caller.user_id, include_expired)


@router.get("/bookings/resource/{resource_id}", response_model=List[ResourceBooking])
async def resource_bookings(
    resource_id: int = ROW_ID,
    include_expired: bool = Query(False, alias="includeExpiredBookings"),
    caller: Caller = Depends(get_caller),
    service: BookingService = Depends(get_service),
):
    return await service.list_for_resource(resource_id, include_expired)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: int = ROW_ID, caller: Caller = Depends(get_caller), service: BookingService = Depends(get_service)):
    booking = await service.get(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@router.post("/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(data: BookingRequest, caller: Caller = Depends(get_caller), service: BookingService = Depends(get_service)):
    return await service.create(caller.user_id, data)


@router.put("/bookings/{booking_id}", response_model=BookingResponse)
async def update_booking(
    data: BookingRequest,
    booking_id: int = ROW_ID,
    caller: Caller = Depends(get_caller),
    service: BookingService = Depends(get_service),
):
    return await service.update(booking_id, data, requester_id=caller.user_id, is_admin=caller.is_admin)


@router.post("/bookings/cancel/{booking_id}", response_model=BookingResponse)
async def cancel_booking(booking_id: int = ROW_ID, caller: Caller = Depends(get_caller), service: BookingService = Depends(get_service)):
    return await service.cancel(caller.user_id, caller.is_admin, booking_id)


@router.post("/bookings/delete/{booking_id}", response_model=BookingResponse)
async def delete_booking(booking_id: int = ROW_ID, caller: Caller = Depends(get_caller), service: BookingService = Depends(get_service)):
    require_admin(caller)
    return await service.delete(booking_id)


@router.post("/bookings/recommendation", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def book_recommendation(
    data: Recommendation,
    caller: Caller = Depends(get_caller),
    service: BookingService = Depends(get_service),
):
    return await service.book_recommendation(caller.user_id, data)


@router.post("/recommendations/share", status_code=status.HTTP_202_ACCEPTED)
async def share_recommendation(
    data: Recommendation,
    caller: Caller = Depends(get_caller),
    service: BookingService = Depends(get_service),
):
    await service.share_recommendation(caller.user_id, data)
    return {"message": "Recommendation sent"}
