from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class BookingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resource_id: int = Field(alias="resourceId", ge=1, le=2**31 - 1)
    booking_date: str = Field(alias="bookingDate")  # yyyy-MM-dd, local civil date
    timeslot: str  # FM/EF, validated by the engine


class BookingResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booking_id: int = Field(alias="bookingId")
    booking_date: datetime = Field(alias="bookingDate")
    end_date: datetime = Field(alias="endDate")
    timeslot: str
    is_active: bool = Field(alias="isActive")
    resource_id: int = Field(alias="resourceId")
    resource_name: str = Field("", alias="resourceName")
    user_id: str = Field(alias="userId")

    @classmethod
    def from_booking(cls, booking, resource_name: str = "") -> "BookingResponse":
        return cls(
            booking_id=booking.id,
            booking_date=booking.start_at,
            end_date=booking.end_at,
            timeslot=booking.timeslot,
            is_active=booking.is_active,
            resource_id=booking.resource_id,
            resource_name=resource_name or "",
            user_id=booking.user_id,
        )

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class ResourceBooking(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booking_date: datetime = Field(alias="bookingDate")
    end_date: datetime = Field(alias="endDate")


class RecommendationDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resource_name: str = Field(alias="resourceName")
    date: str  # yyyy-MM-dd
    timeslot: str  # FM/EF


class Recommendation(BaseModel):
    """An AI booking suggestion, treated as an opaque record."""

    model_config = ConfigDict(populate_by_name=True)

    recommendation: RecommendationDetail
    reason: str = ""
