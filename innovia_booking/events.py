import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

BOOKING_CREATED = "BookingCreated"
BOOKING_UPDATED = "BookingUpdated"
BOOKING_CANCELLED = "BookingCancelled"
BOOKING_DELETED = "BookingDeleted"
RESOURCE_UPDATED = "ResourceUpdated"
AI_RECOMMENDATION = "AIRecommendation"

ROUTING_KEYS = {
    BOOKING_CREATED: "booking.created",
    BOOKING_UPDATED: "booking.updated",
    BOOKING_CANCELLED: "booking.cancelled",
    BOOKING_DELETED: "booking.deleted",
    RESOURCE_UPDATED: "resource.updated",
    AI_RECOMMENDATION: "recommendation.ready",
}


@dataclass(frozen=True)
class DomainEvent:
    event_type: str
    data: dict
    user_id: str | None = None  # None = broadcast to every subscriber
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def routing_key(self) -> str:
        return ROUTING_KEYS[self.event_type]


def booking_created(resource_name: str, user_id: str) -> DomainEvent:
    return DomainEvent(BOOKING_CREATED, {"resourceName": resource_name, "userId": user_id})


def booking_updated(booking: dict) -> DomainEvent:
    return DomainEvent(BOOKING_UPDATED, booking)


def booking_cancelled(booking: dict) -> DomainEvent:
    return DomainEvent(BOOKING_CANCELLED, booking)


def booking_deleted(booking: dict) -> DomainEvent:
    return DomainEvent(BOOKING_DELETED, booking)


def resource_updated(resource: dict) -> DomainEvent:
    return DomainEvent(RESOURCE_UPDATED, resource)


def ai_recommendation(user_id: str, recommendation: dict) -> DomainEvent:
    return DomainEvent(AI_RECOMMENDATION, recommendation, user_id=user_id)


def build_event(event: DomainEvent) -> dict:
    return {
        "event_id": event.event_id,
        "event_type": event.event_type,
        "occurred_at": event.occurred_at.isoformat(),
        "user_id": event.user_id,
        "data": event.data,
    }


def to_json(event: dict) -> str:
    return json.dumps(event, separators=(",", ":"), ensure_ascii=False, default=str)
