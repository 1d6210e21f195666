from datetime import timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.types import TypeDecorator

from .db import Base


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC in, timezone-aware UTC out, on every backend."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime passed to UTCDateTime column")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class ResourceType(Base):
    __tablename__ = "resource_types"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, unique=True)


class Resource(Base):
    __tablename__ = "resources"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, index=True)
    resource_type_id = Column(Integer, ForeignKey("resource_types.id"), nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        # authoritative double-booking guard; cancelled rows do not hold the slot
        Index(
            "uq_bookings_active_slot",
            "resource_id",
            "start_at",
            "end_at",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id = Column(Integer, primary_key=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)

    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=False)

    timeslot = Column(String(2), nullable=False)  # FM/EF
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, resource={self.resource_id}, start={self.start_at}, active={self.is_active})>"
