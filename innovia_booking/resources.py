from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Resource, ResourceType
from .repository import storage_guard


@dataclass
class ResourceInfo:
    resource_id: int
    name: str
    resource_type_name: str
    is_booked: bool = False

    def to_payload(self) -> dict:
        return {
            "resourceId": self.resource_id,
            "name": self.name,
            "resourceTypeName": self.resource_type_name,
            "isBooked": self.is_booked,
        }


class ResourceDirectory:
    """Read access to the resource inventory, which this service does not own."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _select(self):
        return (
            select(Resource.id, Resource.name, ResourceType.name, Resource.is_booked)
            .outerjoin(ResourceType, ResourceType.id == Resource.resource_type_id)
        )

    async def get_by_id(self, resource_id: int) -> ResourceInfo | None:
        async with storage_guard(self.db):
            res = await self.db.execute(self._select().where(Resource.id == resource_id))
        row = res.first()
        return _to_info(row) if row else None

    async def get_by_name(self, name: str) -> ResourceInfo | None:
        stmt = (
            self._select()
            .where(func.lower(Resource.name) == (name or "").strip().lower())
            .order_by(Resource.id)
        )
        async with storage_guard(self.db):
            res = await self.db.execute(stmt)
        row = res.first()
        return _to_info(row) if row else None

    async def mark_available(self, resource_id: int) -> ResourceInfo | None:
        """Clear a stale `is_booked` flag. Returns the refreshed resource."""
        async with storage_guard(self.db):
            resource = await self.db.get(Resource, resource_id)
            if not resource:
                return None
            resource.is_booked = False
            await self.db.commit()
        return await self.get_by_id(resource_id)


def _to_info(row) -> ResourceInfo:
    resource_id, name, type_name, is_booked = row
    return ResourceInfo(
        resource_id=resource_id,
        name=name,
        resource_type_name=type_name or "",
        is_booked=bool(is_booked),
    )
