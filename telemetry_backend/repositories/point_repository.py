"""
Repository for point descriptor lookups.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from telemetry_backend.db import PointInfo
from telemetry_backend.schemas import PointDescriptor


def to_descriptor(point: PointInfo) -> PointDescriptor:
    return PointDescriptor(
        id=point.id,
        system_id=point.system_id,
        origin_id=point.origin_id,
        origin_sub_id=point.origin_sub_id,
        metric_type=point.metric_type,
        metric_unit=point.metric_unit,
        transform=point.transform,
    )


class PointRepository:
    """
    Read-only access to point descriptors.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The database session.
        """
        self.session = session

    async def get_by_system(self, system_id: int) -> list[PointDescriptor]:
        result = await self.session.execute(
            select(PointInfo).where(PointInfo.system_id == system_id).order_by(PointInfo.id)
        )
        return [to_descriptor(point) for point in result.scalars().all()]

