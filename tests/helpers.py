"""
Helper functions for common test operations.
"""

from sqlalchemy import func, select

from telemetry_backend.db import PointInfo, PointReading
from telemetry_backend.repositories.point_repository import to_descriptor
from telemetry_backend.schemas import PointDescriptor


async def create_point_in_db(session, system_id: int, origin_id: str, **kwargs) -> PointDescriptor:
    """
    Create a point descriptor directly in the database.

    Args:
        session: Database session
        system_id: ID of the owning system
        origin_id: Vendor-side identifier of the point
        **kwargs: PointInfo attributes to override defaults

    Returns:
        Descriptor of the created point
    """
    defaults = {
        "system_id": system_id,
        "origin_id": origin_id,
        "origin_sub_id": None,
        "name": origin_id,
        "metric_type": "power",
        "metric_unit": "W",
        "transform": None,
    }
    defaults.update(kwargs)

    point = PointInfo(**defaults)
    session.add(point)
    await session.commit()
    await session.refresh(point)
    return to_descriptor(point)


async def count_readings(session, system_id: int) -> int:
    result = await session.execute(
        select(func.count()).select_from(PointReading).where(PointReading.system_id == system_id)
    )
    return result.scalar_one()
