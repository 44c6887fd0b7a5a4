"""
Repository for raw point readings.
"""

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from telemetry_backend.db import PointReading, now_ms
from telemetry_backend.schemas import RawReading
from telemetry_backend.utils.helpers import dialect_insert

UPDATED_COLUMNS = ("value", "data_quality", "received_time", "session_id")


def to_raw_reading(row: PointReading) -> RawReading:
    return RawReading(
        point_id=row.point_id,
        measurement_time_ms=row.measurement_time,
        value=row.value,
        quality=row.data_quality,
        session_id=row.session_id,
        received_time_ms=row.received_time,
    )


class ReadingRepository:
    """
    Bulk reads and inserts of raw readings.

    Every method issues a single statement regardless of the number of points.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_interval(self, system_id: int, start_ms: int, end_ms: int) -> list[RawReading]:
        """All readings of a system with start_ms < measurement_time <= end_ms, ordered by point and time."""
        result = await self.session.execute(
            select(PointReading)
            .where(
                PointReading.system_id == system_id,
                PointReading.measurement_time > start_ms,
                PointReading.measurement_time <= end_ms,
            )
            .order_by(PointReading.point_id, PointReading.measurement_time, PointReading.id)
            # Rows may have been overwritten by an upsert since they were loaded
            .execution_options(populate_existing=True)
        )
        return [to_raw_reading(row) for row in result.scalars().all()]

    async def get_for_points(self, point_ids: Sequence[int], start_ms: int, end_ms: int) -> list[RawReading]:
        """All readings of the given points within (start_ms, end_ms], in arrival order per point."""
        if not point_ids:
            return []
        result = await self.session.execute(
            select(PointReading)
            .where(
                PointReading.point_id.in_(point_ids),
                PointReading.measurement_time > start_ms,
                PointReading.measurement_time <= end_ms,
            )
            .order_by(PointReading.point_id, PointReading.measurement_time, PointReading.id)
            .execution_options(populate_existing=True)
        )
        return [to_raw_reading(row) for row in result.scalars().all()]

    async def insert_many(self, system_id: int, readings: Sequence[RawReading]) -> None:
        """
        Insert readings, replacing value, quality, receipt time and session of any
        that already exist for (point_id, measurement_time).

        A re-delivered reading is how a provisional quality label is upgraded.

        Commits on success.
        """
        if not readings:
            return
        received = now_ms()
        # One row per key; ON CONFLICT cannot touch the same row twice in a statement
        latest = {(reading.point_id, reading.measurement_time_ms): reading for reading in readings}
        rows = [
            {
                "system_id": system_id,
                "point_id": reading.point_id,
                "session_id": reading.session_id,
                "measurement_time": reading.measurement_time_ms,
                "received_time": reading.received_time_ms if reading.received_time_ms is not None else received,
                "value": reading.value,
                "data_quality": reading.quality,
            }
            for reading in latest.values()
        ]
        stmt = dialect_insert(self.session, PointReading).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["point_id", "measurement_time"],
            set_={column: stmt.excluded[column] for column in UPDATED_COLUMNS},
        )
        await self.session.execute(stmt)
        await self.session.commit()
