"""
Service layer for depositing raw readings and keeping aggregates current.
"""

from collections.abc import Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from telemetry_backend.repositories.reading_repository import ReadingRepository
from telemetry_backend.schemas import IntervalAggregate, PointDescriptor, RawReading
from telemetry_backend.services.aggregation_service import AggregationService
from telemetry_backend.services.exceptions import IngestionError
from telemetry_backend.utils.boundary import interval_end_for

logger = structlog.get_logger()


class IngestionService:
    """
    Stores raw readings handed over by vendor adapters and re-aggregates the
    intervals they touch.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.readings = ReadingRepository(session)
        self.aggregation = AggregationService(session)

    async def ingest(
        self,
        system_id: int,
        readings: Sequence[RawReading],
        points: Sequence[PointDescriptor],
    ) -> list[IntervalAggregate]:
        """
        Insert raw readings and aggregate every interval the batch falls into.

        Intervals are processed oldest first so delta-counter baselines are in
        place before the following interval needs them.

        Args:
            system_id: System the readings belong to
            readings: Quality-tagged raw readings
            points: Descriptors of the system's points

        Returns:
            All aggregates written

        Raises:
            IngestionError: If the readings could not be stored
        """
        if not readings:
            return []

        try:
            await self.readings.insert_many(system_id, readings)
        except Exception as e:
            await self.session.rollback()
            logger.error(
                "Failed to store readings",
                error=str(e),
                system_id=system_id,
                readings=len(readings),
            )
            raise IngestionError(f"Failed to store readings: {str(e)}") from e

        logger.debug("Readings stored", system_id=system_id, readings=len(readings))

        interval_ends = sorted(
            {interval_end_for(r.measurement_time_ms, self.aggregation.interval_ms) for r in readings}
        )
        aggregates: list[IntervalAggregate] = []
        for interval_end_ms in interval_ends:
            aggregates.extend(await self.aggregation.aggregate_interval(system_id, points, interval_end_ms))
        return aggregates
