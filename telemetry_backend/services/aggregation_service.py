"""
Service layer for interval aggregation against the store.
"""

from collections.abc import Mapping, Sequence
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from telemetry_backend.config import settings
from telemetry_backend.repositories.aggregate_repository import AggregateRepository
from telemetry_backend.repositories.reading_repository import ReadingRepository
from telemetry_backend.schemas import IntervalAggregate, PointDescriptor
from telemetry_backend.utils.aggregation import (
    DEFAULT_INTERVAL_MS,
    aggregate_interval,
    delta_counter_ids,
    last_values,
)
from telemetry_backend.utils.boundary import format_local_time, interval_end_for

logger = structlog.get_logger()


class AggregationService:
    """
    Computes and persists interval aggregates from raw readings.

    Raw readings stay the source of truth, so any aggregate can be recomputed.
    The live path logs and swallows failures instead of blocking ingestion;
    rebuilds let them propagate.
    """

    def __init__(self, session: AsyncSession, interval_ms: int = DEFAULT_INTERVAL_MS):
        """
        Initialize the service with a database session.

        Args:
            session: The database session.
            interval_ms: Aggregation interval length in milliseconds.
        """
        self.session = session
        self.interval_ms = interval_ms
        self.readings = ReadingRepository(session)
        self.aggregates = AggregateRepository(session)

    async def compute_interval(
        self,
        system_id: int,
        points: Sequence[PointDescriptor],
        interval_end_ms: int,
        previous_last_values: Optional[Mapping[int, float]] = None,
    ) -> list[IntervalAggregate]:
        """
        Recompute and upsert the aggregates of one interval for all given points.

        Uses one bulk read and one bulk write independent of the number of
        points. When no previous last values are supplied, the delta-counter
        baselines are loaded from the preceding interval's aggregates.

        Args:
            system_id: System whose readings are aggregated
            points: Point descriptors selecting the aggregation branch
            interval_end_ms: End of the interval, inclusive
            previous_last_values: Point id -> previous interval's last value

        Returns:
            The aggregates written; empty when there were no readings

        Raises:
            Exception: Any store error, unchanged
        """
        if not points:
            return []

        if previous_last_values is None:
            previous_last_values = await self.aggregates.get_last_values(
                system_id, delta_counter_ids(points), interval_end_ms - self.interval_ms
            )

        readings = await self.readings.get_for_interval(system_id, interval_end_ms - self.interval_ms, interval_end_ms)
        if not readings:
            return []

        aggregates = aggregate_interval(
            system_id,
            points,
            interval_end_ms,
            readings,
            previous_last_values,
            interval_ms=self.interval_ms,
        )
        await self.aggregates.upsert_many(aggregates)

        logger.info(
            "Updated point aggregates",
            system_id=system_id,
            aggregates=len(aggregates),
            interval_end=format_local_time(interval_end_ms, settings.UTC_OFFSET_MINUTES),
        )
        return aggregates

    async def aggregate_interval(
        self,
        system_id: int,
        points: Sequence[PointDescriptor],
        interval_end_ms: int,
        previous_last_values: Optional[Mapping[int, float]] = None,
    ) -> list[IntervalAggregate]:
        """
        Live-path wrapper around compute_interval.

        Failures are rolled back, logged and swallowed so ingestion never fails
        because of aggregation; an empty list is returned instead.
        """
        try:
            return await self.compute_interval(system_id, points, interval_end_ms, previous_last_values)
        except Exception as e:
            await self.session.rollback()
            logger.error(
                "Failed to update point aggregates",
                error=str(e),
                system_id=system_id,
                interval_end_ms=interval_end_ms,
                exc_info=True,
            )
            return []

    async def update_for_measurement(
        self,
        system_id: int,
        points: Sequence[PointDescriptor],
        measurement_time_ms: int,
        previous_last_values: Optional[Mapping[int, float]] = None,
    ) -> list[IntervalAggregate]:
        """Aggregate the interval that contains the given measurement time."""
        interval_end_ms = interval_end_for(measurement_time_ms, self.interval_ms)
        return await self.aggregate_interval(system_id, points, interval_end_ms, previous_last_values)

    async def rebuild(
        self,
        system_id: int,
        points: Sequence[PointDescriptor],
        start_ms: int,
        end_ms: int,
    ) -> int:
        """
        Recompute every interval ending in (start_ms, end_ms].

        Delta-counter baselines are taken from the interval just recomputed,
        matching what live aggregation would have produced. Unlike the live
        path, a failing interval aborts the rebuild with the store error.

        Returns:
            Number of aggregate rows written
        """
        first_end = interval_end_for(start_ms + 1, self.interval_ms)
        written = 0
        previous: Optional[dict[int, float]] = None

        for interval_end_ms in range(first_end, end_ms + 1, self.interval_ms):
            aggregates = await self.compute_interval(system_id, points, interval_end_ms, previous)
            written += len(aggregates)
            previous = last_values(aggregates)

        logger.info(
            "Rebuilt point aggregates",
            system_id=system_id,
            rows=written,
            start=format_local_time(start_ms, settings.UTC_OFFSET_MINUTES),
            end=format_local_time(end_ms, settings.UTC_OFFSET_MINUTES),
        )
        return written
