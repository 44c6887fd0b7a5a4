"""
Repository for interval aggregates.
"""

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from telemetry_backend.db import PointReadingAgg5m, now_ms
from telemetry_backend.schemas import IntervalAggregate
from telemetry_backend.utils.helpers import dialect_insert

VALUE_COLUMNS = ("avg", "min", "max", "last", "delta", "sample_count", "error_count")


def to_interval_aggregate(row: PointReadingAgg5m) -> IntervalAggregate:
    return IntervalAggregate(
        system_id=row.system_id,
        point_id=row.point_id,
        interval_end_ms=row.interval_end,
        avg=row.avg,
        min=row.min,
        max=row.max,
        last=row.last,
        delta=row.delta,
        sample_count=row.sample_count,
        error_count=row.error_count,
    )


class AggregateRepository:
    """
    Upserts and lookups of interval aggregates keyed by (system_id, point_id, interval_end).
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert_many(self, aggregates: Sequence[IntervalAggregate]) -> None:
        """
        Write all aggregates in one statement, overwriting every value column on conflict.

        Commits on success.
        """
        if not aggregates:
            return
        written = now_ms()
        rows = [
            {
                "system_id": agg.system_id,
                "point_id": agg.point_id,
                "interval_end": agg.interval_end_ms,
                **{column: getattr(agg, column) for column in VALUE_COLUMNS},
                "created_at": written,
                "updated_at": written,
            }
            for agg in aggregates
        ]
        stmt = dialect_insert(self.session, PointReadingAgg5m).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["system_id", "point_id", "interval_end"],
            set_={
                **{column: stmt.excluded[column] for column in VALUE_COLUMNS},
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def get_last_values(self, system_id: int, point_ids: Sequence[int], interval_end_ms: int) -> dict[int, float]:
        """Point id -> last value of the given interval, skipping intervals without a valid sample."""
        if not point_ids:
            return {}
        result = await self.session.execute(
            select(PointReadingAgg5m.point_id, PointReadingAgg5m.last).where(
                PointReadingAgg5m.system_id == system_id,
                PointReadingAgg5m.point_id.in_(point_ids),
                PointReadingAgg5m.interval_end == interval_end_ms,
            )
        )
        return {row.point_id: row.last for row in result if row.last is not None}

    async def get_for_range(self, system_id: int, start_ms: int, end_ms: int) -> list[IntervalAggregate]:
        """Aggregates with start_ms < interval_end <= end_ms, ordered by interval then point."""
        result = await self.session.execute(
            select(PointReadingAgg5m)
            .where(
                PointReadingAgg5m.system_id == system_id,
                PointReadingAgg5m.interval_end > start_ms,
                PointReadingAgg5m.interval_end <= end_ms,
            )
            .order_by(PointReadingAgg5m.interval_end, PointReadingAgg5m.point_id)
            .execution_options(populate_existing=True)
        )
        return [to_interval_aggregate(row) for row in result.scalars().all()]
