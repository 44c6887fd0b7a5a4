"""
Interval aggregation of raw point readings.

Pure computation only; reading and writing the store is done by
AggregationService.
"""

from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Optional

from telemetry_backend.config import settings
from telemetry_backend.constants import MS_PER_MINUTE
from telemetry_backend.schemas import IntervalAggregate, PointDescriptor, RawReading

DEFAULT_INTERVAL_MS = settings.AGGREGATION_INTERVAL_MINUTES * MS_PER_MINUTE


class AggregationBranch(str, Enum):
    """How a point's readings are reduced."""

    PLAIN = "plain"
    DELTA_COUNTER = "delta-counter"
    ENERGY_SUM = "energy-sum"


def resolve_branch(point: PointDescriptor) -> AggregationBranch:
    if point.is_delta_counter:
        return AggregationBranch.DELTA_COUNTER
    if point.is_energy:
        return AggregationBranch.ENERGY_SUM
    return AggregationBranch.PLAIN


def in_interval(measurement_time_ms: int, interval_end_ms: int, interval_ms: int) -> bool:
    """Intervals exclude their start and include their end."""
    return interval_end_ms - interval_ms < measurement_time_ms <= interval_end_ms


def aggregate_point(
    system_id: int,
    point_id: int,
    branch: AggregationBranch,
    interval_end_ms: int,
    readings: Sequence[RawReading],
    previous_last: Optional[float] = None,
) -> IntervalAggregate:
    """
    Reduce one point's readings for one interval.

    Readings must already belong to the interval. They are ordered by
    measurement time here; the sort is stable so equal timestamps keep
    arrival order.

    Args:
        system_id: Owning system
        point_id: Point being aggregated
        branch: Reduction to apply
        interval_end_ms: End of the interval (inclusive)
        readings: The point's readings in arrival order
        previous_last: Last value of the previous interval, delta counters only

    Returns:
        IntervalAggregate; statistics are None when no reading had a value
    """
    ordered = sorted(readings, key=lambda r: r.measurement_time_ms)
    values = [r.value for r in ordered if r.value is not None]
    sample_count = len(values)
    error_count = len(ordered) - sample_count

    avg = min_value = max_value = last = delta = None

    if sample_count:
        last = values[-1]
        if branch is AggregationBranch.DELTA_COUNTER:
            # No baseline on the first interval: delta stays unknown rather than zero
            if previous_last is not None:
                delta = last - previous_last
        else:
            total = sum(values)
            avg = total / sample_count
            min_value = min(values)
            max_value = max(values)
            if branch is AggregationBranch.ENERGY_SUM:
                delta = total

    return IntervalAggregate(
        system_id=system_id,
        point_id=point_id,
        interval_end_ms=interval_end_ms,
        avg=avg,
        min=min_value,
        max=max_value,
        last=last,
        delta=delta,
        sample_count=sample_count,
        error_count=error_count,
    )


def aggregate_interval(
    system_id: int,
    points: Iterable[PointDescriptor],
    interval_end_ms: int,
    readings: Iterable[RawReading],
    previous_last_values: Optional[Mapping[int, float]] = None,
    interval_ms: int = DEFAULT_INTERVAL_MS,
) -> list[IntervalAggregate]:
    """
    Aggregate all points of a system for one interval.

    Readings outside (interval_end - interval_ms, interval_end] or for
    unknown points are ignored. A point gets a row only if it has at least
    one reading, even if every reading is an error.

    Returns:
        One IntervalAggregate per point with readings, ordered by point id
    """
    previous_last_values = previous_last_values or {}
    branches = {point.id: resolve_branch(point) for point in points}

    grouped: dict[int, list[RawReading]] = {}
    for reading in readings:
        if reading.point_id not in branches:
            continue
        if not in_interval(reading.measurement_time_ms, interval_end_ms, interval_ms):
            continue
        grouped.setdefault(reading.point_id, []).append(reading)

    return [
        aggregate_point(
            system_id,
            point_id,
            branches[point_id],
            interval_end_ms,
            grouped[point_id],
            previous_last_values.get(point_id),
        )
        for point_id in sorted(grouped)
    ]


def delta_counter_ids(points: Iterable[PointDescriptor]) -> list[int]:
    return [point.id for point in points if resolve_branch(point) is AggregationBranch.DELTA_COUNTER]


def last_values(aggregates: Iterable[IntervalAggregate]) -> dict[int, float]:
    """Point id -> last value, skipping aggregates without a valid sample."""
    return {agg.point_id: agg.last for agg in aggregates if agg.last is not None}
