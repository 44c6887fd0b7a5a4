from datetime import datetime

from pydantic.dataclasses import dataclass

from telemetry_backend.constants import DEFAULT_QUALITY, DELTA_TRANSFORM, ENERGY_METRIC


@dataclass(frozen=True)
class PointDescriptor:
    id: int
    system_id: int
    origin_id: str
    origin_sub_id: str | None = None
    metric_type: str = "power"
    metric_unit: str = "W"
    transform: str | None = None

    @property
    def point_key(self) -> str:
        if self.origin_sub_id:
            return f"{self.origin_id}.{self.origin_sub_id}"
        return self.origin_id

    @property
    def is_delta_counter(self) -> bool:
        return self.transform == DELTA_TRANSFORM

    @property
    def is_energy(self) -> bool:
        return self.metric_type == ENERGY_METRIC


@dataclass(frozen=True)
class RawReading:
    point_id: int
    measurement_time_ms: int
    value: float | None
    quality: str = DEFAULT_QUALITY
    session_id: int | None = None
    received_time_ms: int | None = None


@dataclass(frozen=True)
class IntervalAggregate:
    system_id: int
    point_id: int
    interval_end_ms: int
    avg: float | None
    min: float | None
    max: float | None
    last: float | None
    delta: float | None
    sample_count: int
    error_count: int


@dataclass(frozen=True)
class Window:
    """Consecutive fixed-length periods; a period covers (start, end]."""

    first_period_start_ms: int
    num_periods: int
    period_length_ms: int

    @property
    def start_ms(self) -> int:
        return self.first_period_start_ms

    @property
    def end_ms(self) -> int:
        return self.first_period_start_ms + self.num_periods * self.period_length_ms

    def period_end_ms(self, index: int) -> int:
        return self.first_period_start_ms + (index + 1) * self.period_length_ms

    def contains(self, measurement_time_ms: int) -> bool:
        return self.start_ms < measurement_time_ms <= self.end_ms

    def period_index(self, measurement_time_ms: int) -> int:
        return (measurement_time_ms - self.first_period_start_ms - 1) // self.period_length_ms


@dataclass(frozen=True)
class QualityRange:
    quality: str | None
    point_keys: frozenset[str]
    range_start_ms: int
    range_end_ms: int
    num_periods: int


@dataclass
class GroupInfo:
    overviews: dict[str, str]
    completeness: str
    characterisation: list[QualityRange]
    num_records: int


@dataclass(frozen=True)
class PollSchedule:
    interval_minutes: int
    tolerance_seconds: int = 0


@dataclass(frozen=True)
class MonitoredSystem:
    id: int
    vendor_type: str
    utc_offset_minutes: int = 600
    last_poll_time: datetime | None = None


@dataclass(frozen=True)
class PollDecision:
    system_id: int
    should_poll: bool
    reason: str
    next_poll_time: datetime
