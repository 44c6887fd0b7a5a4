"""
Quality characterisation of readings over a multi-day window.

A ReadingGroup collects the latest observed quality per (point, period) and
summarises it as per-point overview strings, run-length quality ranges and a
single completeness label.
"""

from collections import Counter
from collections.abc import Mapping
from datetime import date
from typing import Optional

import structlog

from telemetry_backend.config import settings
from telemetry_backend.constants import (
    ABSENT_SYMBOL,
    COMPLETENESS_ALL_PREFIX,
    COMPLETENESS_MIXED,
    COMPLETENESS_NONE,
    MINUTES_PER_DAY,
    MS_PER_MINUTE,
    UNKNOWN_SYMBOL,
)
from telemetry_backend.schemas import GroupInfo, QualityRange, Window
from telemetry_backend.services.exceptions import BoundaryViolationError
from telemetry_backend.utils.boundary import day_start_ms, format_local_time

logger = structlog.get_logger()


def window_for_days(
    first_day: date,
    num_days: int = 1,
    period_minutes: int = settings.CHARACTERISATION_PERIOD_MINUTES,
    utc_offset_minutes: int = settings.UTC_OFFSET_MINUTES,
) -> Window:
    """
    Build a window covering whole local calendar days.

    Uses the fixed offset rather than a DST-aware zone, so every day has the
    same number of periods.

    Raises:
        ValueError: If the period does not divide a day into whole periods
    """
    if period_minutes <= 0 or MINUTES_PER_DAY % period_minutes:
        raise ValueError(f"Period of {period_minutes} minutes does not divide a day into whole periods")
    return Window(
        first_period_start_ms=day_start_ms(first_day, utc_offset_minutes),
        num_periods=num_days * MINUTES_PER_DAY // period_minutes,
        period_length_ms=period_minutes * MS_PER_MINUTE,
    )


def canonical_quality(quality: str, abbreviations: Mapping[str, str]) -> str:
    """
    Normalise a quality label to the configured label it abbreviates to.

    Exact (case-insensitive) matches win; otherwise the first configured label
    contained in the quality is used, so "final-billable" is "billable".
    Unconfigured labels are returned lower-cased.
    """
    q = quality.lower()
    if q in abbreviations:
        return q
    for label in abbreviations:
        if label in q:
            return label
    return q


def abbreviate_quality(quality: Optional[str], abbreviations: Mapping[str, str]) -> str:
    """Map a quality label to its single-character code."""
    if not quality:
        return ABSENT_SYMBOL
    return abbreviations.get(canonical_quality(quality, abbreviations), UNKNOWN_SYMBOL)


class ReadingGroup:
    """
    Latest observed quality per point and period across a window.

    Not safe for concurrent writers; one computation owns an instance.
    """

    def __init__(self, window: Window, abbreviations: Optional[Mapping[str, str]] = None):
        self.window = window
        if abbreviations is None:
            abbreviations = settings.QUALITY_ABBREVIATIONS
        self.abbreviations = {label.lower(): symbol for label, symbol in abbreviations.items()}
        # (point_key, period_index) -> quality, only for cells that saw data
        self._cells: dict[tuple[str, int], str] = {}
        # canonical quality label -> number of cells
        self._quality_counts: Counter[str] = Counter()

    def add_reading(self, point_key: str, measurement_time_ms: int, quality: str) -> None:
        """
        Record the quality of a reading.

        A later reading for the same cell replaces the earlier one. No ordering
        of quality upgrades is enforced.

        Raises:
            BoundaryViolationError: If the timestamp is not in (window start, window end]
        """
        if not self.window.contains(measurement_time_ms):
            raise BoundaryViolationError(
                f"Cannot add reading for {point_key} with timestamp {measurement_time_ms} "
                f"({format_local_time(measurement_time_ms, 0)}) - outside range boundaries "
                f"({self.window.start_ms}, {self.window.end_ms}]"
            )

        normalized = quality.lower()
        cell = (point_key, self.window.period_index(measurement_time_ms))
        previous = self._cells.get(cell)
        if previous is not None:
            label = canonical_quality(previous, self.abbreviations)
            self._quality_counts[label] -= 1
            if not self._quality_counts[label]:
                del self._quality_counts[label]
        self._cells[cell] = normalized
        self._quality_counts[canonical_quality(normalized, self.abbreviations)] += 1

    def get_quality(self, point_key: str, period_index: int) -> Optional[str]:
        return self._cells.get((point_key, period_index))

    def get_point_keys(self) -> list[str]:
        return sorted({point_key for point_key, _ in self._cells})

    def get_count(self) -> int:
        return len(self._cells)

    def get_point_records(self, point_key: str) -> list[tuple[int, Optional[str]]]:
        """(period end ms, quality or None) for every period of the window, in order."""
        return [
            (self.window.period_end_ms(index), self._cells.get((point_key, index)))
            for index in range(self.window.num_periods)
        ]

    def get_overview(self, point_key: str) -> str:
        return "".join(
            abbreviate_quality(self._cells.get((point_key, index)), self.abbreviations)
            for index in range(self.window.num_periods)
        )

    def get_overviews(self) -> dict[str, str]:
        return {point_key: self.get_overview(point_key) for point_key in self.get_point_keys()}

    def get_completeness(self) -> str:
        """
        Summarise the whole window as one label.

        "none" without data, "all-<quality>" when every observed cell has the
        same canonical quality (e.g. "all-billable", "all-forecast"), otherwise
        "mixed". Labels are compared after the same normalisation overviews and
        ranges use, so "final-billable" and "billable" count as one quality.
        """
        if not self._quality_counts:
            return COMPLETENESS_NONE
        if len(self._quality_counts) == 1:
            (quality,) = self._quality_counts
            return f"{COMPLETENESS_ALL_PREFIX}{quality}"
        return COMPLETENESS_MIXED

    def _period_snapshots(self) -> list[dict[str, str]]:
        snapshots: list[dict[str, str]] = [{} for _ in range(self.window.num_periods)]
        for (point_key, index), quality in self._cells.items():
            snapshots[index][point_key] = quality
        return snapshots

    def get_characterisation(self) -> list[QualityRange]:
        """
        Run-length encode the window by (quality, set of points with data).

        A period's quality is the shared code of the points present in it, or
        None when no point is present or present points disagree. A new range
        starts whenever the quality or the present-point set changes.
        """
        ranges: list[QualityRange] = []
        current_key = None
        current_start = 0
        length = 0

        for index, snapshot in enumerate(self._period_snapshots()):
            codes = {abbreviate_quality(q, self.abbreviations) for q in snapshot.values()}
            quality = codes.pop() if len(codes) == 1 else None
            key = (quality, frozenset(snapshot))

            if key != current_key:
                if current_key is not None:
                    ranges.append(self._make_range(current_key, current_start, length))
                current_key, current_start, length = key, index, 0
            length += 1

        if current_key is not None:
            ranges.append(self._make_range(current_key, current_start, length))

        return ranges

    def _make_range(self, key: tuple, first_index: int, num_periods: int) -> QualityRange:
        quality, point_keys = key
        return QualityRange(
            quality=quality,
            point_keys=point_keys,
            range_start_ms=self.window.period_end_ms(first_index) - self.window.period_length_ms,
            range_end_ms=self.window.period_end_ms(first_index + num_periods - 1),
            num_periods=num_periods,
        )

    def get_info(self) -> GroupInfo:
        info = GroupInfo(
            overviews=self.get_overviews(),
            completeness=self.get_completeness(),
            characterisation=self.get_characterisation(),
            num_records=self.get_count(),
        )
        logger.debug(
            "Characterised reading group",
            completeness=info.completeness,
            ranges=len(info.characterisation),
            num_records=info.num_records,
        )
        return info
