"""
Service layer for quality characterisation of stored readings.
"""

from collections.abc import Mapping
from datetime import date
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from telemetry_backend.config import settings
from telemetry_backend.repositories.point_repository import PointRepository
from telemetry_backend.repositories.reading_repository import ReadingRepository
from telemetry_backend.schemas import GroupInfo
from telemetry_backend.utils.characterisation import ReadingGroup, window_for_days

logger = structlog.get_logger()


class CharacterisationService:
    """
    Builds reading groups for a system's points over whole local days.
    """

    def __init__(self, session: AsyncSession, abbreviations: Optional[Mapping[str, str]] = None):
        self.points = PointRepository(session)
        self.readings = ReadingRepository(session)
        self.abbreviations = abbreviations

    async def build_group(
        self,
        system_id: int,
        first_day: date,
        num_days: int = 1,
        period_minutes: int = settings.CHARACTERISATION_PERIOD_MINUTES,
        utc_offset_minutes: int = settings.UTC_OFFSET_MINUTES,
    ) -> ReadingGroup:
        window = window_for_days(first_day, num_days, period_minutes, utc_offset_minutes)
        group = ReadingGroup(window, self.abbreviations)

        points = await self.points.get_by_system(system_id)
        keys = {point.id: point.point_key for point in points}
        readings = await self.readings.get_for_points(list(keys), window.start_ms, window.end_ms)

        for reading in readings:
            group.add_reading(keys[reading.point_id], reading.measurement_time_ms, reading.quality)

        return group

    async def characterise(
        self,
        system_id: int,
        first_day: date,
        num_days: int = 1,
        period_minutes: int = settings.CHARACTERISATION_PERIOD_MINUTES,
        utc_offset_minutes: int = settings.UTC_OFFSET_MINUTES,
    ) -> GroupInfo:
        """
        Summarise the quality of a system's readings over a window of whole days.

        Args:
            system_id: System whose points are characterised
            first_day: First local calendar day of the window
            num_days: Number of days in the window
            period_minutes: Period granularity
            utc_offset_minutes: Fixed offset defining local days

        Returns:
            GroupInfo with overviews, completeness label and quality ranges
        """
        group = await self.build_group(system_id, first_day, num_days, period_minutes, utc_offset_minutes)
        info = group.get_info()

        logger.info(
            "Characterised readings",
            system_id=system_id,
            first_day=first_day.isoformat(),
            num_days=num_days,
            completeness=info.completeness,
            ranges=len(info.characterisation),
            num_records=info.num_records,
        )
        return info
