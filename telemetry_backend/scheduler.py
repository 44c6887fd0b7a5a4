"""
Poll scheduling for monitored systems.

The scheduler is advisory only: it decides whether a system is due and when
the next poll should happen, and leaves the actual I/O to the caller.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Optional

import structlog

from telemetry_backend.constants import MS_PER_MINUTE, MS_PER_SECOND
from telemetry_backend.schemas import MonitoredSystem, PollDecision, PollSchedule
from telemetry_backend.services.exceptions import UnknownVendorError
from telemetry_backend.utils.boundary import get_next_minute_boundary, to_milliseconds

logger = structlog.get_logger()


def should_poll(schedule: PollSchedule, last_poll_time: Optional[datetime], now: datetime) -> bool:
    """
    Check whether enough time has passed since the last successful poll.

    The tolerance lets a poll that fires slightly early (cron jitter) still
    count as due.
    """
    if last_poll_time is None:
        return True

    elapsed_ms = to_milliseconds(now) - to_milliseconds(last_poll_time)
    target_ms = schedule.interval_minutes * MS_PER_MINUTE
    tolerance_ms = schedule.tolerance_seconds * MS_PER_SECOND
    return elapsed_ms >= target_ms - tolerance_ms


class PollScheduler:
    """
    Evaluates poll schedules for monitored systems.

    Schedules are looked up by vendor type in the mapping passed at
    construction time.
    """

    def __init__(self, schedules: Mapping[str, PollSchedule]):
        """
        Initialize the scheduler.

        Args:
            schedules: Vendor type -> declared poll schedule.
        """
        self.schedules = dict(schedules)

    def schedule_for(self, system: MonitoredSystem) -> PollSchedule:
        schedule = self.schedules.get(system.vendor_type)
        if schedule is None:
            raise UnknownVendorError(f"No poll schedule declared for vendor '{system.vendor_type}'")
        return schedule

    def evaluate(
        self,
        system: MonitoredSystem,
        now: Optional[datetime] = None,
        force: bool = False,
    ) -> PollDecision:
        """
        Decide whether a system should be polled now.

        The next poll time always comes from the wall-clock boundary for the
        system's interval and offset, never from its last poll, so systems
        sharing an interval converge on one cadence. A forced (user-initiated)
        poll is always due but reports the same next poll time.

        Args:
            system: The monitored system, carrying its last successful poll time
            now: Reference instant, defaults to the current time
            force: True for user-initiated polls

        Returns:
            PollDecision with the verdict, a readable reason and the next poll time
        """
        if now is None:
            now = datetime.now(timezone.utc)

        schedule = self.schedule_for(system)
        interval = schedule.interval_minutes
        next_poll_time = get_next_minute_boundary(interval, system.utc_offset_minutes, now)

        if force:
            due, reason = True, "Forced poll"
        elif system.last_poll_time is None:
            due, reason = True, "Never polled"
        elif should_poll(schedule, system.last_poll_time, now):
            due, reason = True, f"Interval elapsed ({interval} min)"
        else:
            due, reason = False, f"Not due yet (polls every {interval} min)"

        return PollDecision(
            system_id=system.id,
            should_poll=due,
            reason=reason,
            next_poll_time=next_poll_time,
        )

    def plan(
        self,
        systems: Iterable[MonitoredSystem],
        now: Optional[datetime] = None,
        forced_ids: Iterable[int] = (),
    ) -> list[PollDecision]:
        """Evaluate every system against one shared reference instant."""
        if now is None:
            now = datetime.now(timezone.utc)
        forced = set(forced_ids)

        decisions = [self.evaluate(system, now, force=system.id in forced) for system in systems]

        logger.debug(
            "Poll plan evaluated",
            systems=len(decisions),
            due=sum(1 for d in decisions if d.should_poll),
        )
        return decisions
