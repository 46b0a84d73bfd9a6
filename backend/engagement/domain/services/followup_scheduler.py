"""
Follow-up Scheduler
Owns per-job-type recurring windows (JobSchedule + timer registry) and
per-lead next-contact times.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from engagement.domain.interfaces.repositories import JobScheduleRepository, LeadRepository
from engagement.domain.models.job_schedule import JobSchedule, JobScheduleUpdate, parse_hhmm
from engagement.domain.models.lead import Lead, JobType
from engagement.domain.services.clock import Clock

logger = logging.getLogger(__name__)


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


@dataclass
class JobTimer:
    """
    Armed recurring trigger for one job type.

    With an end time the timer is due for every minute inside [start, end].
    Without one it is due within a minute either side of start, once per day.
    """
    job_type: JobType
    start: time
    end: Optional[time] = None
    selected_days: List[int] = field(default_factory=lambda: list(range(7)))
    last_fired_on: Optional[date] = None

    @classmethod
    def from_schedule(cls, schedule: JobSchedule) -> "JobTimer":
        return cls(
            job_type=schedule.job_type,
            start=parse_hhmm(schedule.start_time),
            end=parse_hhmm(schedule.end_time) if schedule.end_time else None,
            selected_days=list(schedule.selected_days),
        )

    def in_window(self, now: datetime) -> bool:
        current = _minutes(now.time())
        start = _minutes(self.start)

        if self.end is not None:
            end = _minutes(self.end)
            if start <= end:
                return start <= current <= end
            # Window wraps past midnight
            return current >= start or current <= end

        return abs(current - start) <= 1

    def is_due(self, now: datetime) -> bool:
        if now.weekday() not in self.selected_days:
            return False
        if not self.in_window(now):
            return False
        if self.end is None and self.last_fired_on == now.date():
            return False
        return True

    def mark_fired(self, now: datetime) -> None:
        self.last_fired_on = now.date()

    def minutes_left(self, now: datetime) -> int:
        """Minutes remaining in the window including the current one (1 for start-only)."""
        if self.end is None:
            return 1
        current = _minutes(now.time())
        end = _minutes(self.end)
        if end < current:
            end += 24 * 60
        return max(1, end - current + 1)


class FollowUpScheduler:
    """
    Timer registry and callback persistence.

    Invariant: at most one timer per job type. Timers are only created from
    a persisted JobSchedule that is enabled and has a start time.
    """

    def __init__(
        self,
        schedules: JobScheduleRepository,
        leads: LeadRepository,
        clock: Clock,
        defaults: Optional[Dict[str, Dict[str, Any]]] = None
    ):
        self._schedules = schedules
        self._leads = leads
        self._clock = clock
        self._defaults = defaults or {}
        self._timers: Dict[JobType, JobTimer] = {}

    # ------------------------------------------------------------------
    # Job schedules
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Seed missing schedules from defaults and arm the enabled ones."""
        for job_type in JobType:
            schedule = await self._schedules.get(job_type)
            if schedule is None:
                overrides = self._defaults.get(job_type.value, {})
                schedule = JobSchedule(job_type=job_type, **overrides)
                schedule.updated_at = self._clock.now()
                schedule = await self._schedules.save(schedule)
                logger.info(f"Created default schedule for {job_type.value}")

            self.deregister(job_type)
            if schedule.is_armed:
                self.register(schedule)

        logger.info(f"Follow-up scheduler ready, {len(self._timers)} timer(s) armed")

    async def upsert_job_schedule(self, job_type: JobType, update: JobScheduleUpdate) -> JobSchedule:
        """
        Replace the settings of a job type and re-derive its timer.

        Invalid settings raise before anything changes. The old timer is
        removed before persisting; a failed save leaves the job type disarmed.
        """
        current = await self._schedules.get(job_type) or JobSchedule.default(job_type)
        schedule = JobSchedule(
            job_type=job_type,
            enabled=update.enabled,
            start_time=update.start_time,
            end_time=update.end_time,
            selected_days=(
                update.selected_days if update.selected_days is not None else current.selected_days
            ),
            call_limit=update.call_limit,
            description=update.description if update.description is not None else current.description,
            updated_at=self._clock.now(),
        )
        previous = self._timers.get(job_type)
        self.deregister(job_type)
        schedule = await self._schedules.save(schedule)

        if schedule.is_armed:
            timer = self.register(schedule)
            # Re-saving a start-only job must not fire it a second time today
            if previous and previous.end is None and timer.end is None and previous.start == timer.start:
                timer.last_fired_on = previous.last_fired_on
        logger.info(
            f"Updated {job_type.value} schedule: enabled={schedule.enabled} "
            f"window={schedule.start_time}-{schedule.end_time} days={schedule.selected_days} "
            f"limit={schedule.call_limit}"
        )
        return schedule

    def register(self, schedule: JobSchedule) -> JobTimer:
        if not schedule.is_armed:
            raise ValueError(f"Schedule for {schedule.job_type.value} is not enabled with a start time")
        self.deregister(schedule.job_type)
        timer = JobTimer.from_schedule(schedule)
        self._timers[schedule.job_type] = timer
        logger.debug(f"Registered timer for {schedule.job_type.value} at {schedule.start_time}")
        return timer

    def deregister(self, job_type: JobType) -> bool:
        """Remove the timer for a job type. Returns False if none was registered."""
        removed = self._timers.pop(job_type, None)
        if removed:
            logger.debug(f"Deregistered timer for {job_type.value}")
        return removed is not None

    def get_timer(self, job_type: JobType) -> Optional[JobTimer]:
        return self._timers.get(job_type)

    @property
    def active_timers(self) -> Dict[JobType, JobTimer]:
        return dict(self._timers)

    def due_job_types(self, now: Optional[datetime] = None) -> List[JobType]:
        """Job types whose timers fire now. Start-only timers are marked as fired."""
        now = now or self._clock.now()
        due = []
        for job_type, timer in self._timers.items():
            if timer.is_due(now):
                timer.mark_fired(now)
                due.append(job_type)
        return due

    async def get_schedule(self, job_type: JobType) -> JobSchedule:
        return await self._schedules.get(job_type) or JobSchedule.default(job_type)

    async def list_schedules(self) -> List[JobSchedule]:
        stored = {s.job_type: s for s in await self._schedules.list_all()}
        return [stored.get(jt) or JobSchedule.default(jt) for jt in JobType]

    async def get_reschedule_start_time(self) -> Optional[str]:
        """Configured start time of the reschedule job, enabled or not."""
        schedule = await self._schedules.get(JobType.RESCHEDULE)
        return schedule.start_time if schedule else None

    # ------------------------------------------------------------------
    # Per-lead callbacks
    # ------------------------------------------------------------------

    async def schedule_callback(self, lead: Lead, when: Optional[datetime]) -> Lead:
        """Set (or with None, clear) the lead's single next-contact time and persist it."""
        lead.scheduled_callback_date = when
        lead.updated_at = self._clock.now()
        lead = await self._leads.save(lead)
        if when:
            logger.info(f"Scheduled callback for lead {lead.id} at {when.isoformat()}")
        return lead

    async def clear_callback(self, lead: Lead) -> Lead:
        return await self.schedule_callback(lead, None)
