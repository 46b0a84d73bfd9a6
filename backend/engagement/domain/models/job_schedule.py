"""
Job Schedule Model
Administrator-configurable recurring window for one campaign job type
"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime, time

from engagement.domain.models.lead import JobType


def parse_hhmm(value: str) -> time:
    """Parse a 24-hour 'HH:MM' string."""
    hours, minutes = map(int, value.strip().split(":"))
    return time(hours, minutes)


class JobSchedule(BaseModel):
    """
    Recurring calling window for a job type.

    Created with defaults on first boot and only changed through
    FollowUpScheduler.upsert_job_schedule().
    """

    job_type: JobType
    enabled: bool = Field(default=False)
    start_time: Optional[str] = Field(
        default=None,
        description="Window start (HH:MM, 24-hour)"
    )
    end_time: Optional[str] = Field(
        default=None,
        description="Window end (HH:MM). Without it the job fires once near start_time"
    )
    selected_days: List[int] = Field(
        default=[0, 1, 2, 3, 4, 5, 6],
        description="Days the job may run (0=Monday, 6=Sunday)"
    )
    call_limit: Optional[int] = Field(
        default=None,
        ge=0,
        description="Maximum calls per day for this job type (None = unlimited)"
    )
    description: Optional[str] = None
    updated_at: Optional[datetime] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _validate_hhmm(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        try:
            parsed = parse_hhmm(value)
        except ValueError:
            raise ValueError(f"Time must be HH:MM, got {value!r}")
        return parsed.strftime("%H:%M")

    @field_validator("selected_days")
    @classmethod
    def _validate_days(cls, value: List[int]) -> List[int]:
        invalid = [d for d in value if d < 0 or d > 6]
        if invalid:
            raise ValueError(f"selected_days must be 0-6, got {invalid}")
        return sorted(set(value))

    @property
    def is_armed(self) -> bool:
        """Enabled with a start time - the only state that registers a timer."""
        return self.enabled and self.start_time is not None

    def window_minutes(self) -> Optional[int]:
        """Length of the calling window in minutes, None for start-only schedules."""
        if not self.start_time or not self.end_time:
            return None
        start = parse_hhmm(self.start_time)
        end = parse_hhmm(self.end_time)
        return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)

    @classmethod
    def default(cls, job_type: JobType) -> "JobSchedule":
        return cls(job_type=job_type)


class JobScheduleUpdate(BaseModel):
    """Administrative update for a job schedule"""
    enabled: bool
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    selected_days: Optional[List[int]] = None
    call_limit: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None
