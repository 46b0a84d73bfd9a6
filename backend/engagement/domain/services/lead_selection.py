"""
Lead Selection
Eligibility predicates for batch campaigns and individually scheduled callbacks
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from engagement.domain.models.lead import Lead, LeadStatus, JobType, TERMINAL_STATUSES


# Statuses that exclude a lead from initial and reminder campaigns
_BATCH_EXCLUDED = TERMINAL_STATUSES | {LeadStatus.CALLING}


@dataclass(frozen=True)
class BatchCriteria:
    """
    What a repository needs to select batch candidates.

    Attributes:
        job_type: Campaign being run
        now: Current time (reschedule compares callback dates against it)
        limit: Maximum number of leads to return, None for no limit
        reminder_cutoff: Reminder calls are skipped for leads reminded after this
    """
    job_type: JobType
    now: datetime
    limit: Optional[int] = None
    reminder_cutoff: Optional[datetime] = None

    @classmethod
    def build(
        cls,
        job_type: JobType,
        now: datetime,
        limit: Optional[int] = None,
        reminder_interval_days: int = 2
    ) -> "BatchCriteria":
        return cls(
            job_type=job_type,
            now=now,
            limit=limit,
            reminder_cutoff=now - timedelta(days=reminder_interval_days),
        )


def is_initial_candidate(lead: Lead) -> bool:
    return (
        not lead.contacted
        and lead.status not in _BATCH_EXCLUDED
        and bool(lead.phone)
    )


def is_reminder_candidate(lead: Lead, cutoff: Optional[datetime]) -> bool:
    if not lead.contacted or not lead.link_send or lead.form_submitted:
        return False
    if lead.status in _BATCH_EXCLUDED:
        return False
    if lead.reminder_sent_at is not None and cutoff is not None:
        return lead.reminder_sent_at <= cutoff
    return True


def is_reschedule_candidate(lead: Lead, now: datetime) -> bool:
    return (
        lead.scheduled_callback_date is not None
        and lead.scheduled_callback_date <= now
        and not lead.is_calling
    )


def is_due_callback(lead: Lead, start: datetime, end: datetime) -> bool:
    """Individual mode: callback date inside [start, end] and not already calling."""
    when = lead.scheduled_callback_date
    return when is not None and start <= when <= end and not lead.is_calling


def matches(lead: Lead, criteria: BatchCriteria) -> bool:
    """Evaluate the eligibility predicate of criteria.job_type against a lead."""
    if criteria.job_type == JobType.INITIAL:
        return is_initial_candidate(lead)
    if criteria.job_type == JobType.REMINDER:
        return is_reminder_candidate(lead, criteria.reminder_cutoff)
    if criteria.job_type == JobType.RESCHEDULE:
        return is_reschedule_candidate(lead, criteria.now)
    return False


def minute_window(now: datetime):
    """[start, end] of the minute containing `now`."""
    start = now.replace(second=0, microsecond=0)
    return start, start + timedelta(seconds=59, microseconds=999999)
