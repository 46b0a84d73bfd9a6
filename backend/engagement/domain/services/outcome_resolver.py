"""
Outcome Resolver
Pure decision function: (job type, intent, lead, now) -> Resolution

Precedence for the callback date (first match wins):
    1. busy         -> reschedule start time, two days out, off weekends
    4. schedule     -> date(now) + N days at specificTime (or midnight)
    5. both         -> store both channels, send both
    6. email/phone  -> store that channel, send it
    7. fallback     -> next business day (or reschedule start time two days out)

Independent flags evaluated regardless of the branch:
    2. notInterested -> status not-interested; suppresses 5-7
    3. resentLink    -> resend the verification link on every channel on file
"""
from datetime import datetime, time, timedelta
from typing import Optional

from engagement.domain.models.lead import Lead, LeadStatus, JobType
from engagement.domain.models.job_schedule import parse_hhmm
from engagement.domain.models.outcome import (
    OutcomeIntent,
    PreferredMethod,
    Resolution,
    ResolutionBranch,
    SideEffect,
)
from engagement.domain.services.business_days import (
    at_time,
    days_out_at,
    fallback_callback,
)


class OutcomeResolver:
    """Stateless apart from its tuning constants"""

    def __init__(self, busy_offset_days: int = 2, fallback_hour: int = 10):
        self.busy_offset_days = busy_offset_days
        self.fallback_hour = fallback_hour

    def fallback(self, now: datetime, reschedule_start_time: Optional[str]) -> Resolution:
        """Resolution for events with no usable information."""
        return Resolution(
            branch=ResolutionBranch.FALLBACK,
            callback_set=True,
            scheduled_callback_date=fallback_callback(
                now,
                reschedule_start_time,
                offset_days=self.busy_offset_days,
                fallback_hour=self.fallback_hour,
            ),
        )

    def busy_callback(self, now: datetime, reschedule_start_time: Optional[str]) -> datetime:
        if reschedule_start_time:
            return days_out_at(now, self.busy_offset_days, reschedule_start_time, skip_weekend=True)
        return self.fallback(now, None).scheduled_callback_date

    def resolve(
        self,
        job_type: JobType,
        intent: OutcomeIntent,
        lead: Lead,
        now: datetime,
        reschedule_start_time: Optional[str] = None
    ) -> Resolution:
        """
        Decide the lead's next state and the side effects to perform.

        The lead is only read. job_type does not currently change the decision.
        """
        resolution = Resolution(branch=ResolutionBranch.FALLBACK)
        date_decided = False

        # 1. Busy
        if intent.wants_busy_callback:
            resolution.branch = ResolutionBranch.BUSY
            resolution.callback_set = True
            resolution.scheduled_callback_date = self.busy_callback(now, reschedule_start_time)
            date_decided = True

        # 2. Not interested
        if intent.not_interested:
            resolution.status = LeadStatus.NOT_INTERESTED
            if not date_decided:
                resolution.branch = ResolutionBranch.NOT_INTERESTED

        # 3. Link resend
        if intent.resent_link:
            if lead.verification_email:
                resolution.add_side_effect(SideEffect.SEND_VERIFICATION_EMAIL)
            if lead.verification_phone:
                resolution.add_side_effect(SideEffect.SEND_VERIFICATION_SMS)
            resolution.link_send = True

        if date_decided:
            return resolution

        # 4. Explicit callback request
        if intent.preferred_method == PreferredMethod.SCHEDULE and intent.schedule_days:
            day = now.date() + timedelta(days=intent.schedule_days)
            at = parse_hhmm(intent.specific_time) if intent.specific_time else time(0, 0)
            resolution.branch = ResolutionBranch.SCHEDULE
            resolution.callback_set = True
            resolution.scheduled_callback_date = at_time(day, at, now.tzinfo)
            return resolution

        if intent.not_interested:
            return resolution

        # 5-6. Contact preference
        contact = intent.contact_info
        method = intent.preferred_method
        wants_email = method in (PreferredMethod.EMAIL, PreferredMethod.BOTH)
        wants_phone = method in (PreferredMethod.PHONE, PreferredMethod.BOTH)

        if wants_email or wants_phone:
            reachable = False
            resolution.branch = {
                PreferredMethod.BOTH: ResolutionBranch.BOTH,
                PreferredMethod.EMAIL: ResolutionBranch.EMAIL,
                PreferredMethod.PHONE: ResolutionBranch.PHONE,
            }[method]

            if wants_email:
                email = contact.email or lead.verification_email
                if contact.email:
                    resolution.contact_email = contact.email
                if email:
                    resolution.add_side_effect(SideEffect.SEND_VERIFICATION_EMAIL)
                    resolution.link_send = True
                    reachable = True

            if wants_phone:
                phone = contact.phone or lead.verification_phone
                if phone and phone != lead.contact_phone:
                    resolution.contact_phone = phone
                if phone:
                    resolution.add_side_effect(SideEffect.SEND_VERIFICATION_SMS)
                    resolution.link_send = True
                    reachable = True

            if reachable:
                return resolution

        # 7. Fallback
        fallback = self.fallback(now, reschedule_start_time)
        resolution.branch = ResolutionBranch.FALLBACK
        resolution.callback_set = True
        resolution.scheduled_callback_date = fallback.scheduled_callback_date
        return resolution
