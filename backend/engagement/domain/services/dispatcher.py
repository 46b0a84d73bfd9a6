"""
Dispatcher
Per-minute loop that selects due leads and places calls.

Two selection modes run on every tick:
- Individual: leads whose scheduled_callback_date falls in the current minute,
  or in any minute a long previous tick skipped
- Batch: one pass per job type whose timer is due (initial, reminder, reschedule)

Every lead is claimed (status=calling, callback cleared, persisted) before the
call provider is invoked. Failures are isolated per lead.
"""
import asyncio
import logging
import math
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from engagement.domain.errors import (
    CollaboratorError,
    PermanentCollaboratorError,
    TransientCollaboratorError,
    UnknownLeadError,
)
from engagement.domain.interfaces.call_provider import CallProvider, CallRequest
from engagement.domain.interfaces.crm_provider import CRMProvider
from engagement.domain.interfaces.repositories import (
    CallRecordRepository,
    LeadRepository,
    TranscriptRepository,
)
from engagement.domain.models.call_record import CallRecord, CallRecordStatus, CallTrigger
from engagement.domain.models.lead import Lead, LeadStatus, JobType
from engagement.domain.services.clock import Clock
from engagement.domain.services.followup_scheduler import FollowUpScheduler
from engagement.domain.services.lead_selection import BatchCriteria, minute_window
from engagement.domain.services.phone_numbers import normalize_phone_number, pick_caller_id

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Outcome of one per-lead dispatch attempt"""
    lead_id: str
    job_type: JobType
    placed: bool = False
    call_id: Optional[str] = None
    error: Optional[str] = None
    skipped: Optional[str] = None


@dataclass
class TickReport:
    """Everything a single tick did"""
    started_at: datetime
    individual: List[DispatchResult] = field(default_factory=list)
    batches: Dict[JobType, List[DispatchResult]] = field(default_factory=dict)

    @property
    def placed(self) -> int:
        results = self.individual + [r for rs in self.batches.values() for r in rs]
        return sum(1 for r in results if r.placed)


class Dispatcher:
    """
    Selects due leads and hands them to the call provider.

    Leads inside one pass are called sequentially with a pacing delay; the
    individual pass and each batch pass run concurrently with each other.
    """

    def __init__(
        self,
        leads: LeadRepository,
        call_records: CallRecordRepository,
        transcripts: TranscriptRepository,
        call_provider: CallProvider,
        scheduler: FollowUpScheduler,
        clock: Clock,
        from_numbers: List[str],
        crm: Optional[CRMProvider] = None,
        agent_overrides: Optional[Dict[JobType, str]] = None,
        call_pacing_seconds: float = 0.5,
        reminder_interval_days: int = 2,
        rng: Optional[random.Random] = None
    ):
        self._leads = leads
        self._call_records = call_records
        self._transcripts = transcripts
        self._provider = call_provider
        self._scheduler = scheduler
        self._clock = clock
        self._from_numbers = list(from_numbers)
        self._crm = crm
        self._agent_overrides = agent_overrides or {}
        self._pacing = call_pacing_seconds
        self._reminder_interval_days = reminder_interval_days
        self._rng = rng or random.Random()
        # End of the last minute the individual pass selected
        self._covered_until: Optional[datetime] = None

        # Stats
        self._calls_placed = 0
        self._calls_failed = 0
        self._ticks = 0

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self) -> TickReport:
        """Run the individual pass and every due batch concurrently."""
        now = self._clock.now()
        self._ticks += 1
        report = TickReport(started_at=now)

        due = self._scheduler.due_job_types(now)
        if due:
            logger.info(f"Tick {now.strftime('%H:%M')}: batch jobs due: {[j.value for j in due]}")

        passes = [self.run_individual_pass(now)] + [self.run_batch(job_type, now) for job_type in due]
        results = await asyncio.gather(*passes, return_exceptions=True)

        individual = results[0]
        if isinstance(individual, Exception):
            logger.error(f"Individual pass failed: {individual}", exc_info=individual)
        else:
            report.individual = individual

        for job_type, outcome in zip(due, results[1:]):
            if isinstance(outcome, Exception):
                logger.error(f"{job_type.value} batch failed: {outcome}", exc_info=outcome)
                report.batches[job_type] = []
            else:
                report.batches[job_type] = outcome

        return report

    async def run_individual_pass(self, now: Optional[datetime] = None) -> List[DispatchResult]:
        """
        Call leads whose callback falls inside the current minute.

        The window is widened back to the end of the last covered minute, so
        minutes skipped while a long tick was running are still selected.
        """
        now = now or self._clock.now()
        start, end = minute_window(now)
        if self._covered_until is not None and self._covered_until < start:
            start = self._covered_until + timedelta(microseconds=1)
            logger.info(f"Catching up on callbacks since {start.strftime('%H:%M:%S')}")
        if self._covered_until is None or end > self._covered_until:
            self._covered_until = end

        leads = await self._leads.find_due_callbacks(start, end)
        if not leads:
            return []

        logger.info(f"Found {len(leads)} individually scheduled callback(s)")
        return await self._call_sequentially(leads, JobType.RESCHEDULE, CallTrigger.CALLBACK)

    async def run_batch(self, job_type: JobType, now: Optional[datetime] = None) -> List[DispatchResult]:
        """Run one batch pass for a job type, bounded by its daily budget."""
        now = now or self._clock.now()

        budget = await self._remaining_budget(job_type, now)
        if budget == 0:
            logger.info(f"{job_type.value}: daily call limit reached, skipping batch")
            return []

        criteria = BatchCriteria.build(
            job_type,
            now,
            limit=budget,
            reminder_interval_days=self._reminder_interval_days,
        )
        leads = await self._leads.find_batch_candidates(criteria)
        if not leads:
            logger.debug(f"{job_type.value}: no eligible leads")
            return []

        logger.info(f"{job_type.value}: calling {len(leads)} lead(s) (budget={budget})")

        try:
            await self._provider.update_prompt(job_type)
        except Exception as e:
            logger.warning(f"Prompt update for {job_type.value} failed, calling with current prompt: {e}")

        return await self._call_sequentially(leads, job_type)

    async def _call_sequentially(
        self,
        leads: List[Lead],
        job_type: JobType,
        trigger: CallTrigger = CallTrigger.BATCH
    ) -> List[DispatchResult]:
        results = []
        for index, lead in enumerate(leads):
            if index > 0:
                await self._clock.sleep(self._pacing)
            try:
                results.append(await self.dispatch_lead(lead, job_type, trigger))
            except Exception as e:
                logger.error(f"Unexpected error dispatching lead {lead.id}: {e}", exc_info=True)
                results.append(DispatchResult(lead_id=lead.id, job_type=job_type, error=str(e)))
        return results

    async def _remaining_budget(self, job_type: JobType, now: datetime) -> Optional[int]:
        """
        Calls allowed in this pass.

        call_limit minus today's batch-placed calls, spread across the minutes left
        in the window. None means unlimited.
        """
        schedule = await self._scheduler.get_schedule(job_type)
        if schedule.call_limit is None:
            return None

        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        placed_today = await self._call_records.count_placed_since(job_type, start_of_day)
        remaining = max(0, schedule.call_limit - placed_today)
        if remaining == 0:
            return 0

        timer = self._scheduler.get_timer(job_type)
        minutes_left = timer.minutes_left(now) if timer else 1
        return math.ceil(remaining / minutes_left)

    # ------------------------------------------------------------------
    # Per lead
    # ------------------------------------------------------------------

    async def call_lead_now(self, lead_id: str, job_type: JobType = JobType.INITIAL) -> DispatchResult:
        """Manual trigger: call one lead immediately through the normal path."""
        lead = await self._leads.get(lead_id)
        if lead is None:
            raise UnknownLeadError(lead_id)
        return await self.dispatch_lead(lead, job_type, CallTrigger.MANUAL)

    async def dispatch_lead(
        self,
        lead: Lead,
        job_type: JobType,
        trigger: CallTrigger = CallTrigger.BATCH
    ) -> DispatchResult:
        """
        Claim a lead and place one call.

        Claim: status_before_call recorded, status=calling, callback cleared,
        persisted. Only then is the provider invoked. On a permanent failure
        the lead is marked error; on any other failure the lock is released
        by restoring the pre-call status.
        """
        result = DispatchResult(lead_id=lead.id, job_type=job_type)

        # Another pass may have claimed the lead since it was selected
        lead = await self._leads.get(lead.id) or lead
        if lead.is_calling:
            result.skipped = "already calling"
            return result

        try:
            to_number = normalize_phone_number(lead.phone or "")
        except ValueError as e:
            logger.warning(f"Lead {lead.id} has an unusable phone number: {e}")
            lead.status = LeadStatus.ERROR
            lead.updated_at = self._clock.now()
            await self._leads.save(lead)
            self._calls_failed += 1
            result.error = str(e)
            return result

        # Claim
        lead.status_before_call = lead.status
        lead.status = LeadStatus.CALLING
        lead.scheduled_callback_date = None
        lead.updated_at = self._clock.now()
        lead = await self._leads.save(lead)

        try:
            request = await self._build_request(lead, job_type, to_number)
            ref = await self._provider.place_call(request)
        except PermanentCollaboratorError as e:
            logger.error(f"Call to lead {lead.id} rejected ({e.status_code}): {e.message}")
            lead.status = LeadStatus.ERROR
            await self._release(lead)
            self._calls_failed += 1
            result.error = e.message
            return result
        except TransientCollaboratorError as e:
            logger.warning(f"Call to lead {lead.id} failed transiently, releasing lock: {e.message}")
            await self._release(lead, restore=True)
            self._calls_failed += 1
            result.error = e.message
            return result
        except Exception as e:
            logger.error(f"Call to lead {lead.id} failed: {e}", exc_info=True)
            await self._release(lead, restore=True)
            self._calls_failed += 1
            result.error = str(e)
            return result

        now = self._clock.now()
        record = CallRecord(
            id=str(uuid.uuid4()),
            external_call_id=ref.call_id,
            lead_id=lead.id,
            job_type=job_type,
            status=CallRecordStatus.REGISTERED,
            trigger=trigger,
            from_number=request.from_number,
            to_number=request.to_number,
            agent_id=ref.agent_id or request.agent_override,
            created_at=now,
        )
        await self._call_records.save(record)

        lead.last_call_id = record.id
        lead.job_type = job_type
        if job_type == JobType.REMINDER:
            lead.reminder_sent_at = now
        lead.updated_at = now
        lead = await self._leads.save(lead)

        await self._sync_crm(lead)

        self._calls_placed += 1
        logger.info(f"Placed {job_type.value} call {ref.call_id} to lead {lead.id}")
        result.placed = True
        result.call_id = ref.call_id
        return result

    async def _release(self, lead: Lead, restore: bool = False) -> None:
        if restore:
            lead.status = lead.status_before_call or LeadStatus.NEW
            lead.status_before_call = None
        lead.updated_at = self._clock.now()
        try:
            await self._leads.save(lead)
        except Exception as e:
            logger.error(f"Failed to release lead {lead.id}: {e}", exc_info=True)

    async def _build_request(self, lead: Lead, job_type: JobType, to_number: str) -> CallRequest:
        variables = {"lead_name": lead.full_name}

        if job_type == JobType.REMINDER:
            variables["form_not_submit"] = "false" if lead.form_submitted else "true"
            variables["link_click"] = "true" if lead.link_clicked else "false"
        elif job_type == JobType.RESCHEDULE:
            previous = await self._previous_conversation(lead)
            if previous:
                variables["previous_conversation"] = previous

        return CallRequest(
            from_number=pick_caller_id(self._from_numbers, self._rng),
            to_number=to_number,
            agent_override=self._agent_overrides.get(job_type),
            dynamic_variables=variables,
            metadata={"lead_id": lead.id, "job_type": job_type.value},
        )

    async def _previous_conversation(self, lead: Lead) -> Optional[str]:
        """Transcript text of the lead's last call, if any."""
        if not lead.last_call_id:
            return None
        try:
            record = await self._call_records.get(lead.last_call_id)
            if record is None:
                return None
            transcript = await self._transcripts.get_by_call(record.external_call_id)
        except Exception as e:
            logger.warning(f"Could not load previous transcript for lead {lead.id}: {e}")
            return None
        if transcript is None or not transcript.has_text:
            return None
        return transcript.text

    async def _sync_crm(self, lead: Lead) -> None:
        """Find or create the CRM lead and mark it calling. Failures are logged only."""
        if not self._crm or not lead.phone:
            return
        try:
            crm_id = lead.crm_id
            if not crm_id:
                existing = await self._crm.find_by_phone(lead.phone)
                if existing is None:
                    existing = await self._crm.create_lead({
                        "phone": lead.phone,
                        "email": lead.email,
                        "firstname": lead.first_name,
                        "lastname": lead.last_name,
                    })
                crm_id = existing.id
            await self._crm.update_status(crm_id, LeadStatus.CALLING.value)
        except CollaboratorError as e:
            logger.warning(f"CRM sync failed for lead {lead.id} ({e.collaborator}): {e.message}")
            return
        except Exception as e:
            logger.warning(f"CRM sync failed for lead {lead.id}: {e}")
            return

        if crm_id != lead.crm_id:
            lead.crm_id = crm_id
            await self._leads.save(lead)

    def get_stats(self) -> dict:
        return {
            "ticks": self._ticks,
            "calls_placed": self._calls_placed,
            "calls_failed": self._calls_failed,
            "armed_jobs": [j.value for j in self._scheduler.active_timers],
        }
