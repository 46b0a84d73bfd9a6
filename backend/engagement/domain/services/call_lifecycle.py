"""
Call Lifecycle Handler
Consumes call provider events and drives the post-call flow:

    call_ended -> dedup -> CallRecord -> Transcript -> Interpreter -> Resolver -> apply

Every event is handled in isolation and at most once; failures are logged
and never re-raised to the webhook caller.
"""
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from engagement.domain.errors import (
    CollaboratorError,
    DuplicateEventError,
    UnknownLeadError,
)
from engagement.domain.interfaces.crm_provider import CRMProvider
from engagement.domain.interfaces.repositories import (
    CallRecordRepository,
    LeadRepository,
    TranscriptRepository,
)
from engagement.domain.models.call_event import CallEvent, CallEventType, CallPayload
from engagement.domain.models.call_record import CallRecord, CallRecordStatus, Transcript
from engagement.domain.models.lead import Lead, LeadStatus, JobType
from engagement.domain.models.outcome import OutcomeIntent, Resolution, SideEffect
from engagement.domain.services.clock import Clock
from engagement.domain.services.dedup_cache import TTLDedupCache
from engagement.domain.services.followup_scheduler import FollowUpScheduler
from engagement.domain.services.outcome_interpreter import OutcomeInterpreter
from engagement.domain.services.outcome_resolver import OutcomeResolver
from engagement.domain.services.verification_notifier import VerificationNotifier

logger = logging.getLogger(__name__)


class EventOutcome(str, Enum):
    """What the handler did with an event"""
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    DISCARDED = "discarded"      # no lead id
    UNKNOWN_LEAD = "unknown_lead"
    IGNORED = "ignored"          # event type not handled
    FAILED = "failed"


@dataclass
class HandleResult:
    event: str
    outcome: EventOutcome
    call_id: Optional[str] = None
    lead_id: Optional[str] = None
    resolution: Optional[Resolution] = None
    delivered: List[SideEffect] = field(default_factory=list)


class CallLifecycleHandler:
    """Event-driven half of the orchestrator"""

    def __init__(
        self,
        leads: LeadRepository,
        call_records: CallRecordRepository,
        transcripts: TranscriptRepository,
        interpreter: OutcomeInterpreter,
        resolver: OutcomeResolver,
        scheduler: FollowUpScheduler,
        notifier: VerificationNotifier,
        dedup: TTLDedupCache,
        clock: Clock,
        crm: Optional[CRMProvider] = None
    ):
        self._leads = leads
        self._call_records = call_records
        self._transcripts = transcripts
        self._interpreter = interpreter
        self._resolver = resolver
        self._scheduler = scheduler
        self._notifier = notifier
        self._dedup = dedup
        self._clock = clock
        self._crm = crm

    async def handle_event(self, event: CallEvent) -> HandleResult:
        """Dispatch one provider event. Never raises."""
        call = event.call
        try:
            if event.event == CallEventType.CALL_STARTED.value:
                return await self.handle_call_started(call)
            if event.event == CallEventType.CALL_ENDED.value:
                return await self.handle_call_ended(call)
            if event.event == CallEventType.CALL_ANALYZED.value:
                return await self.handle_call_analyzed(call)

            logger.info(f"Ignoring unhandled event type {event.event!r} for call {call.call_id}")
            return HandleResult(event=event.event, outcome=EventOutcome.IGNORED, call_id=call.call_id)

        except DuplicateEventError as e:
            logger.debug(f"Absorbed duplicate {event.event} for {e.key}")
            return HandleResult(
                event=event.event,
                outcome=EventOutcome.DUPLICATE,
                call_id=call.call_id,
                lead_id=call.lead_id,
            )
        except UnknownLeadError as e:
            logger.warning(f"{event.event} for call {call.call_id} references unknown lead {e.lead_id}")
            return HandleResult(
                event=event.event,
                outcome=EventOutcome.UNKNOWN_LEAD,
                call_id=call.call_id,
                lead_id=e.lead_id,
            )
        except Exception as e:
            logger.error(f"Error handling {event.event} for call {call.call_id}: {e}", exc_info=True)
            return HandleResult(
                event=event.event,
                outcome=EventOutcome.FAILED,
                call_id=call.call_id,
                lead_id=call.lead_id,
            )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def handle_call_started(self, call: CallPayload) -> HandleResult:
        lead_id = call.lead_id
        if not lead_id:
            logger.warning(f"No lead ID found for call {call.call_id}")
            return HandleResult(event=CallEventType.CALL_STARTED.value, outcome=EventOutcome.DISCARDED, call_id=call.call_id)

        lead = await self._require_lead(lead_id)
        await self._record_call(call, lead, CallRecordStatus.ONGOING)
        logger.info(f"Call started: {call.call_id} (lead {lead_id})")
        return HandleResult(
            event=CallEventType.CALL_STARTED.value,
            outcome=EventOutcome.PROCESSED,
            call_id=call.call_id,
            lead_id=lead_id,
        )

    async def handle_call_ended(self, call: CallPayload) -> HandleResult:
        event = CallEventType.CALL_ENDED.value

        # 1. Lead id
        lead_id = call.lead_id
        if not lead_id:
            logger.warning(f"No lead ID found for call {call.call_id}")
            return HandleResult(event=event, outcome=EventOutcome.DISCARDED, call_id=call.call_id)

        # 2. Dedup by lead
        if not self._dedup.check_and_add(lead_id):
            raise DuplicateEventError(lead_id)

        logger.info(f"Call ended: {call.call_id} (lead {lead_id})")

        # 3. Lead
        lead = await self._require_lead(lead_id)

        # 4-5. Record and transcript
        record = await self._record_call(call, lead, CallRecordStatus.ENDED)
        transcript = await self._store_transcript(call, record)

        # 6-7. Decide
        job_type = record.job_type
        reschedule_start = await self._scheduler.get_reschedule_start_time()
        now = self._clock.now()

        if not transcript.has_text:
            logger.info(f"No transcript for call {call.call_id}, applying fallback")
            resolution = self._resolver.fallback(now, reschedule_start)
        else:
            intent = await self._interpret(transcript.text, call.call_id)
            resolution = self._resolver.resolve(job_type, intent, lead, now, reschedule_start)

        logger.info(
            f"Resolved lead {lead_id}: branch={resolution.branch.value} "
            f"status={resolution.status.value if resolution.status else '-'} "
            f"callback={resolution.scheduled_callback_date.isoformat() if resolution.scheduled_callback_date else '-'} "
            f"effects={[e.value for e in resolution.side_effects]}"
        )

        lead, delivered = await self._apply(lead_id, resolution)
        return HandleResult(
            event=event,
            outcome=EventOutcome.PROCESSED,
            call_id=call.call_id,
            lead_id=lead_id,
            resolution=resolution,
            delivered=delivered,
        )

    async def handle_call_analyzed(self, call: CallPayload) -> HandleResult:
        """Late enrichment: sentiment, cost, latency and analysis. Allowed on ended records."""
        event = CallEventType.CALL_ANALYZED.value
        lead_id = call.lead_id
        if not lead_id:
            logger.warning(f"No lead ID found for call {call.call_id}")
            return HandleResult(event=event, outcome=EventOutcome.DISCARDED, call_id=call.call_id)

        lead = await self._require_lead(lead_id)
        record = await self._record_call(call, lead, CallRecordStatus.ENDED)
        await self._store_transcript(call, record)
        logger.info(f"Call analyzed: {call.call_id} sentiment={record.sentiment}")
        return HandleResult(event=event, outcome=EventOutcome.PROCESSED, call_id=call.call_id, lead_id=lead_id)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _require_lead(self, lead_id: str) -> Lead:
        lead = await self._leads.get(lead_id)
        if lead is None:
            raise UnknownLeadError(lead_id)
        return lead

    async def _record_call(self, call: CallPayload, lead: Lead, status: CallRecordStatus) -> CallRecord:
        """
        Create or merge the CallRecord for a provider call.

        Ended records only accept enrichment fields (cost, latency, sentiment).
        """
        record = await self._call_records.get_by_external_id(call.call_id)

        if record is None:
            record = CallRecord(
                id=str(uuid.uuid4()),
                external_call_id=call.call_id,
                lead_id=lead.id,
                job_type=call.job_type or lead.job_type or JobType.INITIAL,
                status=status,
                created_at=self._clock.now(),
            )
            self._merge_call_fields(record, call)
            self._merge_enrichment(record, call)
            return await self._call_records.save(record)

        if record.is_ended:
            if self._merge_enrichment(record, call):
                record = await self._call_records.save(record)
            return record

        record.status = status
        self._merge_call_fields(record, call)
        self._merge_enrichment(record, call)
        return await self._call_records.save(record)

    @staticmethod
    def _merge_call_fields(record: CallRecord, call: CallPayload) -> None:
        record.agent_id = call.agent_id or record.agent_id
        record.from_number = call.from_number or record.from_number
        record.to_number = call.to_number or record.to_number
        if call.start_timestamp is not None:
            record.start_timestamp = call.start_timestamp
        if call.end_timestamp is not None:
            record.end_timestamp = call.end_timestamp
        if call.duration_ms is not None:
            record.duration_ms = call.duration_ms
        elif record.start_timestamp is not None and record.end_timestamp is not None:
            record.duration_ms = record.end_timestamp - record.start_timestamp
        if call.disconnection_reason:
            record.disconnect_reason = call.disconnection_reason

    @staticmethod
    def _merge_enrichment(record: CallRecord, call: CallPayload) -> bool:
        changed = False
        if call.cost is not None and call.cost != record.cost:
            record.cost = call.cost
            changed = True
        if call.latency and call.latency != record.latency:
            record.latency = dict(call.latency)
            changed = True
        if call.call_analysis and call.sentiment != record.sentiment:
            record.sentiment = call.sentiment
            changed = True
        return changed

    async def _store_transcript(self, call: CallPayload, record: CallRecord) -> Transcript:
        incoming = call.to_transcript()
        incoming.call_record_id = record.id

        existing = await self._transcripts.get_by_call(call.call_id)
        if existing is None:
            return await self._transcripts.save(incoming)
        if existing.merge(incoming):
            return await self._transcripts.save(existing)
        return existing

    async def _interpret(self, text: str, call_id: str) -> OutcomeIntent:
        try:
            return await self._interpreter.interpret(text)
        except CollaboratorError as e:
            logger.warning(
                f"Interpreter unavailable for call {call_id} ({e.collaborator}): {e.message}; "
                f"treating as no information"
            )
        except Exception as e:
            logger.error(f"Interpreter failed for call {call_id}: {e}", exc_info=True)
        return OutcomeIntent.no_information()

    async def _apply(self, lead_id: str, resolution: Resolution):
        """
        Write the resolution to the lead, then run side effects and CRM sync.

        The calling lock is released here: status becomes the resolution's
        status, or the status held before the call.
        """
        lead = await self._require_lead(lead_id)

        updates = resolution.lead_updates()
        if "status" not in updates and lead.is_calling:
            updates["status"] = lead.status_before_call or LeadStatus.CONTACTED
        for name, value in updates.items():
            setattr(lead, name, value)
        lead.status_before_call = None
        lead.contacted = True

        if resolution.callback_set:
            lead = await self._scheduler.schedule_callback(lead, resolution.scheduled_callback_date)
        else:
            lead.updated_at = self._clock.now()
            lead = await self._leads.save(lead)

        delivered = []
        if resolution.side_effects:
            delivered = await self._notifier.execute(lead, resolution.side_effects)

        await self._sync_crm_status(lead)
        return lead, delivered

    async def _sync_crm_status(self, lead: Lead) -> None:
        if not self._crm or not lead.crm_id:
            return
        try:
            await self._crm.update_status(lead.crm_id, lead.status.value)
        except Exception as e:
            logger.warning(f"CRM status update failed for lead {lead.id}: {e}")
