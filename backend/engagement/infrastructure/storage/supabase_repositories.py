"""
Supabase Repositories
Storage on Supabase tables: leads, call_records, call_transcripts, job_schedules

Rows are pydantic models dumped in JSON mode (ISO timestamps, enum values).
"""
import logging
from datetime import datetime
from typing import List, Optional

from supabase import Client

from engagement.domain.interfaces.repositories import (
    CallRecordRepository,
    JobScheduleRepository,
    LeadRepository,
    TranscriptRepository,
)
from engagement.domain.models.call_record import CallRecord, CallTrigger, Transcript
from engagement.domain.models.job_schedule import JobSchedule
from engagement.domain.models.lead import Lead, LeadStatus, JobType, TERMINAL_STATUSES
from engagement.domain.services.lead_selection import BatchCriteria

logger = logging.getLogger(__name__)

_EXCLUDED_FROM_BATCH = sorted(s.value for s in TERMINAL_STATUSES | {LeadStatus.CALLING})


class SupabaseLeadRepository(LeadRepository):
    TABLE = "leads"

    def __init__(self, supabase: Client):
        self.supabase = supabase

    async def get(self, lead_id: str) -> Optional[Lead]:
        response = self.supabase.table(self.TABLE).select("*").eq("id", lead_id).limit(1).execute()
        if not response.data:
            return None
        return Lead.model_validate(response.data[0])

    async def save(self, lead: Lead) -> Lead:
        self.supabase.table(self.TABLE).upsert(lead.model_dump(mode="json")).execute()
        return lead

    async def find_due_callbacks(self, start: datetime, end: datetime) -> List[Lead]:
        response = (
            self.supabase.table(self.TABLE)
            .select("*")
            .gte("scheduled_callback_date", start.isoformat())
            .lte("scheduled_callback_date", end.isoformat())
            .neq("status", LeadStatus.CALLING.value)
            .execute()
        )
        return [Lead.model_validate(row) for row in response.data or []]

    async def find_batch_candidates(self, criteria: BatchCriteria) -> List[Lead]:
        query = self.supabase.table(self.TABLE).select("*")

        if criteria.job_type == JobType.INITIAL:
            query = (
                query.eq("contacted", False)
                .not_.in_("status", _EXCLUDED_FROM_BATCH)
                .not_.is_("phone", "null")
                .neq("phone", "")
            )
        elif criteria.job_type == JobType.REMINDER:
            query = (
                query.eq("contacted", True)
                .eq("link_send", True)
                .eq("form_submitted", False)
                .not_.in_("status", _EXCLUDED_FROM_BATCH)
            )
            if criteria.reminder_cutoff is not None:
                cutoff = criteria.reminder_cutoff.isoformat()
                query = query.or_(f"reminder_sent_at.is.null,reminder_sent_at.lte.{cutoff}")
        elif criteria.job_type == JobType.RESCHEDULE:
            query = (
                query.lte("scheduled_callback_date", criteria.now.isoformat())
                .neq("status", LeadStatus.CALLING.value)
            )

        query = query.order("created_at")
        if criteria.limit is not None:
            query = query.limit(criteria.limit)

        response = query.execute()
        return [Lead.model_validate(row) for row in response.data or []]


class SupabaseCallRecordRepository(CallRecordRepository):
    TABLE = "call_records"

    def __init__(self, supabase: Client):
        self.supabase = supabase

    async def get(self, record_id: str) -> Optional[CallRecord]:
        response = self.supabase.table(self.TABLE).select("*").eq("id", record_id).limit(1).execute()
        return CallRecord.model_validate(response.data[0]) if response.data else None

    async def get_by_external_id(self, external_call_id: str) -> Optional[CallRecord]:
        response = (
            self.supabase.table(self.TABLE)
            .select("*")
            .eq("external_call_id", external_call_id)
            .limit(1)
            .execute()
        )
        return CallRecord.model_validate(response.data[0]) if response.data else None

    async def save(self, record: CallRecord) -> CallRecord:
        self.supabase.table(self.TABLE).upsert(record.model_dump(mode="json")).execute()
        return record

    async def count_placed_since(self, job_type: JobType, since: datetime) -> int:
        response = (
            self.supabase.table(self.TABLE)
            .select("id", count="exact")
            .eq("job_type", job_type.value)
            .eq("trigger", CallTrigger.BATCH.value)
            .gte("created_at", since.isoformat())
            .execute()
        )
        return response.count or 0


class SupabaseTranscriptRepository(TranscriptRepository):
    TABLE = "call_transcripts"

    def __init__(self, supabase: Client):
        self.supabase = supabase

    async def get_by_call(self, external_call_id: str) -> Optional[Transcript]:
        response = (
            self.supabase.table(self.TABLE)
            .select("*")
            .eq("external_call_id", external_call_id)
            .limit(1)
            .execute()
        )
        return Transcript.model_validate(response.data[0]) if response.data else None

    async def save(self, transcript: Transcript) -> Transcript:
        self.supabase.table(self.TABLE).upsert(
            transcript.model_dump(mode="json"),
            on_conflict="external_call_id",
        ).execute()
        return transcript


class SupabaseJobScheduleRepository(JobScheduleRepository):
    TABLE = "job_schedules"

    def __init__(self, supabase: Client):
        self.supabase = supabase

    async def get(self, job_type: JobType) -> Optional[JobSchedule]:
        response = self.supabase.table(self.TABLE).select("*").eq("job_type", job_type.value).limit(1).execute()
        return JobSchedule.model_validate(response.data[0]) if response.data else None

    async def list_all(self) -> List[JobSchedule]:
        response = self.supabase.table(self.TABLE).select("*").execute()
        return [JobSchedule.model_validate(row) for row in response.data or []]

    async def save(self, schedule: JobSchedule) -> JobSchedule:
        self.supabase.table(self.TABLE).upsert(
            schedule.model_dump(mode="json"),
            on_conflict="job_type",
        ).execute()
        return schedule
