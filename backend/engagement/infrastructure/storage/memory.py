"""
In-Memory Repositories
Process-local storage for development, tests and single-process runs.

Rows are stored as deep copies so callers never share mutable state with
the store, matching how a database round-trip behaves.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from engagement.domain.interfaces.repositories import (
    CallRecordRepository,
    JobScheduleRepository,
    LeadRepository,
    TranscriptRepository,
)
from engagement.domain.models.call_record import CallRecord, CallTrigger, Transcript
from engagement.domain.models.job_schedule import JobSchedule
from engagement.domain.models.lead import Lead, JobType
from engagement.domain.services.lead_selection import BatchCriteria, is_due_callback, matches

logger = logging.getLogger(__name__)


class InMemoryLeadRepository(LeadRepository):
    def __init__(self, leads: Optional[List[Lead]] = None):
        self._rows: Dict[str, Lead] = {}
        for lead in leads or []:
            self._rows[lead.id] = lead.model_copy(deep=True)

    async def get(self, lead_id: str) -> Optional[Lead]:
        lead = self._rows.get(lead_id)
        return lead.model_copy(deep=True) if lead else None

    async def save(self, lead: Lead) -> Lead:
        self._rows[lead.id] = lead.model_copy(deep=True)
        return lead

    async def find_due_callbacks(self, start: datetime, end: datetime) -> List[Lead]:
        return [
            lead.model_copy(deep=True)
            for lead in self._rows.values()
            if is_due_callback(lead, start, end)
        ]

    async def find_batch_candidates(self, criteria: BatchCriteria) -> List[Lead]:
        selected = [lead for lead in self._rows.values() if matches(lead, criteria)]
        # Oldest first, so a limited batch does not starve early leads
        selected.sort(key=lambda l: (l.created_at is None, l.created_at or datetime.min, l.id))
        if criteria.limit is not None:
            selected = selected[:criteria.limit]
        return [lead.model_copy(deep=True) for lead in selected]

    def all(self) -> List[Lead]:
        return [lead.model_copy(deep=True) for lead in self._rows.values()]


class InMemoryCallRecordRepository(CallRecordRepository):
    def __init__(self):
        self._rows: Dict[str, CallRecord] = {}

    async def get(self, record_id: str) -> Optional[CallRecord]:
        record = self._rows.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def get_by_external_id(self, external_call_id: str) -> Optional[CallRecord]:
        for record in self._rows.values():
            if record.external_call_id == external_call_id:
                return record.model_copy(deep=True)
        return None

    async def save(self, record: CallRecord) -> CallRecord:
        self._rows[record.id] = record.model_copy(deep=True)
        return record

    async def count_placed_since(self, job_type: JobType, since: datetime) -> int:
        return sum(
            1 for r in self._rows.values()
            if r.job_type == job_type
            and r.trigger == CallTrigger.BATCH
            and r.created_at is not None
            and r.created_at >= since
        )

    def all(self) -> List[CallRecord]:
        return [r.model_copy(deep=True) for r in self._rows.values()]


class InMemoryTranscriptRepository(TranscriptRepository):
    def __init__(self):
        self._rows: Dict[str, Transcript] = {}

    async def get_by_call(self, external_call_id: str) -> Optional[Transcript]:
        transcript = self._rows.get(external_call_id)
        return transcript.model_copy(deep=True) if transcript else None

    async def save(self, transcript: Transcript) -> Transcript:
        self._rows[transcript.external_call_id] = transcript.model_copy(deep=True)
        return transcript

    def all(self) -> List[Transcript]:
        return [t.model_copy(deep=True) for t in self._rows.values()]


class InMemoryJobScheduleRepository(JobScheduleRepository):
    def __init__(self):
        self._rows: Dict[JobType, JobSchedule] = {}

    async def get(self, job_type: JobType) -> Optional[JobSchedule]:
        schedule = self._rows.get(job_type)
        return schedule.model_copy(deep=True) if schedule else None

    async def list_all(self) -> List[JobSchedule]:
        return [s.model_copy(deep=True) for s in self._rows.values()]

    async def save(self, schedule: JobSchedule) -> JobSchedule:
        self._rows[schedule.job_type] = schedule.model_copy(deep=True)
        return schedule
