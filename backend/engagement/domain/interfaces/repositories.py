"""
Repository Interfaces
Storage contracts for leads, call records, transcripts and job schedules
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List

from engagement.domain.models.lead import Lead, JobType
from engagement.domain.models.call_record import CallRecord, Transcript
from engagement.domain.models.job_schedule import JobSchedule
from engagement.domain.services.lead_selection import BatchCriteria


class LeadRepository(ABC):
    """Lead aggregate storage"""

    @abstractmethod
    async def get(self, lead_id: str) -> Optional[Lead]:
        pass

    @abstractmethod
    async def save(self, lead: Lead) -> Lead:
        pass

    @abstractmethod
    async def find_due_callbacks(self, start: datetime, end: datetime) -> List[Lead]:
        """Leads whose scheduled_callback_date is within [start, end] and are not calling."""
        pass

    @abstractmethod
    async def find_batch_candidates(self, criteria: BatchCriteria) -> List[Lead]:
        """Leads eligible for a batch job, at most criteria.limit of them."""
        pass


class CallRecordRepository(ABC):
    """Call record storage"""

    @abstractmethod
    async def get(self, record_id: str) -> Optional[CallRecord]:
        pass

    @abstractmethod
    async def get_by_external_id(self, external_call_id: str) -> Optional[CallRecord]:
        pass

    @abstractmethod
    async def save(self, record: CallRecord) -> CallRecord:
        pass

    @abstractmethod
    async def count_placed_since(self, job_type: JobType, since: datetime) -> int:
        """Number of batch-placed calls of a job type created at or after `since`."""
        pass


class TranscriptRepository(ABC):
    """Transcript storage, keyed by external call id"""

    @abstractmethod
    async def get_by_call(self, external_call_id: str) -> Optional[Transcript]:
        pass

    @abstractmethod
    async def save(self, transcript: Transcript) -> Transcript:
        pass


class JobScheduleRepository(ABC):
    """Job schedule storage, one row per job type"""

    @abstractmethod
    async def get(self, job_type: JobType) -> Optional[JobSchedule]:
        pass

    @abstractmethod
    async def list_all(self) -> List[JobSchedule]:
        pass

    @abstractmethod
    async def save(self, schedule: JobSchedule) -> JobSchedule:
        pass
