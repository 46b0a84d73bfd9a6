"""
Call Record Domain Models
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

from engagement.domain.models.lead import JobType


class CallRecordStatus(str, Enum):
    """Call record status"""
    REGISTERED = "registered"  # placed, provider has not reported yet
    ONGOING = "ongoing"
    ENDED = "ended"
    ERROR = "error"


class CallTrigger(str, Enum):
    """What placed a call. Only batch calls count against a job type's call_limit"""
    BATCH = "batch"
    CALLBACK = "callback"  # individually scheduled callback
    MANUAL = "manual"


# Fields a late call_analyzed / enrichment event may still change on an ended record
ENRICHMENT_FIELDS = ("cost", "latency", "sentiment")


class CallRecord(BaseModel):
    """Single call placed to a lead"""
    id: str
    external_call_id: str
    lead_id: str
    job_type: JobType
    status: CallRecordStatus = CallRecordStatus.REGISTERED
    trigger: CallTrigger = CallTrigger.BATCH

    from_number: Optional[str] = None
    to_number: Optional[str] = None
    agent_id: Optional[str] = None

    start_timestamp: Optional[int] = None  # epoch milliseconds, provider clock
    end_timestamp: Optional[int] = None
    duration_ms: Optional[int] = None
    disconnect_reason: Optional[str] = None

    cost: Optional[float] = None
    latency: Dict[str, Any] = Field(default_factory=dict)
    sentiment: Optional[str] = None

    created_at: Optional[datetime] = None

    @property
    def is_ended(self) -> bool:
        return self.status == CallRecordStatus.ENDED


class TranscriptTurn(BaseModel):
    """One utterance in a call"""
    role: str
    content: str


class Transcript(BaseModel):
    """Conversation text captured for a call"""
    external_call_id: str
    call_record_id: Optional[str] = None
    text: str = ""
    turns: List[TranscriptTurn] = Field(default_factory=list)
    recording_url: Optional[str] = None
    analysis: Dict[str, Any] = Field(default_factory=dict)

    @property
    def has_text(self) -> bool:
        return bool(self.text and self.text.strip())

    def merge(self, other: "Transcript") -> bool:
        """
        Merge a later capture of the same call into this one.

        Only richer data replaces what is stored: longer text, a longer turn
        list, a recording URL that was missing, extra analysis keys.

        Returns:
            True if anything changed
        """
        changed = False
        if other.has_text and len(other.text) > len(self.text):
            self.text = other.text
            changed = True
        if len(other.turns) > len(self.turns):
            self.turns = list(other.turns)
            changed = True
        if other.recording_url and not self.recording_url:
            self.recording_url = other.recording_url
            changed = True
        for key, value in other.analysis.items():
            if self.analysis.get(key) != value:
                self.analysis[key] = value
                changed = True
        if other.call_record_id and not self.call_record_id:
            self.call_record_id = other.call_record_id
            changed = True
        return changed
