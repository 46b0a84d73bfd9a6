"""
Call Event Models
Inbound webhook payloads from the call provider
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from enum import Enum

from engagement.domain.models.lead import JobType
from engagement.domain.models.call_record import Transcript, TranscriptTurn


class CallEventType(str, Enum):
    """Webhook event types emitted by the call provider"""
    CALL_STARTED = "call_started"
    CALL_ENDED = "call_ended"
    CALL_ANALYZED = "call_analyzed"


class CallPayload(BaseModel):
    """
    Call object carried by every provider event.

    Field names follow the provider's wire format; only the fields the
    orchestrator reads are declared.
    """
    model_config = ConfigDict(extra="allow")

    call_id: str
    agent_id: Optional[str] = None
    call_status: Optional[str] = None
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    parameters: Dict[str, Any] = Field(default_factory=dict)

    transcript: Optional[str] = None
    transcript_object: List[Dict[str, Any]] = Field(default_factory=list)
    recording_url: Optional[str] = None

    start_timestamp: Optional[int] = None
    end_timestamp: Optional[int] = None
    duration_ms: Optional[int] = None
    disconnection_reason: Optional[str] = None
    call_cost: Dict[str, Any] = Field(default_factory=dict)
    latency: Dict[str, Any] = Field(default_factory=dict)
    call_analysis: Optional[Dict[str, Any]] = None

    @property
    def lead_id(self) -> Optional[str]:
        """Lead id from metadata, falling back to call parameters."""
        lead_id = self.metadata.get("lead_id") or self.parameters.get("lead_id")
        return str(lead_id) if lead_id else None

    @property
    def job_type(self) -> Optional[JobType]:
        value = self.metadata.get("job_type")
        try:
            return JobType(value) if value else None
        except ValueError:
            return None

    @property
    def cost(self) -> Optional[float]:
        value = self.call_cost.get("combined_cost")
        return float(value) if value is not None else None

    @property
    def sentiment(self) -> Optional[str]:
        if not self.call_analysis:
            return None
        return map_sentiment(self.call_analysis.get("user_sentiment"))

    def to_transcript(self) -> Transcript:
        turns = [
            TranscriptTurn(role=str(t.get("role", "")), content=str(t.get("content", "")))
            for t in self.transcript_object
            if t.get("content")
        ]
        return Transcript(
            external_call_id=self.call_id,
            text=self.transcript or "",
            turns=turns,
            recording_url=self.recording_url,
            analysis=dict(self.call_analysis or {}),
        )


class CallEvent(BaseModel):
    """Webhook envelope: {"event": ..., "call": {...}}"""
    model_config = ConfigDict(extra="allow")

    event: str
    call: CallPayload


def map_sentiment(sentiment: Optional[str]) -> str:
    """Collapse provider sentiment labels to positive / neutral / negative."""
    if not sentiment:
        return "neutral"
    lowered = sentiment.lower()
    if "positive" in lowered:
        return "positive"
    if "negative" in lowered:
        return "negative"
    return "neutral"
