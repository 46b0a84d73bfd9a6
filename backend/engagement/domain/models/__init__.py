"""Domain models"""

from .lead import (
    Lead,
    LeadStatus,
    JobType,
    TERMINAL_STATUSES,
)

from .call_record import (
    CallRecord,
    CallRecordStatus,
    Transcript,
    TranscriptTurn,
)

from .call_event import (
    CallEvent,
    CallEventType,
    CallPayload,
)

from .job_schedule import (
    JobSchedule,
    JobScheduleUpdate,
    parse_hhmm,
)

from .outcome import (
    PreferredMethod,
    ContactInfo,
    OutcomeIntent,
    SideEffect,
    ResolutionBranch,
    Resolution,
)

__all__ = [
    "Lead",
    "LeadStatus",
    "JobType",
    "TERMINAL_STATUSES",
    "CallRecord",
    "CallRecordStatus",
    "Transcript",
    "TranscriptTurn",
    "CallEvent",
    "CallEventType",
    "CallPayload",
    "JobSchedule",
    "JobScheduleUpdate",
    "parse_hhmm",
    "PreferredMethod",
    "ContactInfo",
    "OutcomeIntent",
    "SideEffect",
    "ResolutionBranch",
    "Resolution",
]
