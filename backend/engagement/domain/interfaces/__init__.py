"""Collaborator and storage interfaces"""

from .call_provider import CallProvider, CallRequest, CallRef
from .llm_provider import LLMProvider
from .crm_provider import CRMProvider, CRMLead
from .notification_provider import VerificationEmailSender, VerificationSmsSender
from .repositories import (
    LeadRepository,
    CallRecordRepository,
    TranscriptRepository,
    JobScheduleRepository,
)

__all__ = [
    "CallProvider",
    "CallRequest",
    "CallRef",
    "LLMProvider",
    "CRMProvider",
    "CRMLead",
    "VerificationEmailSender",
    "VerificationSmsSender",
    "LeadRepository",
    "CallRecordRepository",
    "TranscriptRepository",
    "JobScheduleRepository",
]
