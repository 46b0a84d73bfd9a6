"""
Lead Domain Models
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum


class LeadStatus(str, Enum):
    """Lead status"""
    NEW = "new"
    CALLING = "calling"
    CONTACTED = "contacted"
    SCHEDULED = "scheduled"
    REMINDER = "reminder"
    NOT_INTERESTED = "not-interested"
    COMPLETED = "completed"
    ERROR = "error"


class JobType(str, Enum):
    """Campaign job type - selects the conversation script and eligibility rule"""
    INITIAL = "initial"
    RESCHEDULE = "reschedule"
    REMINDER = "reminder"


# Statuses that take a lead out of every batch campaign
TERMINAL_STATUSES = {
    LeadStatus.NOT_INTERESTED,
    LeadStatus.COMPLETED,
    LeadStatus.ERROR,
}


class Lead(BaseModel):
    """Prospect being contacted through the campaign"""
    id: str
    phone: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    status: LeadStatus = LeadStatus.NEW
    status_before_call: Optional[LeadStatus] = None  # held while the calling lock is taken
    contacted: bool = False
    job_type: Optional[JobType] = None

    scheduled_callback_date: Optional[datetime] = None
    reminder_sent_at: Optional[datetime] = None

    # Verification channels captured during conversations
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    link_clicked: bool = False
    form_submitted: bool = False
    link_send: bool = False

    last_call_id: Optional[str] = None  # CallRecord.id of the most recent call
    crm_id: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.last_name]
        return " ".join(p for p in parts if p)

    @property
    def verification_email(self) -> Optional[str]:
        return self.contact_email or self.email

    @property
    def verification_phone(self) -> Optional[str]:
        return self.contact_phone or self.phone

    @property
    def is_calling(self) -> bool:
        return self.status == LeadStatus.CALLING
