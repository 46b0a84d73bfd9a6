"""
Call Outcome Models
Structured intent extracted from a transcript and the decision derived from it
"""
import logging
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

from engagement.domain.models.job_schedule import parse_hhmm
from engagement.domain.models.lead import LeadStatus

logger = logging.getLogger(__name__)


class PreferredMethod(str, Enum):
    """Contact preference stated by the lead"""
    EMAIL = "email"
    PHONE = "phone"
    BOTH = "both"
    SCHEDULE = "schedule"
    BUSY = "busy"
    NONE = "none"


class ContactInfo(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None


class OutcomeIntent(BaseModel):
    """
    Fixed-shape result of interpreting a call transcript.

    Aliases match the keys the extraction prompt asks the model to return.
    """
    model_config = ConfigDict(populate_by_name=True)

    preferred_method: PreferredMethod = Field(default=PreferredMethod.NONE, alias="preferredMethod")
    contact_info: ContactInfo = Field(default_factory=ContactInfo, alias="contactInfo")
    schedule_days: Optional[int] = Field(default=None, alias="scheduleDays")
    specific_time: Optional[str] = Field(default=None, alias="specificTime")
    resent_link: bool = Field(default=False, alias="resentLink")
    is_busy: bool = Field(default=False, alias="isBusy")
    not_interested: bool = Field(default=False, alias="notInterested")

    @field_validator("preferred_method", mode="before")
    @classmethod
    def _coerce_method(cls, value: Any) -> Any:
        if value is None:
            return PreferredMethod.NONE
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {m.value for m in PreferredMethod}:
                return lowered
            logger.warning(f"Unknown preferredMethod {value!r}, treating as none")
            return PreferredMethod.NONE
        return value

    @field_validator("contact_info", mode="before")
    @classmethod
    def _coerce_contact(cls, value: Any) -> Any:
        return value or {}

    @field_validator("schedule_days", mode="before")
    @classmethod
    def _coerce_days(cls, value: Any) -> Optional[int]:
        if value in (None, ""):
            return None
        try:
            days = int(float(value))
        except (TypeError, ValueError):
            logger.warning(f"Discarding non-numeric scheduleDays {value!r}")
            return None
        return days if days > 0 else None

    @field_validator("specific_time", mode="before")
    @classmethod
    def _coerce_time(cls, value: Any) -> Optional[str]:
        if not value:
            return None
        try:
            return parse_hhmm(str(value)).strftime("%H:%M")
        except ValueError:
            logger.warning(f"Discarding specificTime that is not HH:MM: {value!r}")
            return None

    @field_validator("resent_link", "is_busy", "not_interested", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "1")
        return bool(value)

    @classmethod
    def no_information(cls) -> "OutcomeIntent":
        """Intent used when nothing usable could be derived."""
        return cls()

    @property
    def wants_busy_callback(self) -> bool:
        return self.is_busy or self.preferred_method == PreferredMethod.BUSY


class SideEffect(str, Enum):
    """Actions the resolver asks the lifecycle handler to perform"""
    SEND_VERIFICATION_EMAIL = "send_verification_email"
    SEND_VERIFICATION_SMS = "send_verification_sms"


class ResolutionBranch(str, Enum):
    """Scheduling branch that produced a resolution"""
    BUSY = "busy"
    SCHEDULE = "schedule"
    BOTH = "both"
    EMAIL = "email"
    PHONE = "phone"
    FALLBACK = "fallback"
    NOT_INTERESTED = "not_interested"


class Resolution(BaseModel):
    """
    Decision produced by the OutcomeResolver.

    ``callback_set`` distinguishes "schedule a callback at this time" from
    "leave the lead's callback untouched".
    """
    branch: ResolutionBranch
    status: Optional[LeadStatus] = None
    callback_set: bool = False
    scheduled_callback_date: Optional[datetime] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    link_send: bool = False
    side_effects: List[SideEffect] = Field(default_factory=list)

    def add_side_effect(self, effect: SideEffect) -> None:
        if effect not in self.side_effects:
            self.side_effects.append(effect)

    def lead_updates(self) -> Dict[str, Any]:
        """Lead fields to write, excluding the callback date (owned by the scheduler)."""
        updates: Dict[str, Any] = {}
        if self.status is not None:
            updates["status"] = self.status
        if self.contact_email:
            updates["contact_email"] = self.contact_email
        if self.contact_phone:
            updates["contact_phone"] = self.contact_phone
        if self.link_send:
            updates["link_send"] = True
        return updates
