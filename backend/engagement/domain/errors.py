"""
Engagement Errors
Exception taxonomy shared by the dispatcher, lifecycle handler and adapters.
"""
from typing import Optional


class EngagementError(Exception):
    """Base class for all orchestrator errors."""

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(self.message)


class CollaboratorError(EngagementError):
    """Raised when an external dependency (call provider, LLM, CRM, mail/SMS) fails."""

    def __init__(
        self,
        message: str = "",
        collaborator: str = "unknown",
        status_code: Optional[int] = None
    ):
        self.collaborator = collaborator
        self.status_code = status_code
        super().__init__(message)


class TransientCollaboratorError(CollaboratorError):
    """Network failure, timeout or 5xx. Logged; retry belongs to the next tick or re-delivery."""
    pass


class PermanentCollaboratorError(CollaboratorError):
    """4xx or validation failure. The lead is marked as error and not retried."""
    pass


class ParseError(EngagementError):
    """Language-model response could not be decoded into an outcome intent."""

    def __init__(self, message: str = "Failed to parse response as JSON", raw: str = ""):
        self.raw = raw
        super().__init__(message)


class UnknownLeadError(EngagementError):
    """Call event references a lead that is not tracked."""

    def __init__(self, lead_id: str):
        self.lead_id = lead_id
        super().__init__(f"Lead not found: {lead_id}")


class DuplicateEventError(EngagementError):
    """Event for the same lead already processed inside the dedup window."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Duplicate event for {key}")
