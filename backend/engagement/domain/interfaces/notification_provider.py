"""
Verification Sender Interfaces
Mail and SMS collaborators that deliver the verification link
"""
from abc import ABC, abstractmethod

from engagement.domain.models.lead import Lead


class VerificationEmailSender(ABC):
    """Sends the verification link by email"""

    @abstractmethod
    async def send_verification_email(self, lead: Lead) -> None:
        """Send to lead.verification_email. Raises CollaboratorError on failure."""
        pass


class VerificationSmsSender(ABC):
    """Sends the verification link by SMS"""

    @abstractmethod
    async def send_verification_sms(self, lead: Lead) -> None:
        """Send to lead.verification_phone. Raises CollaboratorError on failure."""
        pass
