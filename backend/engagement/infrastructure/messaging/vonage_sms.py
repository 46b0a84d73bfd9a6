"""
Vonage Verification SMS Sender
Delivers the verification link by SMS using the Vonage SMS API (SDK v4.x).

Uses Vonage credentials:
- VONAGE_API_KEY
- VONAGE_API_SECRET
- VONAGE_FROM_NUMBER (SMS sender ID)
"""
import asyncio
import logging
from typing import Optional

from vonage import Auth, Vonage
from vonage_sms import SmsMessage

from engagement.domain.errors import PermanentCollaboratorError, TransientCollaboratorError
from engagement.domain.interfaces.notification_provider import VerificationSmsSender
from engagement.domain.models.lead import Lead
from engagement.domain.services.phone_numbers import normalize_phone_number
from engagement.infrastructure.messaging.templates import VERIFICATION_SMS, MessageTemplate
from engagement.infrastructure.messaging.verification_links import VerificationLinkBuilder

logger = logging.getLogger(__name__)

# Vonage SMS status codes that are worth retrying (throttled, internal error, communication failed)
_TRANSIENT_STATUSES = {"1", "5", "13"}


class VonageVerificationSmsSender(VerificationSmsSender):
    """Sends the verification link SMS through Vonage"""

    def __init__(
        self,
        api_key: Optional[str],
        api_secret: Optional[str],
        from_number: Optional[str],
        links: VerificationLinkBuilder,
        template: MessageTemplate = VERIFICATION_SMS,
        client: Optional[Vonage] = None
    ):
        self._from = from_number
        self._links = links
        self._template = template
        self._sms = None

        if client is not None:
            self._sms = client.sms
        elif api_key and api_secret:
            self._sms = Vonage(auth=Auth(api_key=api_key, api_secret=api_secret)).sms
            logger.info("Vonage SMS sender initialized (SDK v4.x)")
        else:
            logger.warning("Vonage SMS not configured - missing API key or secret")

    @property
    def provider_name(self) -> str:
        return "vonage"

    def render(self, lead: Lead) -> str:
        return self._template.render(name=lead.first_name or "there", link=self._links.build(lead))

    async def send_verification_sms(self, lead: Lead) -> None:
        if not self._sms:
            raise PermanentCollaboratorError("Vonage SMS not configured", collaborator=self.provider_name)
        if not self._from:
            raise PermanentCollaboratorError(
                "No from_number configured. Set VONAGE_FROM_NUMBER environment variable.",
                collaborator=self.provider_name,
            )

        try:
            to_number = normalize_phone_number(lead.verification_phone or "")
        except ValueError as e:
            raise PermanentCollaboratorError(f"Invalid SMS destination: {e}", collaborator=self.provider_name)

        message = SmsMessage(to=to_number.lstrip("+"), from_=self._from, text=self.render(lead))
        logger.info(f"Sending verification SMS via Vonage: {self._from} -> {to_number[:6]}...")

        loop = asyncio.get_event_loop()
        try:
            response = await loop.run_in_executor(None, self._sms.send, message)
        except Exception as e:
            raise TransientCollaboratorError(f"Vonage SMS request failed: {e}", collaborator=self.provider_name)

        messages = getattr(response, "messages", None) or []
        if not messages:
            raise TransientCollaboratorError("Unexpected response format from Vonage", collaborator=self.provider_name)

        msg = messages[0]
        status = str(getattr(msg, "status", ""))
        if status != "0":
            error_text = getattr(msg, "error_text", None) or "Unknown error"
            error_class = TransientCollaboratorError if status in _TRANSIENT_STATUSES else PermanentCollaboratorError
            raise error_class(f"Vonage SMS failed ({status}): {error_text}", collaborator=self.provider_name)

        logger.info(f"SMS sent successfully: {getattr(msg, 'message_id', 'unknown')}")
