"""
SMTP Verification Email Sender
Delivers the verification link by email over SMTP.

Environment Variables:
    SMTP_HOST: SMTP server hostname (e.g., smtp.gmail.com)
    SMTP_PORT: SMTP port (default: 587 for TLS)
    SMTP_USER: SMTP username/email
    SMTP_PASSWORD: SMTP password or app password
    SMTP_FROM_EMAIL: Default sender email address
    SMTP_FROM_NAME: Default sender display name (optional)
    SMTP_USE_TLS: Use TLS (default: true)
"""
import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from engagement.domain.errors import PermanentCollaboratorError, TransientCollaboratorError
from engagement.domain.interfaces.notification_provider import VerificationEmailSender
from engagement.domain.models.lead import Lead
from engagement.infrastructure.messaging.templates import VERIFICATION_EMAIL, MessageTemplate
from engagement.infrastructure.messaging.verification_links import VerificationLinkBuilder

logger = logging.getLogger(__name__)


class SMTPConfigError(Exception):
    """Raised when SMTP is not properly configured."""
    pass


class SMTPVerificationEmailSender(VerificationEmailSender):
    """Sends the verification link email through a plain SMTP relay"""

    def __init__(
        self,
        host: Optional[str],
        port: int,
        user: Optional[str],
        password: Optional[str],
        from_email: Optional[str],
        links: VerificationLinkBuilder,
        from_name: str = "Lead Engagement",
        use_tls: bool = True,
        timeout: float = 10.0,
        template: MessageTemplate = VERIFICATION_EMAIL
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.use_tls = use_tls
        self.timeout = timeout
        self._links = links
        self._template = template

        if not self.is_configured():
            logger.warning("SMTP not fully configured - verification emails will fail")

    def is_configured(self) -> bool:
        return all([self.host, self.user, self.password, self.from_email])

    def _validate_config(self) -> None:
        if not self.is_configured():
            raise SMTPConfigError(
                "SMTP not configured. Required environment variables: "
                "SMTP_HOST, SMTP_USER, SMTP_PASSWORD, SMTP_FROM_EMAIL"
            )

    def build_message(self, lead: Lead) -> MIMEMultipart:
        variables = {
            "name": lead.first_name or "there",
            "link": self._links.build(lead),
            "company": self.from_name,
        }
        message = MIMEMultipart("alternative")
        message.attach(MIMEText(self._template.render(**variables), "plain", "utf-8"))
        message["Subject"] = self._template.render_subject(**variables)
        message["From"] = formataddr((self.from_name, self.from_email))
        message["To"] = lead.verification_email
        return message

    def _send_blocking(self, to: str, payload: str) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                context = ssl.create_default_context()
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
            server.login(self.user, self.password)
            server.sendmail(self.from_email, [to], payload)

    async def send_verification_email(self, lead: Lead) -> None:
        to = lead.verification_email
        if not to:
            raise PermanentCollaboratorError(f"Lead {lead.id} has no email address", collaborator="smtp")
        try:
            self._validate_config()
        except SMTPConfigError as e:
            raise PermanentCollaboratorError(str(e), collaborator="smtp")

        message = self.build_message(lead)
        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, self._send_blocking, to, message.as_string())
        except smtplib.SMTPRecipientsRefused as e:
            raise PermanentCollaboratorError(f"Recipient refused: {e}", collaborator="smtp")
        except smtplib.SMTPAuthenticationError as e:
            raise PermanentCollaboratorError(
                f"SMTP authentication failed: {e}", collaborator="smtp", status_code=e.smtp_code
            )
        except smtplib.SMTPResponseException as e:
            error_class = PermanentCollaboratorError if e.smtp_code >= 500 else TransientCollaboratorError
            raise error_class(f"SMTP error {e.smtp_code}: {e.smtp_error}", collaborator="smtp", status_code=e.smtp_code)
        except (smtplib.SMTPException, OSError) as e:
            raise TransientCollaboratorError(f"SMTP send failed: {e}", collaborator="smtp")

        logger.info(f"Verification email sent to {to}")
