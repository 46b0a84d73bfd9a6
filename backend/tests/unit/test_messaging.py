"""
Unit Tests for verification messaging
Templates, signed links, SMTP email and Vonage SMS senders
"""
import smtplib
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
from cryptography.fernet import Fernet

from engagement.domain.errors import PermanentCollaboratorError, TransientCollaboratorError
from engagement.infrastructure.messaging.smtp_email import SMTPVerificationEmailSender
from engagement.infrastructure.messaging.templates import VERIFICATION_EMAIL, VERIFICATION_SMS
from engagement.infrastructure.messaging.verification_links import LinkTokenError, VerificationLinkBuilder
from engagement.infrastructure.messaging.vonage_sms import VonageVerificationSmsSender

from conftest import make_lead

KEY = Fernet.generate_key().decode()


@pytest.fixture
def links():
    return VerificationLinkBuilder(base_url="https://example.com/verify", key=KEY)


def token_from(link: str) -> str:
    return parse_qs(urlparse(link).query)["token"][0]


class TestTemplates:

    def test_sms_renders_name_and_link(self):
        text = VERIFICATION_SMS.render(name="Jane", link="https://example.com/v?token=abc")

        assert "Jane" in text
        assert text.endswith("https://example.com/v?token=abc")

    def test_missing_variable_raises(self):
        with pytest.raises(ValueError, match="Missing required template variables"):
            VERIFICATION_EMAIL.render(name="Jane", link="https://example.com")

    def test_email_subject(self):
        assert VERIFICATION_EMAIL.render_subject(company="Acme") == "Acme: please confirm your details"


class TestVerificationLinks:

    def test_link_token_identifies_lead(self, links):
        link = links.build(make_lead(id="lead-42"))

        assert link.startswith("https://example.com/verify?token=")
        assert links.read_token(token_from(link)) == "lead-42"

    def test_token_hides_lead_id(self, links):
        assert "lead-42" not in links.token_for(make_lead(id="lead-42"))

    def test_existing_query_string_is_kept(self):
        builder = VerificationLinkBuilder(base_url="https://example.com/verify?src=call", key=KEY)

        link = builder.build(make_lead())

        assert link.startswith("https://example.com/verify?src=call&token=")

    def test_tampered_token_rejected(self, links):
        token = links.token_for(make_lead())

        with pytest.raises(LinkTokenError):
            links.read_token(token[:-4] + "AAAA")

    def test_foreign_key_rejected(self, links):
        other = VerificationLinkBuilder(base_url="https://example.com/verify", key=Fernet.generate_key().decode())

        with pytest.raises(LinkTokenError):
            links.read_token(other.token_for(make_lead()))

    def test_rotated_key_still_reads_old_tokens(self, links):
        old_token = links.token_for(make_lead(id="lead-7"))
        rotated = VerificationLinkBuilder(
            base_url="https://example.com/verify",
            key=VerificationLinkBuilder.generate_key(),
            old_keys=[KEY],
        )

        assert rotated.read_token(old_token) == "lead-7"

    def test_missing_key_uses_temporary_key(self):
        builder = VerificationLinkBuilder(base_url="https://example.com/verify")

        token = builder.token_for(make_lead())

        assert builder.read_token(token) == "lead-1"


class TestSMTPVerificationEmailSender:

    def make_sender(self, links, **overrides):
        fields = dict(
            host="smtp.example.com",
            port=587,
            user="mailer",
            password="secret",
            from_email="hello@acme.test",
            from_name="Acme",
            links=links,
        )
        fields.update(overrides)
        return SMTPVerificationEmailSender(**fields)

    def test_build_message(self, links):
        sender = self.make_sender(links)
        lead = make_lead(email="jane@example.com", contact_email="jane.work@example.com")

        message = sender.build_message(lead)

        assert message["To"] == "jane.work@example.com"
        assert message["Subject"] == "Acme: please confirm your details"
        assert "Acme" in message["From"]
        body = message.get_payload()[0].get_payload(decode=True).decode()
        assert "Hi Jane" in body
        assert "https://example.com/verify?token=" in body

    @pytest.mark.asyncio
    async def test_send(self, links):
        sender = self.make_sender(links)
        lead = make_lead(email="jane@example.com")

        with patch.object(sender, "_send_blocking") as send_blocking:
            await sender.send_verification_email(lead)

        to, payload = send_blocking.call_args.args
        assert to == "jane@example.com"
        assert "Subject: Acme: please confirm your details" in payload

    @pytest.mark.asyncio
    async def test_not_configured_is_permanent(self, links):
        sender = self.make_sender(links, host=None)

        with pytest.raises(PermanentCollaboratorError):
            await sender.send_verification_email(make_lead(email="jane@example.com"))

    @pytest.mark.asyncio
    async def test_no_address_is_permanent(self, links):
        sender = self.make_sender(links)

        with pytest.raises(PermanentCollaboratorError):
            await sender.send_verification_email(make_lead(email=None))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error, expected", [
        (smtplib.SMTPRecipientsRefused({}), PermanentCollaboratorError),
        (smtplib.SMTPAuthenticationError(535, b"bad credentials"), PermanentCollaboratorError),
        (smtplib.SMTPResponseException(550, b"mailbox unavailable"), PermanentCollaboratorError),
        (smtplib.SMTPResponseException(451, b"try again later"), TransientCollaboratorError),
        (smtplib.SMTPServerDisconnected("gone"), TransientCollaboratorError),
        (ConnectionRefusedError("refused"), TransientCollaboratorError),
    ])
    async def test_error_mapping(self, links, error, expected):
        sender = self.make_sender(links)

        with patch.object(sender, "_send_blocking", side_effect=error):
            with pytest.raises(expected):
                await sender.send_verification_email(make_lead(email="jane@example.com"))


def vonage_response(status: str, error_text: str = None) -> SimpleNamespace:
    return SimpleNamespace(messages=[SimpleNamespace(status=status, error_text=error_text, message_id="msg-1")])


class TestVonageVerificationSmsSender:

    def make_sender(self, links, client=None, **overrides):
        if client is None:
            client = MagicMock()
            client.sms.send.return_value = vonage_response("0")
        fields = dict(api_key=None, api_secret=None, from_number="Acme", links=links, client=client)
        fields.update(overrides)
        return VonageVerificationSmsSender(**fields), client

    @pytest.mark.asyncio
    async def test_send(self, links):
        sender, client = self.make_sender(links)
        lead = make_lead(contact_phone="(555) 987-6543")

        await sender.send_verification_sms(lead)

        message = client.sms.send.call_args.args[0]
        assert message.to == "15559876543"
        assert "Hi Jane" in message.text
        assert "https://example.com/verify?token=" in message.text

    @pytest.mark.asyncio
    async def test_not_configured_is_permanent(self, links):
        sender = VonageVerificationSmsSender(api_key=None, api_secret=None, from_number="Acme", links=links)

        with pytest.raises(PermanentCollaboratorError):
            await sender.send_verification_sms(make_lead())

    @pytest.mark.asyncio
    async def test_missing_from_number_is_permanent(self, links):
        sender, _ = self.make_sender(links, from_number=None)

        with pytest.raises(PermanentCollaboratorError):
            await sender.send_verification_sms(make_lead())

    @pytest.mark.asyncio
    async def test_invalid_destination_is_permanent(self, links):
        sender, client = self.make_sender(links)

        with pytest.raises(PermanentCollaboratorError):
            await sender.send_verification_sms(make_lead(phone="12"))

        client.sms.send.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, expected", [
        ("1", TransientCollaboratorError),
        ("5", TransientCollaboratorError),
        ("2", PermanentCollaboratorError),
        ("6", PermanentCollaboratorError),
    ])
    async def test_status_mapping(self, links, status, expected):
        client = MagicMock()
        client.sms.send.return_value = vonage_response(status, "rejected")
        sender, _ = self.make_sender(links, client=client)

        with pytest.raises(expected):
            await sender.send_verification_sms(make_lead())

    @pytest.mark.asyncio
    async def test_request_failure_is_transient(self, links):
        client = MagicMock()
        client.sms.send.side_effect = RuntimeError("connection reset")
        sender, _ = self.make_sender(links, client=client)

        with pytest.raises(TransientCollaboratorError):
            await sender.send_verification_sms(make_lead())
