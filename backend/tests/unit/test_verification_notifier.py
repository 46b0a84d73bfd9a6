"""
Unit Tests for the Verification Notifier
Per-lead, per-channel send dedup
"""
import pytest

from engagement.domain.errors import PermanentCollaboratorError, TransientCollaboratorError
from engagement.domain.models.outcome import SideEffect
from engagement.domain.services.dedup_cache import TTLDedupCache
from engagement.domain.services.verification_notifier import VerificationNotifier

from conftest import make_lead

BOTH = [SideEffect.SEND_VERIFICATION_EMAIL, SideEffect.SEND_VERIFICATION_SMS]


class TestVerificationNotifier:

    @pytest.mark.asyncio
    async def test_sends_each_channel(self, notifier, email_sender, sms_sender):
        lead = make_lead(email="jane@example.com")

        delivered = await notifier.execute(lead, BOTH)

        assert delivered == BOTH
        email_sender.send_verification_email.assert_awaited_once_with(lead)
        sms_sender.send_verification_sms.assert_awaited_once_with(lead)

    @pytest.mark.asyncio
    async def test_repeat_within_window_sends_once(self, notifier, email_sender, sms_sender, clock):
        lead = make_lead(email="jane@example.com")

        await notifier.execute(lead, BOTH)
        clock.advance(45)
        delivered = await notifier.execute(lead, BOTH)

        assert delivered == []
        assert email_sender.send_verification_email.await_count == 1
        assert sms_sender.send_verification_sms.await_count == 1

    @pytest.mark.asyncio
    async def test_sends_again_after_window(self, notifier, email_sender, clock):
        lead = make_lead(email="jane@example.com")

        await notifier.execute(lead, [SideEffect.SEND_VERIFICATION_EMAIL])
        clock.advance(60)
        delivered = await notifier.execute(lead, [SideEffect.SEND_VERIFICATION_EMAIL])

        assert delivered == [SideEffect.SEND_VERIFICATION_EMAIL]
        assert email_sender.send_verification_email.await_count == 2

    @pytest.mark.asyncio
    async def test_channels_are_deduplicated_independently(self, notifier, email_sender, sms_sender):
        lead = make_lead(email="jane@example.com")

        await notifier.execute(lead, [SideEffect.SEND_VERIFICATION_EMAIL])
        delivered = await notifier.execute(lead, [SideEffect.SEND_VERIFICATION_SMS])

        assert delivered == [SideEffect.SEND_VERIFICATION_SMS]

    @pytest.mark.asyncio
    async def test_leads_are_deduplicated_independently(self, notifier, email_sender):
        await notifier.execute(make_lead(id="a", email="a@example.com"), [SideEffect.SEND_VERIFICATION_EMAIL])
        await notifier.execute(make_lead(id="b", email="b@example.com"), [SideEffect.SEND_VERIFICATION_EMAIL])

        assert email_sender.send_verification_email.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_send_can_be_retried(self, notifier, email_sender):
        lead = make_lead(email="jane@example.com")
        email_sender.send_verification_email.side_effect = [
            TransientCollaboratorError("smtp down", collaborator="smtp"),
            None,
        ]

        first = await notifier.execute(lead, [SideEffect.SEND_VERIFICATION_EMAIL])
        second = await notifier.execute(lead, [SideEffect.SEND_VERIFICATION_EMAIL])

        assert first == []
        assert second == [SideEffect.SEND_VERIFICATION_EMAIL]

    @pytest.mark.asyncio
    async def test_one_channel_failing_does_not_block_other(self, notifier, sms_sender):
        lead = make_lead(email="jane@example.com")
        sms_sender.send_verification_sms.side_effect = PermanentCollaboratorError(
            "invalid destination", collaborator="vonage"
        )

        delivered = await notifier.execute(lead, BOTH)

        assert delivered == [SideEffect.SEND_VERIFICATION_EMAIL]

    @pytest.mark.asyncio
    async def test_missing_address_is_skipped(self, notifier, email_sender):
        lead = make_lead(email=None)

        delivered = await notifier.execute(lead, [SideEffect.SEND_VERIFICATION_EMAIL])

        assert delivered == []
        email_sender.send_verification_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_sender_is_skipped(self, sms_sender, clock):
        notifier = VerificationNotifier(email_sender=None, sms_sender=sms_sender, dedup=TTLDedupCache(60, clock))
        lead = make_lead(email="jane@example.com")

        delivered = await notifier.execute(lead, BOTH)

        assert delivered == [SideEffect.SEND_VERIFICATION_SMS]
