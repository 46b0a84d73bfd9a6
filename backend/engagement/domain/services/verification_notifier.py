"""
Verification Notifier
Executes the resolver's email/SMS side effects behind a per-lead,
per-channel dedup window
"""
import logging
from typing import List, Optional

from engagement.domain.errors import CollaboratorError
from engagement.domain.interfaces.notification_provider import (
    VerificationEmailSender,
    VerificationSmsSender,
)
from engagement.domain.models.lead import Lead
from engagement.domain.models.outcome import SideEffect
from engagement.domain.services.dedup_cache import TTLDedupCache

logger = logging.getLogger(__name__)


class VerificationNotifier:
    """
    Sends verification links at most once per lead and channel per window.

    A failed send forgets its dedup entry so the next resolution for the lead
    can try again.
    """

    def __init__(
        self,
        email_sender: Optional[VerificationEmailSender],
        sms_sender: Optional[VerificationSmsSender],
        dedup: TTLDedupCache
    ):
        self._email = email_sender
        self._sms = sms_sender
        self._dedup = dedup

    @staticmethod
    def dedup_key(effect: SideEffect, lead_id: str) -> str:
        channel = "email" if effect == SideEffect.SEND_VERIFICATION_EMAIL else "sms"
        return f"{channel}:{lead_id}"

    async def execute(self, lead: Lead, effects: List[SideEffect]) -> List[SideEffect]:
        """
        Perform side effects in order.

        Returns:
            The effects that were actually delivered
        """
        delivered: List[SideEffect] = []

        for effect in effects:
            key = self.dedup_key(effect, lead.id)
            if not self._dedup.check_and_add(key):
                logger.info(f"Skipping {effect.value} for lead {lead.id}: already sent recently")
                continue

            try:
                sent = await self._send(effect, lead)
            except CollaboratorError as e:
                self._dedup.discard(key)
                logger.warning(
                    f"{effect.value} failed for lead {lead.id} "
                    f"({e.collaborator}, status={e.status_code}): {e.message}"
                )
                continue
            except Exception as e:
                self._dedup.discard(key)
                logger.error(f"{effect.value} failed for lead {lead.id}: {e}", exc_info=True)
                continue

            if sent:
                delivered.append(effect)
            else:
                self._dedup.discard(key)

        return delivered

    async def _send(self, effect: SideEffect, lead: Lead) -> bool:
        if effect == SideEffect.SEND_VERIFICATION_EMAIL:
            if not self._email or not lead.verification_email:
                logger.warning(f"No email sender or address for lead {lead.id}, skipping")
                return False
            await self._email.send_verification_email(lead)
            logger.info(f"Sent verification email to {lead.verification_email} (lead {lead.id})")
            return True

        if not self._sms or not lead.verification_phone:
            logger.warning(f"No SMS sender or phone for lead {lead.id}, skipping")
            return False
        await self._sms.send_verification_sms(lead)
        logger.info(f"Sent verification SMS to {lead.verification_phone} (lead {lead.id})")
        return True
