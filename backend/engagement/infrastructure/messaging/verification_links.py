"""
Verification Links
Signed, expiring links that identify a lead on the verification form.

Tokens are Fernet (AES-128-CBC + HMAC-SHA256) encrypted lead ids, so the
link carries no readable personal data. MultiFernet allows key rotation:
new tokens use the first key, old ones still verify with any key.
"""
import logging
from typing import List, Optional
from urllib.parse import urlencode

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from engagement.domain.models.lead import Lead

logger = logging.getLogger(__name__)


class LinkTokenError(Exception):
    """Raised when a verification token is invalid or expired"""
    pass


class VerificationLinkBuilder:
    """Builds and reads verification link tokens"""

    def __init__(
        self,
        base_url: str,
        key: Optional[str] = None,
        old_keys: Optional[List[str]] = None,
        ttl_seconds: int = 7 * 24 * 3600
    ):
        if not key:
            logger.warning(
                "LINK_ENCRYPTION_KEY not set! "
                "Using temporary key - links will not survive a restart"
            )
            key = Fernet.generate_key().decode()

        keys = [Fernet(key.encode())]
        keys.extend(Fernet(k.encode()) for k in (old_keys or []) if k)
        self._fernet = MultiFernet(keys)
        self._base_url = base_url
        self._ttl = ttl_seconds

    def token_for(self, lead: Lead) -> str:
        return self._fernet.encrypt(lead.id.encode()).decode()

    def build(self, lead: Lead) -> str:
        separator = "&" if "?" in self._base_url else "?"
        return f"{self._base_url}{separator}{urlencode({'token': self.token_for(lead)})}"

    def read_token(self, token: str) -> str:
        """
        Lead id carried by a token.

        Raises:
            LinkTokenError: token tampered with, signed by an unknown key, or expired
        """
        try:
            return self._fernet.decrypt(token.encode(), ttl=self._ttl).decode()
        except InvalidToken:
            raise LinkTokenError("Invalid or expired verification token")

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()
