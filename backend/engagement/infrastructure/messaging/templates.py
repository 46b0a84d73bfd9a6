"""
Verification Message Templates
Text for the verification link email and SMS.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class MessageTemplate:
    """Message template with content and metadata."""
    name: str
    content: str
    required_vars: List[str]
    subject: Optional[str] = None
    max_length: Optional[int] = None

    def render(self, **kwargs) -> str:
        """
        Render the template with provided variables.

        Raises:
            ValueError: If required variables are missing
        """
        missing = [var for var in self.required_vars if var not in kwargs]
        if missing:
            raise ValueError(f"Missing required template variables: {missing}")

        try:
            rendered = self.content.format(**kwargs)
        except KeyError as e:
            raise ValueError(f"Template variable not provided: {e}")

        if self.max_length and len(rendered) > self.max_length:
            logger.warning(
                f"Template '{self.name}' rendered to {len(rendered)} chars "
                f"(exceeds {self.max_length})"
            )
        return rendered

    def render_subject(self, **kwargs) -> str:
        return (self.subject or "").format(**kwargs)


VERIFICATION_SMS = MessageTemplate(
    name="Verification Link (SMS)",
    content="Hi {name}, as promised here is your link to confirm your details: {link}",
    required_vars=["name", "link"],
    max_length=160,
)

VERIFICATION_EMAIL = MessageTemplate(
    name="Verification Link (Email)",
    subject="{company}: please confirm your details",
    content=(
        "Hi {name},\n\n"
        "Thanks for speaking with us. As discussed on the call, please use the link "
        "below to confirm your details:\n\n"
        "{link}\n\n"
        "If you have any questions just reply to this email.\n\n"
        "{company}"
    ),
    required_vars=["name", "link", "company"],
)
