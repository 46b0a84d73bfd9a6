"""
Outcome Interpreter
Turns a call transcript into a fixed-shape OutcomeIntent using a language model.

The interpreter has no side effects: it sends one extraction request and
parses the reply. Anything it cannot decode becomes the "no information"
intent so the resolver falls back to a plain callback.
"""
import json
import logging
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError

from engagement.domain.errors import ParseError
from engagement.domain.interfaces.llm_provider import LLMProvider
from engagement.domain.models.outcome import OutcomeIntent

logger = logging.getLogger(__name__)


EXTRACTION_SYSTEM_PROMPT = (
    "You are an information extractor. Extract contact information, "
    "scheduling details, and busy status from conversations."
)

EXTRACTION_INSTRUCTION = """Analyze this conversation and extract:
1. The preferred contact method (must be "email", "phone", "both", "schedule", "busy", or "none")
2. The contact information (email address and/or phone number)
3. If scheduling is mentioned, extract the number of days for callback
4. Convert any specific time mentioned for callback into a 24-hour format (e.g., "6 PM" to "18:00")
5. Whether the person asked for the link to be sent again
6. Is the person busy or wants to reschedule (look for phrases like "busy", "can't talk", "call back", "another time")
7. If the person says they are not interested, set notInterested to true

Return ONLY a JSON object with these fields:
- preferredMethod: "email", "phone", "both", "schedule", "busy", or "none"
- contactInfo: {
    email: the email address or null,
    phone: the phone number or null
  }
- scheduleDays: number of days for callback or null
- specificTime: the specific time mentioned for callback in 24-hour format or null
- resentLink: boolean
- isBusy: boolean (true if person indicates they are busy or want to reschedule)
- notInterested: boolean (true if the person indicates they are not interested)
Conversation:
{transcript}"""

# First "{" through last "}", across newlines
_BRACED = re.compile(r"\{[\s\S]*\}")


def build_extraction_prompt(transcript: str) -> str:
    return EXTRACTION_INSTRUCTION.replace("{transcript}", transcript)


def _decode(raw: str) -> Dict[str, Any]:
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        data = None
    if isinstance(data, dict):
        return data

    # An object quoted as a JSON string decodes to its text
    text = data if isinstance(data, str) else (raw or "")
    match = _BRACED.search(text)
    if not match:
        raise ParseError(raw=raw or "")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError:
        raise ParseError(raw=raw)


def parse_intent(raw: str) -> OutcomeIntent:
    """
    Decode a model reply into an OutcomeIntent.

    Tries a direct JSON parse, then the brace-delimited substring whenever
    the direct parse does not yield an object.

    Raises:
        ParseError: neither attempt yields a JSON object of the expected shape
    """
    data = _decode(raw)
    try:
        return OutcomeIntent.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Response does not match the intent schema: {e}", raw=raw)


class OutcomeInterpreter:
    """Single-shot transcript extraction"""

    def __init__(
        self,
        llm: LLMProvider,
        temperature: float = 0.0,
        max_tokens: int = 300
    ):
        self._llm = llm
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def interpret(self, transcript: Optional[str]) -> OutcomeIntent:
        """
        Extract the lead's intent from a transcript.

        Returns the "no information" intent for empty transcripts and for
        replies that cannot be parsed. Collaborator failures from the model
        propagate to the caller.
        """
        if not transcript or not transcript.strip():
            return OutcomeIntent.no_information()

        raw = await self._llm.complete(
            build_extraction_prompt(transcript),
            system_prompt=EXTRACTION_SYSTEM_PROMPT,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            json_mode=True,
        )

        try:
            intent = parse_intent(raw)
        except ParseError as e:
            logger.warning(f"Could not parse extraction reply ({e.message}): {e.raw[:200]!r}")
            return OutcomeIntent.no_information()

        logger.info(
            f"Interpreted outcome: method={intent.preferred_method.value} "
            f"busy={intent.is_busy} not_interested={intent.not_interested} "
            f"resent_link={intent.resent_link} days={intent.schedule_days} "
            f"time={intent.specific_time}"
        )
        return intent
