"""
Groq LLM Provider Implementation
Single-shot extraction completions on Groq's chat API

Extraction wants deterministic, short JSON output:
- Low temperature (0.0-0.2)
- JSON mode so the reply is a bare object
"""
import logging
from typing import Optional

import groq
from groq import AsyncGroq

from engagement.domain.errors import PermanentCollaboratorError, TransientCollaboratorError
from engagement.domain.interfaces.llm_provider import LLMProvider

logger = logging.getLogger(__name__)


class GroqLLMProvider(LLMProvider):
    """
    Groq LLM provider

    Recommended models for extraction:
    - llama-3.3-70b-versatile: best quality/speed balance
    - llama-3.1-8b-instant: fastest, fine for short transcripts
    """

    def __init__(
        self,
        api_key: str,
        model: str = "llama-3.3-70b-versatile",
        temperature: float = 0.0,
        max_tokens: int = 300,
        timeout: float = 10.0,
        client: Optional[AsyncGroq] = None
    ):
        if not api_key and client is None:
            raise ValueError("Groq API key not configured")
        self._client = client or AsyncGroq(api_key=api_key, timeout=timeout, max_retries=0)
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False
    ) -> str:
        if not self._client:
            raise RuntimeError("Groq client already cleaned up")

        temperature = temperature if temperature is not None else self._temperature
        max_tokens = max_tokens if max_tokens is not None else self._max_tokens

        # Validate temperature (Groq accepts 0.0-2.0)
        if not 0.0 <= temperature <= 2.0:
            raise ValueError(f"Temperature must be between 0.0 and 2.0, got {temperature}")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=False,
                **kwargs
            )
        except (groq.APITimeoutError, groq.APIConnectionError) as e:
            raise TransientCollaboratorError(f"Groq unreachable: {e}", collaborator=self.name)
        except groq.APIStatusError as e:
            if e.status_code >= 500 or e.status_code == 429:
                raise TransientCollaboratorError(
                    f"Groq returned {e.status_code}: {e.message}",
                    collaborator=self.name,
                    status_code=e.status_code,
                )
            raise PermanentCollaboratorError(
                f"Groq rejected request ({e.status_code}): {e.message}",
                collaborator=self.name,
                status_code=e.status_code,
            )

        if not completion.choices:
            return ""
        content = completion.choices[0].message.content or ""
        logger.debug(f"Groq completion ({len(content)} chars) with {self._model}")
        return content

    async def cleanup(self) -> None:
        """Release resources"""
        if self._client:
            await self._client.close()
            self._client = None

    @property
    def name(self) -> str:
        """Provider name"""
        return "groq"
