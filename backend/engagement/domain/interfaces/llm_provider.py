"""
LLM Provider Interface
Abstract base class for language-model extraction providers
"""
from abc import ABC, abstractmethod
from typing import Optional


class LLMProvider(ABC):
    """Abstract base class for Language Model providers"""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False
    ) -> str:
        """
        Run a single, non-streaming completion.

        Args:
            prompt: User message
            system_prompt: System instructions
            temperature: Randomness override
            max_tokens: Max response length override
            json_mode: Ask the provider to return a JSON object

        Returns:
            str: Raw response text
        """
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Release resources"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name"""
        pass
