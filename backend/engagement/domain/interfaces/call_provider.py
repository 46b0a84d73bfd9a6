"""
Call Provider Interface
Abstract base class for outbound AI voice call providers
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field

from engagement.domain.models.lead import JobType


class CallRequest(BaseModel):
    """Outbound call placement request"""
    from_number: str
    to_number: str
    agent_override: Optional[str] = None
    dynamic_variables: Dict[str, str] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class CallRef(BaseModel):
    """Provider reference to a placed call"""
    call_id: str
    agent_id: Optional[str] = None
    call_status: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


class CallProvider(ABC):
    """Abstract base class for call providers"""

    @abstractmethod
    async def place_call(self, request: CallRequest) -> CallRef:
        """
        Place an outbound call.

        Raises:
            TransientCollaboratorError: network failure, timeout, 5xx
            PermanentCollaboratorError: rejected request (4xx)
        """
        pass

    @abstractmethod
    async def update_prompt(self, job_type: JobType) -> None:
        """Push the conversation script for a job type to the provider's agent."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release resources"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name"""
        pass
