"""
CRM Provider Interface
Best-effort lead sync target
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict


class CRMLead(BaseModel):
    """Lead as stored in the CRM"""
    model_config = ConfigDict(extra="allow")

    id: str
    phone: Optional[str] = None
    email: Optional[str] = None
    status: Optional[str] = None


class CRMProvider(ABC):
    """
    Abstract base class for CRM providers.

    Consumed best-effort: callers log failures and carry on.
    """

    @abstractmethod
    async def find_by_phone(self, phone: str) -> Optional[CRMLead]:
        """Find a CRM lead by phone number."""
        pass

    @abstractmethod
    async def create_lead(self, fields: Dict[str, Any]) -> CRMLead:
        """Create a CRM lead."""
        pass

    @abstractmethod
    async def update_status(self, crm_id: str, status: str) -> None:
        """Update the lead status in the CRM."""
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass
