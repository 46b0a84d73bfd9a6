"""
HubSpot CRM Provider
Best-effort lead sync against the HubSpot contacts API.

Authenticates with a private app access token (HUBSPOT_ACCESS_TOKEN).
The lead's campaign status is written to a custom contact property.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from engagement.domain.interfaces.crm_provider import CRMLead, CRMProvider
from engagement.infrastructure.http_errors import raise_for_status, raise_transport_error

logger = logging.getLogger(__name__)


class HubSpotCRMProvider(CRMProvider):
    """
    HubSpot contacts as CRM leads.

    Required scopes:
    - crm.objects.contacts.read
    - crm.objects.contacts.write
    """

    API_BASE_URL = "https://api.hubapi.com/crm/v3"
    CONTACT_PROPERTIES = ["email", "firstname", "lastname", "phone"]

    def __init__(
        self,
        access_token: str,
        status_property: str = "engagement_status",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        if not access_token:
            raise ValueError("HubSpot access token not configured")
        self._status_property = status_property
        self._client = client or httpx.AsyncClient(base_url=self.API_BASE_URL, timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    @property
    def provider_name(self) -> str:
        return "hubspot"

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            raise_transport_error(e, self.provider_name)
        raise_for_status(response, self.provider_name)
        return response

    async def find_by_phone(self, phone: str) -> Optional[CRMLead]:
        """Find a contact by phone number."""
        response = await self._request(
            "POST",
            "/objects/contacts/search",
            json={
                "filterGroups": [{
                    "filters": [{
                        "propertyName": "phone",
                        "operator": "EQ",
                        "value": phone
                    }]
                }],
                "properties": self.CONTACT_PROPERTIES + [self._status_property],
                "limit": 1,
            },
        )
        results: List[Dict[str, Any]] = response.json().get("results", [])
        if not results:
            return None
        return self._parse_contact(results[0])

    async def create_lead(self, fields: Dict[str, Any]) -> CRMLead:
        """Create a contact. None values are omitted."""
        properties = {k: v for k, v in fields.items() if v is not None}
        response = await self._request("POST", "/objects/contacts", json={"properties": properties})
        contact = self._parse_contact(response.json())
        logger.info(f"Created HubSpot contact {contact.id}")
        return contact

    async def update_status(self, crm_id: str, status: str) -> None:
        await self._request(
            "PATCH",
            f"/objects/contacts/{crm_id}",
            json={"properties": {self._status_property: status}},
        )
        logger.debug(f"HubSpot contact {crm_id} status -> {status}")

    def _parse_contact(self, data: Dict[str, Any]) -> CRMLead:
        props = data.get("properties", {}) or {}
        return CRMLead(
            id=str(data.get("id")),
            phone=props.get("phone"),
            email=props.get("email"),
            status=props.get(self._status_property),
        )

    async def close(self) -> None:
        await self._client.aclose()
