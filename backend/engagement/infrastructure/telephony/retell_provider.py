"""
Retell Call Provider
Outbound AI voice calls through the Retell REST API

Endpoints used:
    POST  {base}/v2/create-phone-call
    PATCH {base}/update-retell-llm/{llm_id}
"""
import logging
from typing import Dict, Optional

import httpx

from engagement.domain.errors import PermanentCollaboratorError
from engagement.domain.interfaces.call_provider import CallProvider, CallRef, CallRequest
from engagement.domain.models.lead import JobType
from engagement.infrastructure.http_errors import raise_for_status, raise_transport_error

logger = logging.getLogger(__name__)


class RetellCallProvider(CallProvider):
    """
    Retell voice agent client.

    The conversation script for a job type is pushed to the agent's LLM
    before a batch (update_prompt) and per-call context travels as
    dynamic variables.
    """

    DEFAULT_BASE_URL = "https://api.retellai.com"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        llm_id: Optional[str] = None,
        prompts: Optional[Dict[JobType, str]] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        if not api_key:
            raise ValueError("Retell API key not configured")
        self._llm_id = llm_id
        self._prompts = prompts or {}
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
        )
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    @property
    def name(self) -> str:
        return "retell"

    async def place_call(self, request: CallRequest) -> CallRef:
        if not request.to_number:
            raise PermanentCollaboratorError("No phone number provided for the call", collaborator=self.name)

        body = {
            "from_number": request.from_number,
            "to_number": request.to_number,
            "retell_llm_dynamic_variables": request.dynamic_variables,
            "metadata": request.metadata,
        }
        if request.agent_override:
            body["override_agent_id"] = request.agent_override

        logger.info(
            f"Placing call {request.from_number} -> {request.to_number[:6]}... "
            f"(lead={request.metadata.get('lead_id')})"
        )

        try:
            response = await self._client.post("/v2/create-phone-call", json=body, headers=self._headers)
        except httpx.HTTPError as e:
            raise_transport_error(e, self.name)

        raise_for_status(response, self.name)

        data = response.json()
        call_id = data.get("call_id")
        if not call_id:
            raise PermanentCollaboratorError(
                "Retell response did not include a call_id",
                collaborator=self.name,
                status_code=response.status_code,
            )

        return CallRef(
            call_id=call_id,
            agent_id=data.get("agent_id"),
            call_status=data.get("call_status"),
            raw=data,
        )

    async def update_prompt(self, job_type: JobType) -> None:
        prompt = self._prompts.get(job_type)
        if not prompt or not self._llm_id:
            logger.warning(f"No prompt or LLM id configured for {job_type.value}, skipping prompt update")
            return

        try:
            response = await self._client.patch(
                f"/update-retell-llm/{self._llm_id}",
                json={"general_prompt": prompt},
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise_transport_error(e, self.name)

        raise_for_status(response, self.name)
        logger.info(f"Updated agent prompt for {job_type.value}")

    async def close(self) -> None:
        await self._client.aclose()
