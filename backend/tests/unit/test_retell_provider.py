"""
Unit Tests for the Retell call provider
HTTP calls are served by httpx.MockTransport
"""
import json

import httpx
import pytest

from engagement.domain.errors import PermanentCollaboratorError, TransientCollaboratorError
from engagement.domain.interfaces.call_provider import CallRequest
from engagement.domain.models.lead import JobType
from engagement.infrastructure.telephony.retell_provider import RetellCallProvider

BASE_URL = "https://api.retellai.com"


def make_provider(handler, **kwargs) -> RetellCallProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    return RetellCallProvider(api_key="key_test", client=client, **kwargs)


def make_request(**overrides) -> CallRequest:
    fields = dict(
        from_number="+15550000001",
        to_number="+15551234567",
        dynamic_variables={"lead_name": "Jane Doe"},
        metadata={"lead_id": "lead-1", "job_type": "initial"},
    )
    fields.update(overrides)
    return CallRequest(**fields)


class TestPlaceCall:

    @pytest.mark.asyncio
    async def test_success(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json={
                "call_id": "call_abc",
                "agent_id": "agent_1",
                "call_status": "registered",
            })

        provider = make_provider(handler)

        ref = await provider.place_call(make_request())

        assert ref.call_id == "call_abc"
        assert ref.agent_id == "agent_1"
        assert captured["path"] == "/v2/create-phone-call"
        assert captured["auth"] == "Bearer key_test"
        assert captured["body"] == {
            "from_number": "+15550000001",
            "to_number": "+15551234567",
            "retell_llm_dynamic_variables": {"lead_name": "Jane Doe"},
            "metadata": {"lead_id": "lead-1", "job_type": "initial"},
        }

    @pytest.mark.asyncio
    async def test_agent_override_is_sent(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json={"call_id": "call_abc"})

        provider = make_provider(handler)

        await provider.place_call(make_request(agent_override="agent_reminder"))

        assert captured["body"]["override_agent_id"] == "agent_reminder"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code, error", [
        (500, TransientCollaboratorError),
        (503, TransientCollaboratorError),
        (429, TransientCollaboratorError),
        (400, PermanentCollaboratorError),
        (404, PermanentCollaboratorError),
        (422, PermanentCollaboratorError),
    ])
    async def test_status_mapping(self, status_code, error):
        provider = make_provider(lambda request: httpx.Response(status_code, json={"error": "nope"}))

        with pytest.raises(error) as exc:
            await provider.place_call(make_request())

        assert exc.value.status_code == status_code
        assert exc.value.collaborator == "retell"

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        provider = make_provider(handler)

        with pytest.raises(TransientCollaboratorError):
            await provider.place_call(make_request())

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = make_provider(handler)

        with pytest.raises(TransientCollaboratorError):
            await provider.place_call(make_request())

    @pytest.mark.asyncio
    async def test_missing_call_id_is_permanent(self):
        provider = make_provider(lambda request: httpx.Response(201, json={"call_status": "registered"}))

        with pytest.raises(PermanentCollaboratorError):
            await provider.place_call(make_request())


class TestUpdatePrompt:

    @pytest.mark.asyncio
    async def test_patches_llm_prompt(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        provider = make_provider(
            handler,
            llm_id="llm_1",
            prompts={JobType.REMINDER: "Remind the lead to submit the form."},
        )

        await provider.update_prompt(JobType.REMINDER)

        assert captured == {
            "method": "PATCH",
            "path": "/update-retell-llm/llm_1",
            "body": {"general_prompt": "Remind the lead to submit the form."},
        }

    @pytest.mark.asyncio
    async def test_without_prompt_makes_no_request(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        provider = make_provider(handler, llm_id="llm_1")

        await provider.update_prompt(JobType.INITIAL)

        assert calls == []

    @pytest.mark.asyncio
    async def test_failure_is_mapped(self):
        provider = make_provider(
            lambda request: httpx.Response(502, text="bad gateway"),
            llm_id="llm_1",
            prompts={JobType.INITIAL: "Introduce the offer."},
        )

        with pytest.raises(TransientCollaboratorError):
            await provider.update_prompt(JobType.INITIAL)


def test_requires_api_key():
    with pytest.raises(ValueError):
        RetellCallProvider(api_key="")
