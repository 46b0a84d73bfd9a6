"""
Shared fixtures: frozen clock, in-memory repositories and mocked collaborators
"""
import json
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from engagement.core.config import Settings
from engagement.core.container import Repositories, build_container
from engagement.domain.interfaces.call_provider import CallRef
from engagement.domain.models.lead import Lead
from engagement.domain.services.clock import FrozenClock
from engagement.domain.services.dedup_cache import TTLDedupCache
from engagement.domain.services.followup_scheduler import FollowUpScheduler
from engagement.domain.services.verification_notifier import VerificationNotifier
from engagement.infrastructure.storage.memory import (
    InMemoryCallRecordRepository,
    InMemoryJobScheduleRepository,
    InMemoryLeadRepository,
    InMemoryTranscriptRepository,
)

# Wednesday
START = datetime(2025, 1, 15, 10, 0)


def make_lead(**overrides) -> Lead:
    fields = {
        "id": "lead-1",
        "phone": "+15551234567",
        "first_name": "Jane",
        "last_name": "Doe",
        "created_at": datetime(2025, 1, 1, 9, 0),
    }
    fields.update(overrides)
    return Lead(**fields)


def make_call_provider(call_id: str = "call-1") -> MagicMock:
    provider = MagicMock()
    provider.name = "mock"
    provider.place_call = AsyncMock(return_value=CallRef(call_id=call_id, agent_id="agent-1"))
    provider.update_prompt = AsyncMock()
    provider.close = AsyncMock()
    return provider


def make_llm(reply: dict = None) -> MagicMock:
    llm = MagicMock()
    llm.name = "mock"
    llm.complete = AsyncMock(return_value=json.dumps(reply or {}))
    llm.cleanup = AsyncMock()
    return llm


def make_sender(method: str) -> MagicMock:
    sender = MagicMock()
    setattr(sender, method, AsyncMock())
    return sender


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def lead_repo():
    return InMemoryLeadRepository()


@pytest.fixture
def call_record_repo():
    return InMemoryCallRecordRepository()


@pytest.fixture
def transcript_repo():
    return InMemoryTranscriptRepository()


@pytest.fixture
def schedule_repo():
    return InMemoryJobScheduleRepository()


@pytest.fixture
def scheduler(schedule_repo, lead_repo, clock):
    return FollowUpScheduler(schedules=schedule_repo, leads=lead_repo, clock=clock)


@pytest.fixture
def email_sender():
    return make_sender("send_verification_email")


@pytest.fixture
def sms_sender():
    return make_sender("send_verification_sms")


@pytest.fixture
def notifier(email_sender, sms_sender, clock):
    return VerificationNotifier(
        email_sender=email_sender,
        sms_sender=sms_sender,
        dedup=TTLDedupCache(60, clock, name="notifications"),
    )


def make_settings(**overrides) -> Settings:
    fields = {
        "_env_file": None,
        "storage_backend": "memory",
        "from_phone_number": "+15550000001",
        "call_pacing_seconds": 0.5,
        "tick_interval_seconds": 60.0,
        "run_dispatcher_in_api": False,
        "retell_agent_id": None,
        "hubspot_access_token": None,
    }
    fields.update(overrides)
    return Settings(**fields)


def make_container(clock, llm_reply: dict = None, settings: Settings = None, **overrides):
    """Fully wired container over in-memory storage and mocked collaborators."""
    fields = {
        "settings": settings or make_settings(),
        "clock": clock,
        "repositories": Repositories(
            leads=InMemoryLeadRepository(),
            call_records=InMemoryCallRecordRepository(),
            transcripts=InMemoryTranscriptRepository(),
            schedules=InMemoryJobScheduleRepository(),
        ),
        "call_provider": make_call_provider(),
        "llm": make_llm(llm_reply),
        "email_sender": make_sender("send_verification_email"),
        "sms_sender": make_sender("send_verification_sms"),
    }
    fields.update(overrides)
    return build_container(**fields)
