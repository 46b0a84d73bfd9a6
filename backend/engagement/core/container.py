"""
Composition Root
Builds the orchestrator object graph from settings.

Every service takes its collaborators as constructor parameters; this is the
only place that knows which concrete adapters are in use. Tests pass their
own collaborators through the keyword overrides.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from engagement.core.config import ConfigManager, Settings, get_settings
from engagement.domain.interfaces.call_provider import CallProvider
from engagement.domain.interfaces.crm_provider import CRMProvider
from engagement.domain.interfaces.llm_provider import LLMProvider
from engagement.domain.interfaces.notification_provider import (
    VerificationEmailSender,
    VerificationSmsSender,
)
from engagement.domain.models.lead import JobType
from engagement.domain.interfaces.repositories import (
    CallRecordRepository,
    JobScheduleRepository,
    LeadRepository,
    TranscriptRepository,
)
from engagement.domain.services.call_lifecycle import CallLifecycleHandler
from engagement.domain.services.clock import Clock, SystemClock
from engagement.domain.services.dedup_cache import TTLDedupCache
from engagement.domain.services.dispatcher import Dispatcher
from engagement.domain.services.followup_scheduler import FollowUpScheduler
from engagement.domain.services.outcome_interpreter import OutcomeInterpreter
from engagement.domain.services.outcome_resolver import OutcomeResolver
from engagement.domain.services.verification_notifier import VerificationNotifier

logger = logging.getLogger(__name__)


@dataclass
class Repositories:
    leads: LeadRepository
    call_records: CallRecordRepository
    transcripts: TranscriptRepository
    schedules: JobScheduleRepository


@dataclass
class Container:
    """Wired services plus the collaborators they share"""
    settings: Settings
    clock: Clock
    repositories: Repositories
    call_provider: CallProvider
    llm: LLMProvider
    crm: Optional[CRMProvider]
    scheduler: FollowUpScheduler
    notifier: VerificationNotifier
    dispatcher: Dispatcher
    lifecycle: CallLifecycleHandler

    async def startup(self) -> None:
        await self.scheduler.initialize()

    async def shutdown(self) -> None:
        for name, closer in (
            ("call provider", self.call_provider.close),
            ("llm", self.llm.cleanup),
            ("crm", getattr(self.crm, "close", None)),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.error(f"Error closing {name}: {e}")


def build_repositories(settings: Settings) -> Repositories:
    if settings.storage_backend == "supabase":
        from supabase import create_client
        from engagement.infrastructure.storage.supabase_repositories import (
            SupabaseCallRecordRepository,
            SupabaseJobScheduleRepository,
            SupabaseLeadRepository,
            SupabaseTranscriptRepository,
        )

        if not settings.supabase_url or not settings.supabase_service_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
        client = create_client(settings.supabase_url, settings.supabase_service_key)
        logger.info("Using Supabase storage")
        return Repositories(
            leads=SupabaseLeadRepository(client),
            call_records=SupabaseCallRecordRepository(client),
            transcripts=SupabaseTranscriptRepository(client),
            schedules=SupabaseJobScheduleRepository(client),
        )

    if settings.storage_backend != "memory":
        raise RuntimeError(f"Unknown storage backend: {settings.storage_backend}")

    from engagement.infrastructure.storage.memory import (
        InMemoryCallRecordRepository,
        InMemoryJobScheduleRepository,
        InMemoryLeadRepository,
        InMemoryTranscriptRepository,
    )

    logger.warning("Using in-memory storage - data is lost on restart")
    return Repositories(
        leads=InMemoryLeadRepository(),
        call_records=InMemoryCallRecordRepository(),
        transcripts=InMemoryTranscriptRepository(),
        schedules=InMemoryJobScheduleRepository(),
    )


def build_container(
    settings: Optional[Settings] = None,
    config: Optional[ConfigManager] = None,
    clock: Optional[Clock] = None,
    repositories: Optional[Repositories] = None,
    call_provider: Optional[CallProvider] = None,
    llm: Optional[LLMProvider] = None,
    crm: Optional[CRMProvider] = None,
    email_sender: Optional[VerificationEmailSender] = None,
    sms_sender: Optional[VerificationSmsSender] = None
) -> Container:
    settings = settings or get_settings()
    config = config or ConfigManager(env=settings.environment)
    clock = clock or SystemClock(settings.timezone)
    repositories = repositories or build_repositories(settings)

    prompts = config.prompts()
    agent_overrides = config.agent_overrides()

    if call_provider is None:
        from engagement.infrastructure.telephony.retell_provider import RetellCallProvider

        if not settings.retell_api_key:
            raise RuntimeError("RETELL_API_KEY must be set")
        call_provider = RetellCallProvider(
            api_key=settings.retell_api_key,
            base_url=settings.retell_base_url,
            llm_id=settings.retell_llm_id,
            prompts=prompts,
            timeout=settings.http_timeout_seconds,
        )

    if llm is None:
        from engagement.infrastructure.llm.groq import GroqLLMProvider

        if not settings.groq_api_key:
            raise RuntimeError("GROQ_API_KEY must be set")
        llm = GroqLLMProvider(
            api_key=settings.groq_api_key,
            model=settings.groq_model,
            timeout=settings.http_timeout_seconds,
        )

    if crm is None and settings.hubspot_access_token:
        from engagement.infrastructure.crm.hubspot import HubSpotCRMProvider

        crm = HubSpotCRMProvider(
            access_token=settings.hubspot_access_token,
            status_property=settings.hubspot_status_property,
            timeout=settings.http_timeout_seconds,
        )

    if email_sender is None or sms_sender is None:
        from engagement.infrastructure.messaging.verification_links import VerificationLinkBuilder

        links = VerificationLinkBuilder(
            base_url=settings.verification_url,
            key=settings.link_encryption_key,
            old_keys=settings.old_link_keys,
        )
        if email_sender is None:
            from engagement.infrastructure.messaging.smtp_email import SMTPVerificationEmailSender

            email_sender = SMTPVerificationEmailSender(
                host=settings.smtp_host,
                port=settings.smtp_port,
                user=settings.smtp_user,
                password=settings.smtp_password,
                from_email=settings.smtp_from_email,
                from_name=settings.smtp_from_name,
                use_tls=settings.smtp_use_tls,
                timeout=settings.http_timeout_seconds,
                links=links,
            )
        if sms_sender is None:
            from engagement.infrastructure.messaging.vonage_sms import VonageVerificationSmsSender

            sms_sender = VonageVerificationSmsSender(
                api_key=settings.vonage_api_key,
                api_secret=settings.vonage_api_secret,
                from_number=settings.vonage_from_number,
                links=links,
            )

    scheduler = FollowUpScheduler(
        schedules=repositories.schedules,
        leads=repositories.leads,
        clock=clock,
        defaults=config.job_schedule_defaults(),
    )
    notifier = VerificationNotifier(
        email_sender=email_sender,
        sms_sender=sms_sender,
        dedup=TTLDedupCache(settings.notification_dedup_seconds, clock, name="notifications"),
    )

    if settings.retell_agent_id:
        for job_type in JobType:
            agent_overrides.setdefault(job_type, settings.retell_agent_id)

    dispatcher = Dispatcher(
        leads=repositories.leads,
        call_records=repositories.call_records,
        transcripts=repositories.transcripts,
        call_provider=call_provider,
        scheduler=scheduler,
        clock=clock,
        from_numbers=settings.from_numbers,
        crm=crm,
        agent_overrides=agent_overrides,
        call_pacing_seconds=settings.call_pacing_seconds,
        reminder_interval_days=settings.reminder_interval_days,
    )
    lifecycle = CallLifecycleHandler(
        leads=repositories.leads,
        call_records=repositories.call_records,
        transcripts=repositories.transcripts,
        interpreter=OutcomeInterpreter(llm),
        resolver=OutcomeResolver(
            busy_offset_days=settings.busy_offset_days,
            fallback_hour=settings.fallback_hour,
        ),
        scheduler=scheduler,
        notifier=notifier,
        dedup=TTLDedupCache(settings.event_dedup_seconds, clock, name="call-events"),
        clock=clock,
        crm=crm,
    )

    if not settings.from_numbers:
        logger.warning("FROM_PHONE_NUMBER is empty - calls will fail until a caller id is configured")

    return Container(
        settings=settings,
        clock=clock,
        repositories=repositories,
        call_provider=call_provider,
        llm=llm,
        crm=crm,
        scheduler=scheduler,
        notifier=notifier,
        dispatcher=dispatcher,
        lifecycle=lifecycle,
    )
