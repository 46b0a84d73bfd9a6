"""
Webhooks API Endpoints
Handles call lifecycle events pushed by the call provider
"""
import logging

from fastapi import APIRouter, Depends

from engagement.api.v1.dependencies import get_lifecycle
from engagement.domain.models.call_event import CallEvent
from engagement.domain.services.call_lifecycle import CallLifecycleHandler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/call-events")
async def call_event_webhook(
    event: CallEvent,
    lifecycle: CallLifecycleHandler = Depends(get_lifecycle)
):
    """
    Handle a call provider event (call_started / call_ended / call_analyzed).

    Always acknowledges once the payload parses; duplicates, unknown leads
    and processing failures are reported in the body, never as an error
    status, so the provider does not redeliver them.
    """
    logger.info(f"Call event webhook: event={event.event}, call_id={event.call.call_id}")

    result = await lifecycle.handle_event(event)

    return {
        "status": "ok",
        "event": result.event,
        "outcome": result.outcome.value,
        "call_id": result.call_id,
        "lead_id": result.lead_id,
    }
