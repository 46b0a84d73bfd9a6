"""
Leads API Endpoints
Manual call triggering for a single lead
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from engagement.api.v1.dependencies import get_dispatcher
from engagement.domain.errors import UnknownLeadError
from engagement.domain.models.lead import JobType
from engagement.domain.services.dispatcher import Dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leads", tags=["leads"])


@router.post("/{lead_id}/call")
async def call_lead(
    lead_id: str,
    job_type: JobType = Query(default=JobType.INITIAL),
    dispatcher: Dispatcher = Depends(get_dispatcher)
):
    """
    Dispatch a call to one lead immediately, outside any schedule.

    Returns the dispatch result; a lead that is already being called or
    whose call could not be placed is reported with placed=false.
    """
    try:
        result = await dispatcher.call_lead_now(lead_id, job_type)
    except UnknownLeadError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Lead {lead_id} not found",
        )

    return {
        "lead_id": result.lead_id,
        "job_type": result.job_type.value,
        "placed": result.placed,
        "call_id": result.call_id,
        "error": result.error,
        "skipped": result.skipped,
    }
