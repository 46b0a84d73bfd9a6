"""
Job Schedules API Endpoints
Administrative view and upsert of the recurring calling windows
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError

from engagement.api.v1.dependencies import get_scheduler
from engagement.domain.models.job_schedule import JobSchedule, JobScheduleUpdate
from engagement.domain.models.lead import JobType
from engagement.domain.services.followup_scheduler import FollowUpScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/job-schedules", tags=["job-schedules"])


@router.get("/", response_model=List[JobSchedule])
async def list_job_schedules(scheduler: FollowUpScheduler = Depends(get_scheduler)):
    """List the schedule of every job type."""
    return await scheduler.list_schedules()


@router.get("/{job_type}", response_model=JobSchedule)
async def get_job_schedule(
    job_type: JobType,
    scheduler: FollowUpScheduler = Depends(get_scheduler)
):
    return await scheduler.get_schedule(job_type)


@router.put("/{job_type}", response_model=JobSchedule)
async def upsert_job_schedule(
    job_type: JobType,
    update: JobScheduleUpdate,
    scheduler: FollowUpScheduler = Depends(get_scheduler)
):
    """
    Create or replace the schedule for a job type.

    The running timer for the job type is replaced atomically: after the
    call returns there is exactly one timer if the schedule is enabled with
    a start time, and none otherwise.
    """
    try:
        schedule = await scheduler.upsert_job_schedule(job_type, update)
    except (ValidationError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    logger.info(
        f"Job schedule {job_type.value} updated: enabled={schedule.enabled}, "
        f"window={schedule.start_time}-{schedule.end_time}"
    )
    return schedule
