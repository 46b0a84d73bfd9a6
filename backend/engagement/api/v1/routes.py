"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter
from engagement.api.v1.endpoints import (
    webhooks,
    job_schedules,
    leads,
)

api_router = APIRouter()

# Provider callbacks
api_router.include_router(webhooks.router)

# Administration
api_router.include_router(job_schedules.router)
api_router.include_router(leads.router)
