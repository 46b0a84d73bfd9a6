"""
API Dependencies
Shared dependencies for reaching the wired services
"""
from fastapi import Depends, Request

from engagement.core.container import Container
from engagement.domain.services.call_lifecycle import CallLifecycleHandler
from engagement.domain.services.dispatcher import Dispatcher
from engagement.domain.services.followup_scheduler import FollowUpScheduler


def get_container(request: Request) -> Container:
    """
    Get the application container.

    Raises:
        RuntimeError: If the application lifespan has not built a container
    """
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError(
            "Application container is not initialized. "
            "Start the app through its lifespan."
        )
    return container


def get_lifecycle(container: Container = Depends(get_container)) -> CallLifecycleHandler:
    return container.lifecycle


def get_scheduler(container: Container = Depends(get_container)) -> FollowUpScheduler:
    return container.scheduler


def get_dispatcher(container: Container = Depends(get_container)) -> Dispatcher:
    return container.dispatcher
