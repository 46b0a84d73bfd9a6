"""
FastAPI Application Entry Point
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from engagement.api.v1.endpoints import health
from engagement.api.v1.routes import api_router
from engagement.core.config import get_settings
from engagement.core.container import Container, build_container
from engagement.workers.dispatcher_worker import DispatcherWorker

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    Build the application.

    A prebuilt container is attached immediately and left open on shutdown;
    otherwise the lifespan builds one from settings and owns it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan - startup and shutdown events.

        Startup:
        - Builds the container and loads job schedules into timers
        - Optionally runs the dispatcher tick loop in-process

        Shutdown:
        - Stops the tick loop
        - Closes provider clients
        """
        # ========================
        # STARTUP
        # ========================
        logger.info("Starting Lead Engagement Orchestrator...")

        owns_container = getattr(app.state, "container", None) is None
        if owns_container:
            app.state.container = build_container()
        active: Container = app.state.container
        await active.startup()

        worker_task = None
        worker = None
        if active.settings.run_dispatcher_in_api:
            worker = DispatcherWorker(active)
            worker_task = asyncio.create_task(worker.run())
            logger.info("Dispatcher tick loop running in-process")

        logger.info("Lead Engagement Orchestrator started successfully")

        yield  # Application is running

        # ========================
        # SHUTDOWN
        # ========================
        logger.info("Shutting down Lead Engagement Orchestrator...")

        if worker_task is not None:
            worker.running = False
            worker_task.cancel()
            await asyncio.gather(worker_task, return_exceptions=True)

        if owns_container:
            await active.shutdown()
            app.state.container = None

        logger.info("Lead Engagement Orchestrator shutdown complete")

    settings = container.settings if container else get_settings()

    app = FastAPI(
        title="Lead Engagement Orchestrator",
        description="Schedules outbound AI calls to leads and acts on the outcome of each call",
        version="1.0.0",
        lifespan=lifespan
    )
    if container is not None:
        app.state.container = container

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routes
    app.include_router(health.router)
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        return {"message": "Lead Engagement Orchestrator API", "status": "running"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
