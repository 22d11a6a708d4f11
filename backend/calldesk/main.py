"""
FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from calldesk.api.v1.routes import api_router
from calldesk.core.config import ConfigManager, get_settings
from calldesk.domain.services.call_actions import CallActionService
from calldesk.workers.worklist_worker import WorklistWorker, build_worklist

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - startup and shutdown events.

    Startup:
    - Builds stores, notification sink and worklist from configuration
    - Loads the worklist and starts the refresh worker

    Shutdown:
    - Cancels the worker and in-flight fetches
    - Closes store connections
    """
    logger.info("Starting Calldesk...")

    config = ConfigManager(settings.environment)
    worklist = build_worklist(settings, config)
    worker = WorklistWorker(worklist, config.get_scheduler_config())
    await worker.start()

    app.state.worklist_worker = worker
    app.state.call_actions = CallActionService(worklist)
    logger.info("Calldesk started successfully")

    yield  # Application is running

    logger.info("Shutting down Calldesk...")
    try:
        await worker.shutdown()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")
    app.state.worklist_worker = None
    app.state.call_actions = None
    logger.info("Calldesk shutdown complete")


app = FastAPI(
    title="Calldesk",
    description="Call scheduling and priority worklist for sales outreach",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {"message": "Calldesk API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns basic health status and worker statistics.
    """
    health = {"status": "healthy"}

    worker = getattr(app.state, "worklist_worker", None)
    if worker is None:
        health["worker"] = "not started"
    else:
        health["worker"] = worker.get_stats()

    return health


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
