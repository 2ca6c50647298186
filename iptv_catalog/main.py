from contextlib import asynccontextmanager
import asyncio
import logging

from fastapi import FastAPI, Request

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from iptv_catalog.config import settings, setup_logging
from iptv_catalog.database import close_db, init_db
from iptv_catalog.dependencies import build_orchestrator, close_orchestrator, set_orchestrator
from iptv_catalog.services.scheduler_service import cleanup_scheduler

from iptv_catalog.routers import main_router, wait_for_background_tasks


setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Starting IPTV Catalog...")

    reload_task: asyncio.Task | None = None
    try:
        logger.info("Initializing database...")
        await init_db()

        orchestrator = build_orchestrator()
        set_orchestrator(orchestrator)

        logger.info("Starting scheduler...")
        cleanup_scheduler.start(orchestrator.cleanup)

        if settings.reload_playlist_on_startup:
            reload_task = asyncio.create_task(orchestrator.reload_saved_playlist())

        logger.info("IPTV Catalog started successfully")
    except Exception as e:
        logger.error(f"Failed to start IPTV Catalog: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down IPTV Catalog...")

    try:
        cleanup_scheduler.shutdown()
    except Exception as e:
        logger.error(f"Error during scheduler shutdown: {e}", exc_info=True)

    if reload_task is not None and not reload_task.done():
        reload_task.cancel()
        await asyncio.gather(reload_task, return_exceptions=True)

    # Cancelled scans must stop touching the store before the engine is disposed
    orchestrator.cancel_cleanup()
    await wait_for_background_tasks()

    await close_orchestrator()
    await close_db()

    logger.info("IPTV Catalog stopped")


app = FastAPI(
    title="IPTV Catalog",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(main_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log validation errors with details"""
    logger.error(f"Validation error for {request.method} {request.url.path}")
    logger.error(f"Validation details: {exc.errors()}")

    errors = []
    for error in exc.errors():
        error_dict = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": str(error.get("input", ""))[:100]
        }
        errors.append(error_dict)

    return JSONResponse(
        status_code=422,
        content={
            "detail": errors
        }
    )
