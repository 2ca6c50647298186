import asyncio
import io
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from iptv_catalog.dependencies import get_orchestrator
from iptv_catalog.exceptions import ChannelNotFoundError, PlaylistImportError
from iptv_catalog.schemas import (
    ChannelResponse,
    CountResponse,
    ImportResponse,
    ImportUrlRequest,
    ProgressResponse,
    StatusResponse,
)
from iptv_catalog.services.catalog_orchestrator import CatalogOrchestrator
from iptv_catalog.services.catalog_types import ImportResult
from iptv_catalog.services.scheduler_service import cleanup_scheduler
from iptv_catalog.utils.http_operations import sanitize_url_for_logging


logger = logging.getLogger(__name__)

main_router = APIRouter()

Orchestrator = Annotated[CatalogOrchestrator, Depends(get_orchestrator)]

# Keeps fire-and-forget scans referenced until they finish
_background_tasks: set[asyncio.Task] = set()


def _import_response(result: ImportResult) -> ImportResponse:
    if result.status == "skipped":
        raise HTTPException(status_code=409, detail="A playlist import is already in progress")
    return ImportResponse(**result.to_dict())


@main_router.get("/")
async def root() -> dict:
    """Root endpoint with service information"""
    next_run = cleanup_scheduler.get_next_run_time()

    return {
        "service": "IPTV Catalog",
        "version": "0.1.0",
        "next_scheduled_cleanup": next_run.isoformat() if next_run else None,
        "endpoints": {
            "channels": "/channels - List channels (filter with ?group= and ?q=)",
            "import": "/playlists/import-url - Import a remote playlist (POST)",
            "cleanup": "/cleanup - Start a liveness scan (POST)",
            "status": "/status - Loading/scan status",
            "health": "/health - Health check"
        }
    }


@main_router.get("/health")
async def health_check() -> dict:
    """Health check endpoint"""
    next_run = cleanup_scheduler.get_next_run_time()
    return {
        "status": "ok",
        "scheduler_running": cleanup_scheduler.is_running(),
        "next_cleanup": next_run.isoformat() if next_run else None
    }


@main_router.get("/status", response_model=StatusResponse)
async def status(orchestrator: Orchestrator) -> StatusResponse:
    saved_url = await orchestrator.get_saved_playlist_url()
    return StatusResponse(
        is_loading=orchestrator.is_loading.get(),
        is_scanning=orchestrator.is_scanning.get(),
        scan_progress=ProgressResponse.from_progress(orchestrator.scan_progress.get()),
        saved_playlist_url=sanitize_url_for_logging(saved_url) if saved_url else None,
    )


# --- Channels ---

@main_router.get("/channels", response_model=list[ChannelResponse])
async def list_channels(
    orchestrator: Orchestrator,
    group: Annotated[str | None, Query(description="Group filter, 'All' for every group")] = None,
    q: Annotated[str, Query(description="Case-insensitive name search")] = "",
) -> list[ChannelResponse]:
    channels = await orchestrator.list_channels(group=group, query=q)
    return [ChannelResponse.from_record(channel) for channel in channels]


@main_router.get("/channels/groups")
async def list_groups(orchestrator: Orchestrator) -> list[str]:
    return await orchestrator.list_groups()


@main_router.get("/channels/favorites", response_model=list[ChannelResponse])
async def list_favorites(orchestrator: Orchestrator) -> list[ChannelResponse]:
    return [ChannelResponse.from_record(channel) for channel in await orchestrator.list_favorites()]


@main_router.get("/channels/recents", response_model=list[ChannelResponse])
async def list_recents(orchestrator: Orchestrator) -> list[ChannelResponse]:
    return [ChannelResponse.from_record(channel) for channel in await orchestrator.list_recents()]


@main_router.post("/channels/{channel_id}/favorite", response_model=ChannelResponse)
async def toggle_favorite(channel_id: int, orchestrator: Orchestrator) -> ChannelResponse:
    try:
        return ChannelResponse.from_record(await orchestrator.toggle_favorite(channel_id))
    except ChannelNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@main_router.post("/channels/{channel_id}/watched", response_model=ChannelResponse)
async def mark_watched(channel_id: int, orchestrator: Orchestrator) -> ChannelResponse:
    try:
        return ChannelResponse.from_record(await orchestrator.mark_watched(channel_id))
    except ChannelNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@main_router.delete("/channels/{channel_id}", status_code=204)
async def delete_channel(channel_id: int, orchestrator: Orchestrator) -> None:
    try:
        await orchestrator.delete_channel(channel_id)
    except ChannelNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@main_router.delete("/channels", response_model=CountResponse)
async def delete_all(orchestrator: Orchestrator) -> CountResponse:
    return CountResponse(affected=await orchestrator.delete_all())


@main_router.post("/channels/clear-history", response_model=CountResponse)
async def clear_history(orchestrator: Orchestrator) -> CountResponse:
    return CountResponse(affected=await orchestrator.clear_history())


@main_router.post("/channels/clear-favorites", response_model=CountResponse)
async def clear_favorites(orchestrator: Orchestrator) -> CountResponse:
    return CountResponse(affected=await orchestrator.clear_favorites())


# --- Playlists ---

@main_router.post("/playlists/import-url", response_model=ImportResponse)
async def import_playlist_url(request: ImportUrlRequest, orchestrator: Orchestrator) -> ImportResponse:
    """
    Import a remote playlist

    The URL is remembered and re-imported automatically on the next startup.
    """
    logger.info(f"Playlist import triggered via API: {sanitize_url_for_logging(request.url)}")
    try:
        result = await orchestrator.import_url(request.url)
    except PlaylistImportError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return _import_response(result)


@main_router.post("/playlists/import", response_model=ImportResponse)
async def import_playlist_body(request: Request, orchestrator: Orchestrator) -> ImportResponse:
    """Import a playlist sent as the raw request body"""
    body = await request.body()
    if not body.strip():
        raise HTTPException(status_code=400, detail="Empty playlist body")

    try:
        result = await orchestrator.import_stream(io.BytesIO(body), source="<upload>")
    except PlaylistImportError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _import_response(result)


# --- Cleanup ---

@main_router.post("/cleanup", status_code=202)
async def trigger_cleanup(orchestrator: Orchestrator) -> dict:
    """
    Start a liveness scan in the background

    Progress is reported by GET /status.
    """
    if orchestrator.is_scanning.get():
        raise HTTPException(status_code=409, detail="A liveness scan is already in progress")

    logger.info("Catalog cleanup triggered via API")
    task = asyncio.create_task(orchestrator.cleanup())
    _background_tasks.add(task)
    task.add_done_callback(_log_cleanup_outcome)
    return {"status": "started"}


@main_router.post("/cleanup/cancel")
async def cancel_cleanup(orchestrator: Orchestrator) -> dict:
    if not orchestrator.cancel_cleanup():
        raise HTTPException(status_code=409, detail="No liveness scan is running")
    return {"status": "cancelling"}


async def wait_for_background_tasks() -> None:
    """Wait for API-triggered cleanups to finish; used on shutdown after cancelling them"""
    if _background_tasks:
        logger.info(f"Waiting for {len(_background_tasks)} background cleanup task(s)")
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)


def _log_cleanup_outcome(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        logger.warning("Background cleanup task was cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background cleanup failed: {exc}", exc_info=exc)
