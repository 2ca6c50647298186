"""
Catalog Orchestrator

Composes parser -> store -> logo enrichment into playlist imports, and
store -> liveness scanner into cleanups. Owns the observable loading flag and
re-exposes the scanner's progress for the presentation layer.
"""
from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO

import httpx

from iptv_catalog.config import settings
from iptv_catalog.exceptions import ChannelNotFoundError, PlaylistImportError
from iptv_catalog.services.catalog_store import SAVED_PLAYLIST_URL_KEY, CatalogStore, PreferenceStore
from iptv_catalog.services.catalog_types import ChannelRecord, ImportResult, ScanProgress, ScanResult, now_millis
from iptv_catalog.services.liveness_scanner import LivenessScanner
from iptv_catalog.services.logo_enrichment_service import LogoEnrichmentService
from iptv_catalog.services.playlist_parser import aparse_playlist, parse_playlist_stream
from iptv_catalog.utils.http_operations import read_file_lines, sanitize_url_for_logging, stream_lines
from iptv_catalog.utils.logging_helpers import log_import_summary, log_section_end, log_section_start
from iptv_catalog.utils.observable import ObservableValue


logger = logging.getLogger(__name__)

ALL_GROUPS = "All"


class CatalogOrchestrator:
    """Entry point used by the presentation layer and the scheduler."""

    def __init__(
        self,
        store: CatalogStore,
        preferences: PreferenceStore,
        enrichment: LogoEnrichmentService,
        scanner: LivenessScanner,
        *,
        client: httpx.AsyncClient | None = None,
        chunk_size: int | None = None,
        recents_limit: int | None = None,
        playlist_timeout: float | None = None,
    ) -> None:
        self._store = store
        self._preferences = preferences
        self._enrichment = enrichment
        self._scanner = scanner
        self._client = client
        self._chunk_size = chunk_size or settings.import_chunk_size
        self._recents_limit = recents_limit or settings.recents_limit
        self._playlist_timeout = playlist_timeout or settings.playlist_fetch_timeout_sec

        self.is_loading: ObservableValue[bool] = ObservableValue(False, name="is_loading")

    @property
    def is_scanning(self) -> ObservableValue[bool]:
        return self._scanner.is_scanning

    @property
    def scan_progress(self) -> ObservableValue[ScanProgress | None]:
        return self._scanner.progress

    # --- Playlist import ---

    async def import_stream(self, stream: BinaryIO, *, source: str = "<stream>") -> ImportResult:
        """Import a playlist from an open binary stream (local file, upload body)."""
        async def run(started_at: datetime) -> ImportResult:
            try:
                parsed, inserted = await self._store_sync(parse_playlist_stream(stream))
            except OSError as exc:
                raise PlaylistImportError(source, str(exc)) from exc
            return await self._finish(source, started_at, parsed, inserted)

        return await self._guarded_import(source, run)

    async def import_file(self, path: Path | str) -> ImportResult:
        """Import a playlist from a local file without blocking the event loop."""
        source = str(path)

        async def run(started_at: datetime) -> ImportResult:
            try:
                parsed, inserted = await self._store_async(read_file_lines(path))
            except OSError as exc:
                raise PlaylistImportError(source, str(exc)) from exc
            return await self._finish(source, started_at, parsed, inserted)

        return await self._guarded_import(source, run)

    async def import_url(self, url: str) -> ImportResult:
        """
        Import a playlist from a remote URL and remember it for automatic reloads.

        Raises:
            PlaylistImportError: On invalid URL, transport failure or non-2xx status.
                Channels stored from chunks parsed before the failure are kept.
        """
        url = url.strip()
        sanitized = sanitize_url_for_logging(url)
        if not url.lower().startswith(("http://", "https://")):
            raise PlaylistImportError(sanitized, "playlist URL must be HTTP/HTTPS")

        async def run(started_at: datetime) -> ImportResult:
            try:
                async with stream_lines(url, timeout=self._playlist_timeout, client=self._client) as lines:
                    parsed, inserted = await self._store_async(lines)
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                logger.error(f"Playlist download from {sanitized} failed: {exc}")
                raise PlaylistImportError(sanitized, str(exc) or type(exc).__name__) from exc

            await self._preferences.set(SAVED_PLAYLIST_URL_KEY, url)
            return await self._finish(sanitized, started_at, parsed, inserted)

        return await self._guarded_import(sanitized, run)

    async def reload_saved_playlist(self) -> ImportResult | None:
        """
        Re-import the last remote playlist, if any. Failures are logged and
        swallowed so the existing catalog stays in place.
        """
        saved_url = await self._preferences.get(SAVED_PLAYLIST_URL_KEY)
        if not saved_url or not saved_url.strip():
            logger.info("No saved playlist URL, skipping automatic reload")
            return None

        try:
            return await self.import_url(saved_url)
        except PlaylistImportError as exc:
            logger.warning(f"Automatic playlist reload failed, keeping existing catalog: {exc}")
            return None

    async def get_saved_playlist_url(self) -> str | None:
        return await self._preferences.get(SAVED_PLAYLIST_URL_KEY)

    async def _guarded_import(self, source: str, run) -> ImportResult:
        started_at = datetime.now(timezone.utc)
        if not self.is_loading.compare_and_set(False, True):
            logger.warning(f"Playlist import already in progress, skipping {source}")
            return ImportResult(status="skipped", source=source, started_at=started_at, completed_at=started_at)

        log_section_start(logger, f"playlist import from {source}")
        try:
            result = await run(started_at)
        finally:
            self.is_loading.set(False)

        log_import_summary(logger, result)
        log_section_end(logger, f"playlist import from {source}")
        return result

    async def _store_sync(self, records: Iterable[ChannelRecord]) -> tuple[int, int]:
        parsed = inserted = 0
        chunk: list[ChannelRecord] = []
        for record in records:
            chunk.append(record)
            if len(chunk) >= self._chunk_size:
                parsed += len(chunk)
                inserted += await self._store.insert_all(chunk)
                chunk = []
        if chunk:
            parsed += len(chunk)
            inserted += await self._store.insert_all(chunk)
        return parsed, inserted

    async def _store_async(self, lines: AsyncIterable[str]) -> tuple[int, int]:
        parsed = inserted = 0
        chunk: list[ChannelRecord] = []
        async for record in aparse_playlist(lines):
            chunk.append(record)
            if len(chunk) >= self._chunk_size:
                parsed += len(chunk)
                inserted += await self._store.insert_all(chunk)
                chunk = []
        if chunk:
            parsed += len(chunk)
            inserted += await self._store.insert_all(chunk)
        return parsed, inserted

    async def _finish(self, source: str, started_at: datetime, parsed: int, inserted: int) -> ImportResult:
        logos_updated = await self._enrichment.enrich()
        return ImportResult(
            status="success",
            source=source,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            channels_parsed=parsed,
            channels_inserted=inserted,
            logos_updated=logos_updated,
        )

    # --- Liveness cleanup ---

    async def cleanup(self) -> ScanResult:
        """Run a liveness scan over the whole catalog."""
        return await self._scanner.scan()

    def cancel_cleanup(self) -> bool:
        return self._scanner.cancel()

    # --- User actions ---

    async def toggle_favorite(self, channel_id: int) -> ChannelRecord:
        record = await self._require(channel_id)
        await self._store.set_favorite(channel_id, not record.is_favorite)
        record.is_favorite = not record.is_favorite
        return record

    async def mark_watched(self, channel_id: int) -> ChannelRecord:
        record = await self._require(channel_id)
        timestamp = now_millis()
        await self._store.update_last_watched(channel_id, timestamp)
        record.last_updated = timestamp
        return record

    async def delete_channel(self, channel_id: int) -> None:
        if not await self._store.delete_by_id(channel_id):
            raise ChannelNotFoundError(channel_id)

    async def delete_all(self) -> int:
        return await self._store.delete_all()

    async def clear_history(self) -> int:
        return await self._store.clear_history()

    async def clear_favorites(self) -> int:
        return await self._store.clear_favorites()

    async def _require(self, channel_id: int) -> ChannelRecord:
        record = await self._store.get_by_id(channel_id)
        if record is None:
            raise ChannelNotFoundError(channel_id)
        return record

    # --- Queries ---

    async def list_channels(self, group: str | None = None, query: str = "") -> list[ChannelRecord]:
        """Channels filtered by group ("All"/None for every group) and name substring."""
        needle = query.strip().casefold()
        channels = await self._store.get_all()
        return [
            channel
            for channel in channels
            if (group in (None, "", ALL_GROUPS) or channel.group == group)
            and (not needle or needle in channel.name.casefold())
        ]

    async def list_groups(self) -> list[str]:
        channels = await self._store.get_all()
        groups = sorted({channel.group for channel in channels if channel.group.strip()})
        return [ALL_GROUPS, *groups]

    async def list_favorites(self) -> list[ChannelRecord]:
        return await self._store.get_favorites()

    async def list_recents(self) -> list[ChannelRecord]:
        return await self._store.get_recents(self._recents_limit)
