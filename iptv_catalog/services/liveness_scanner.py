"""
Liveness Scanner

Walks a snapshot of the catalog, probes every stream URL with a header-only
request and deletes the channels that do not answer with a 2xx status.
Probes run concurrently on a bounded window but results are consumed in
snapshot order, so progress always reflects records processed.
"""
import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Protocol

import httpx

from iptv_catalog.config import settings
from iptv_catalog.services.catalog_store import CatalogStore
from iptv_catalog.services.catalog_types import ChannelRecord, ScanProgress, ScanResult
from iptv_catalog.utils.http_operations import sanitize_url_for_logging
from iptv_catalog.utils.logging_helpers import log_scan_progress, log_scan_summary
from iptv_catalog.utils.observable import ObservableValue


logger = logging.getLogger(__name__)


class Prober(Protocol):
    async def is_alive(self, url: str) -> bool: ...


class StreamProbe:
    """
    HEAD-based reachability check.

    A stream is alive when the final response (after redirects) has a 2xx
    status. Timeouts, DNS/TLS/connection failures and invalid URLs count as
    dead. No retries.
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        user_agent: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout or settings.probe_timeout_sec
        self._user_agent = user_agent or settings.probe_user_agent
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            )
        return self._client

    async def is_alive(self, url: str) -> bool:
        try:
            response = await self._get_client().head(
                url,
                headers={"User-Agent": self._user_agent},
                follow_redirects=True,
                timeout=httpx.Timeout(self._timeout),
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug(f"Probe failed for {sanitize_url_for_logging(url)}: {type(exc).__name__}")
            return False

        if not response.is_success:
            logger.debug(f"Probe for {sanitize_url_for_logging(url)} returned HTTP {response.status_code}")
        return response.is_success

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


class LivenessScanner:
    """
    Runs liveness scans over a CatalogStore.

    ``is_scanning`` and ``progress`` are the only state shared with observers.
    At most one scan runs at a time per scanner; a second request is skipped.
    """

    def __init__(
        self,
        store: CatalogStore,
        probe: Prober,
        *,
        progress_interval: int | None = None,
        max_concurrency: int | None = None,
        probe_deadline: float | None = None,
    ) -> None:
        self._store = store
        self._probe = probe
        self._progress_interval = progress_interval or settings.scan_progress_interval
        self._max_concurrency = max_concurrency or settings.scan_max_concurrency
        # Hard stop per probe on top of the client's own connect/read timeouts
        self._probe_deadline = probe_deadline or settings.probe_timeout_sec * 2
        self._cancel_event: asyncio.Event | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

        self.is_scanning: ObservableValue[bool] = ObservableValue(False, name="is_scanning")
        self.progress: ObservableValue[ScanProgress | None] = ObservableValue(None, name="scan_progress")

    async def scan(self) -> ScanResult:
        """
        Probe every catalogued channel and delete the dead ones.

        Deletions are committed one by one as they are decided. Store errors
        and unexpected probe errors stop the scan and propagate; deletions
        committed before that point stay.

        Returns:
            ScanResult with status "success", "cancelled" or "skipped"
        """
        started_at = datetime.now(timezone.utc)
        if not self.is_scanning.compare_and_set(False, True):
            logger.warning("Liveness scan already in progress, skipping this request")
            return ScanResult(status="skipped", started_at=started_at, completed_at=started_at)

        self._loop = asyncio.get_running_loop()
        self._cancel_event = asyncio.Event()
        total = checked = deleted = 0
        cancelled = False

        try:
            snapshot = await self._store.get_all()
            total = len(snapshot)
            logger.info(f"Liveness scan started over {total} channels")
            checked, deleted, cancelled = await self._run(snapshot)
        finally:
            self.progress.set(None)
            self._cancel_event = None
            self._loop = None
            self.is_scanning.set(False)

        result = ScanResult(
            status="cancelled" if cancelled else "success",
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            total=total,
            checked=checked,
            deleted=deleted,
        )
        log_scan_summary(logger, result)
        return result

    async def _run(self, snapshot: list[ChannelRecord]) -> tuple[int, int, bool]:
        total = len(snapshot)
        semaphore = asyncio.Semaphore(self._max_concurrency)
        window = self._max_concurrency * 2
        pending: deque[asyncio.Task[bool]] = deque()
        next_index = 0
        checked = deleted = 0

        def schedule_ahead(limit: int) -> None:
            nonlocal next_index
            while next_index < min(limit, total):
                record = snapshot[next_index]
                pending.append(asyncio.create_task(self._check(semaphore, record)))
                next_index += 1

        try:
            for index, record in enumerate(snapshot):
                if self._cancel_event.is_set():
                    logger.info(f"Liveness scan cancelled after {checked}/{total} channels")
                    return checked, deleted, True

                if index % self._progress_interval == 0:
                    progress = ScanProgress(
                        current=index,
                        total=total,
                        message=f"Checking {index + 1} / {total}",
                    )
                    self.progress.set(progress)
                    log_scan_progress(logger, progress, deleted)

                schedule_ahead(index + window)
                task = pending.popleft()

                alive = await self._wait_for_probe(task)
                if alive is None:
                    logger.info(f"Liveness scan cancelled after {checked}/{total} channels")
                    return checked, deleted, True

                checked += 1
                if not alive:
                    await self._store.delete_by_id(record.id)
                    deleted += 1
                    logger.info(f"Removed dead channel {record.name} ({sanitize_url_for_logging(record.url)})")
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        return checked, deleted, False

    async def _check(self, semaphore: asyncio.Semaphore, record: ChannelRecord) -> bool:
        async with semaphore:
            try:
                return await asyncio.wait_for(
                    self._probe.is_alive(record.url),
                    timeout=self._probe_deadline,
                )
            except asyncio.TimeoutError:
                logger.debug(
                    f"Probe for {sanitize_url_for_logging(record.url)} exceeded {self._probe_deadline:.1f}s"
                )
                return False

    async def _wait_for_probe(self, task: "asyncio.Task[bool]") -> bool | None:
        """Await a probe, returning None if the scan is cancelled first."""
        cancel_waiter = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, cancel_waiter},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            cancel_waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        return None

    def cancel(self) -> bool:
        """
        Request the running scan to stop. Safe to call from any thread.

        Probes already in flight are abandoned; deletions already committed
        stay committed.

        Returns:
            True if a scan was running
        """
        event, loop = self._cancel_event, self._loop
        if event is None or loop is None:
            return False
        loop.call_soon_threadsafe(event.set)
        logger.info("Liveness scan cancellation requested")
        return True
