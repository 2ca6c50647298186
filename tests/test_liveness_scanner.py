"""Tests for StreamProbe and LivenessScanner."""

import asyncio
import logging

import httpx
import pytest

from iptv_catalog.services.catalog_store import InMemoryCatalogStore
from iptv_catalog.services.liveness_scanner import LivenessScanner, StreamProbe
from tests.helpers import make_channel, mock_client


class FakeProbe:
    """Answers from a url -> alive table; may raise or hang for chosen URLs."""

    def __init__(self, alive: dict[str, bool], *, raise_on: str | None = None, hang_on: str | None = None):
        self.alive = alive
        self.raise_on = raise_on
        self.hang_on = hang_on
        self.calls: list[str] = []

    async def is_alive(self, url: str) -> bool:
        self.calls.append(url)
        if url == self.raise_on:
            raise RuntimeError("probe exploded")
        if url == self.hang_on:
            await asyncio.sleep(3600)
        await asyncio.sleep(0)
        return self.alive.get(url, True)


def catalog(count: int) -> InMemoryCatalogStore:
    return InMemoryCatalogStore([make_channel(f"C{i}", f"http://s/{i}") for i in range(count)])


class TestStreamProbe:
    async def test_2xx_is_alive(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["agent"] = request.headers["User-Agent"]
            return httpx.Response(200)

        probe = StreamProbe(timeout=1.0, user_agent="TestAgent/1.0", client=mock_client(handler))

        assert await probe.is_alive("http://s/live") is True
        assert seen == {"method": "HEAD", "agent": "TestAgent/1.0"}

    async def test_redirects_are_followed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return httpx.Response(302, headers={"Location": "http://s/new"})
            return httpx.Response(204)

        probe = StreamProbe(timeout=1.0, client=mock_client(handler))

        assert await probe.is_alive("http://s/old") is True

    @pytest.mark.parametrize("status_code", [301, 403, 404, 500])
    async def test_non_2xx_is_dead(self, status_code: int) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if status_code == 301:
                return httpx.Response(301)  # no Location: redirect cannot be followed
            return httpx.Response(status_code)

        probe = StreamProbe(timeout=1.0, client=mock_client(handler))

        assert await probe.is_alive("http://s/x") is False

    @pytest.mark.parametrize(
        "error",
        [httpx.ConnectError, httpx.ConnectTimeout, httpx.ReadTimeout],
    )
    async def test_transport_errors_are_dead(self, error) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise error("boom", request=request)

        probe = StreamProbe(timeout=1.0, client=mock_client(handler))

        assert await probe.is_alive("http://s/x") is False

    async def test_invalid_url_is_dead(self) -> None:
        probe = StreamProbe(timeout=1.0, client=mock_client(lambda request: httpx.Response(200)))

        assert await probe.is_alive("http://host:notaport/live") is False


class TestScan:
    async def test_dead_channels_are_deleted(self) -> None:
        store = catalog(4)
        probe = FakeProbe({"http://s/1": False, "http://s/3": False})
        scanner = LivenessScanner(store, probe, progress_interval=5, max_concurrency=2)

        result = await scanner.scan()

        assert result.status == "success"
        assert (result.total, result.checked, result.deleted) == (4, 4, 2)
        assert [c.name for c in await store.get_all()] == ["C0", "C2"]

    async def test_empty_catalog(self) -> None:
        scanner = LivenessScanner(InMemoryCatalogStore(), FakeProbe({}))
        events = []
        scanner.progress.subscribe(events.append)

        result = await scanner.scan()

        assert (result.status, result.total, result.deleted) == ("success", 0, 0)
        assert events == [None]
        assert scanner.is_scanning.get() is False

    async def test_progress_cadence(self) -> None:
        scanner = LivenessScanner(catalog(12), FakeProbe({}), progress_interval=5, max_concurrency=3)
        events = []
        scanner.progress.subscribe(events.append)

        await scanner.scan()

        assert [e.current if e else None for e in events] == [0, 5, 10, None]
        assert events[0].total == 12
        assert events[1].message == "Checking 6 / 12"

    async def test_progress_is_monotonic_with_out_of_order_probes(self) -> None:
        class SlowFirstProbe(FakeProbe):
            async def is_alive(self, url: str) -> bool:
                if url == "http://s/0":
                    await asyncio.sleep(0.05)
                return await super().is_alive(url)

        store = catalog(11)
        scanner = LivenessScanner(store, SlowFirstProbe({"http://s/0": False}), progress_interval=5, max_concurrency=4)
        events = []
        scanner.progress.subscribe(events.append)

        result = await scanner.scan()

        currents = [e.current for e in events if e is not None]
        assert currents == sorted(currents) == [0, 5, 10]
        assert result.deleted == 1

    async def test_scanning_flag_transitions(self) -> None:
        scanner = LivenessScanner(catalog(2), FakeProbe({}))
        flags = []
        scanner.is_scanning.subscribe(flags.append)

        await scanner.scan()

        assert flags == [True, False]

    async def test_timeout_counts_as_dead(self) -> None:
        store = catalog(3)
        probe = FakeProbe({}, hang_on="http://s/1")
        scanner = LivenessScanner(store, probe, probe_deadline=0.05, max_concurrency=3)

        result = await scanner.scan()

        assert result.deleted == 1
        assert [c.name for c in await store.get_all()] == ["C0", "C2"]

    async def test_deletions_persist_when_later_probe_raises(self) -> None:
        store = catalog(5)
        probe = FakeProbe({"http://s/0": False, "http://s/1": False}, raise_on="http://s/3")
        scanner = LivenessScanner(store, probe, max_concurrency=1)
        events = []
        scanner.progress.subscribe(events.append)

        with pytest.raises(RuntimeError, match="probe exploded"):
            await scanner.scan()

        assert [c.name for c in await store.get_all()] == ["C2", "C3", "C4"]
        assert scanner.is_scanning.get() is False
        assert events[-1] is None

    async def test_store_failure_stops_scan(self) -> None:
        class FailingDeleteStore(InMemoryCatalogStore):
            async def delete_by_id(self, channel_id: int) -> bool:
                raise OSError("disk full")

        store = FailingDeleteStore([make_channel("A", "http://s/a"), make_channel("B", "http://s/b")])
        probe = FakeProbe({"http://s/a": False})
        scanner = LivenessScanner(store, probe, max_concurrency=1)

        with pytest.raises(OSError):
            await scanner.scan()

        assert scanner.is_scanning.get() is False
        assert scanner.progress.get() is None

    async def test_concurrent_scan_is_skipped(self) -> None:
        store = catalog(2)
        probe = FakeProbe({}, hang_on="http://s/0")
        scanner = LivenessScanner(store, probe, probe_deadline=0.2)

        first = asyncio.create_task(scanner.scan())
        await asyncio.sleep(0.01)
        second = await scanner.scan()
        first_result = await first

        assert second.status == "skipped"
        assert first_result.status == "success"

    async def test_cancel_keeps_committed_deletions(self) -> None:
        store = catalog(4)
        probe = FakeProbe({"http://s/0": False}, hang_on="http://s/2")
        scanner = LivenessScanner(store, probe, probe_deadline=60, max_concurrency=1)

        task = asyncio.create_task(scanner.scan())
        while probe.calls[-1:] != ["http://s/2"]:
            await asyncio.sleep(0.01)
        assert scanner.cancel() is True
        result = await task

        assert result.status == "cancelled"
        assert (result.checked, result.deleted) == (2, 1)
        assert [c.name for c in await store.get_all()] == ["C1", "C2", "C3"]
        assert "http://s/3" not in probe.calls
        assert scanner.is_scanning.get() is False

    async def test_cancel_without_scan(self) -> None:
        assert LivenessScanner(catalog(1), FakeProbe({})).cancel() is False

    async def test_removed_channels_are_logged(self, caplog) -> None:
        scanner = LivenessScanner(catalog(2), FakeProbe({"http://s/1": False}))

        with caplog.at_level(logging.INFO, logger="iptv_catalog.services.liveness_scanner"):
            await scanner.scan()

        assert "Removed dead channel C1 (http://s/1)" in caplog.messages
        assert "Liveness scan started over 2 channels" in caplog.messages
