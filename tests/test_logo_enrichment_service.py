"""Tests for LogoEnrichmentService."""

import httpx
import pytest

from iptv_catalog.services.catalog_store import InMemoryCatalogStore
from iptv_catalog.services.logo_enrichment_service import (
    LogoEnrichmentService,
    LogoMappingError,
    build_logo_mapping,
    build_logo_updates,
)
from tests.helpers import make_channel, mock_client

MAPPING_URL = "https://logos.example/api/logos.json"


def json_handler(payload, status_code: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == MAPPING_URL
        return httpx.Response(status_code, json=payload)

    return handler


def make_service(store, handler) -> LogoEnrichmentService:
    return LogoEnrichmentService(
        store,
        mapping_url=MAPPING_URL,
        max_retries=1,
        client=mock_client(handler),
    )


class TestBuildLogoMapping:
    def test_skips_blank_and_incomplete_entries(self) -> None:
        mapping = build_logo_mapping([
            {"channel": "bbc1.uk", "url": "http://x/bbc1.png"},
            {"channel": "blank.uk", "url": "   "},
            {"channel": "nourl.uk"},
            {"url": "http://x/orphan.png"},
            {"channel": 5, "url": "http://x/5.png"},
            "not-an-object",
        ])

        assert mapping == {"bbc1.uk": "http://x/bbc1.png"}

    def test_later_entries_win(self) -> None:
        mapping = build_logo_mapping([
            {"channel": "a", "url": "http://x/1.png"},
            {"channel": "a", "url": "http://x/2.png"},
        ])

        assert mapping == {"a": "http://x/2.png"}

    def test_rejects_non_array(self) -> None:
        with pytest.raises(LogoMappingError):
            build_logo_mapping({"channel": "a", "url": "http://x/a.png"})


class TestBuildLogoUpdates:
    def test_never_overwrites_existing_logo(self) -> None:
        records = [make_channel(tvg_id="a", logo_url="http://x/own.png")]

        assert build_logo_updates(records, {"a": "http://x/mapped.png"}) == []

    def test_never_touches_blank_tvg_id(self) -> None:
        records = [make_channel(tvg_id=""), make_channel(tvg_id="   ", url="http://s/2")]

        assert build_logo_updates(records, {"": "http://x/empty.png", "   ": "http://x/ws.png"}) == []

    def test_only_logo_changes(self) -> None:
        record = make_channel(tvg_id="a", logo_url="", is_favorite=True, last_updated=7)

        [update] = build_logo_updates([record], {"a": "http://x/a.png"})

        assert update.logo_url == "http://x/a.png"
        assert (update.name, update.url, update.group, update.is_favorite, update.last_updated) == (
            record.name, record.url, record.group, True, 7,
        )
        assert record.logo_url == ""


class TestEnrich:
    async def test_backfills_missing_logos(self) -> None:
        store = InMemoryCatalogStore([
            make_channel("BBC One", "http://s/bbc1", tvg_id="bbc1.uk"),
            make_channel("Own Logo", "http://s/own", tvg_id="own.uk", logo_url="http://x/own.png"),
            make_channel("No Id", "http://s/noid"),
            make_channel("Unmapped", "http://s/unmapped", tvg_id="unknown.uk"),
        ])
        service = make_service(store, json_handler([
            {"channel": "bbc1.uk", "url": "http://x/bbc1.png"},
            {"channel": "own.uk", "url": "http://x/other.png"},
            {"channel": "", "url": "http://x/empty.png"},
        ]))

        updated = await service.enrich()

        logos = {c.name: c.logo_url for c in await store.get_all()}
        assert updated == 1
        assert logos == {
            "BBC One": "http://x/bbc1.png",
            "Own Logo": "http://x/own.png",
            "No Id": None,
            "Unmapped": None,
        }

    async def test_http_error_leaves_catalog_untouched(self) -> None:
        store = InMemoryCatalogStore([make_channel(tvg_id="bbc1.uk")])
        service = make_service(store, json_handler({"error": "nope"}, status_code=404))

        assert await service.enrich() == 0
        [channel] = await store.get_all()
        assert channel.logo_url is None

    async def test_transport_error_is_swallowed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        store = InMemoryCatalogStore([make_channel(tvg_id="bbc1.uk")])

        assert await make_service(store, handler).enrich() == 0

    async def test_invalid_json_is_swallowed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>not json</html>")

        store = InMemoryCatalogStore([make_channel(tvg_id="bbc1.uk")])

        assert await make_service(store, handler).enrich() == 0

    async def test_unexpected_shape_is_swallowed(self) -> None:
        store = InMemoryCatalogStore([make_channel(tvg_id="bbc1.uk")])
        service = make_service(store, json_handler({"bbc1.uk": "http://x/bbc1.png"}))

        assert await service.enrich() == 0

    async def test_unparseable_mapping_url_is_swallowed(self) -> None:
        store = InMemoryCatalogStore([make_channel(tvg_id="bbc1.uk")])
        service = LogoEnrichmentService(
            store,
            mapping_url="http://logos.example:notaport/logos.json",
            max_retries=1,
            client=mock_client(lambda request: httpx.Response(200, json=[])),
        )

        assert await service.enrich() == 0
        [channel] = await store.get_all()
        assert channel.logo_url is None

    async def test_store_failure_still_propagates(self) -> None:
        class FailingLogoStore(InMemoryCatalogStore):
            async def update_logos(self, logos) -> int:
                raise OSError("disk full")

        store = FailingLogoStore([make_channel(tvg_id="bbc1.uk")])
        service = make_service(store, json_handler([{"channel": "bbc1.uk", "url": "http://x/bbc1.png"}]))

        with pytest.raises(OSError, match="disk full"):
            await service.enrich()
