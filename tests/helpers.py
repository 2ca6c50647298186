"""Test helpers."""

from collections.abc import Callable

import httpx

from iptv_catalog.services.catalog_types import ChannelRecord


def make_channel(
    name: str = "BBC One",
    url: str = "http://stream/bbc1.m3u8",
    *,
    logo_url: str | None = None,
    group: str = "News",
    tvg_id: str = "",
    is_favorite: bool = False,
    last_updated: int = 1_000,
) -> ChannelRecord:
    """Create a transient ChannelRecord."""
    return ChannelRecord(
        name=name,
        url=url,
        logo_url=logo_url,
        group=group,
        tvg_id=tvg_id,
        is_favorite=is_favorite,
        last_updated=last_updated,
    )


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
