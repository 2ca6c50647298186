"""
Extended M3U playlist parser

Single-pass, line-oriented parser turning an #EXTM3U playlist into
ChannelRecord objects. Works on sync line iterables, binary streams and async
line sources so that neither local files nor HTTP bodies need to be loaded
into memory in full.
"""
import io
import logging
import re
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator
from typing import BinaryIO

from iptv_catalog.config import settings
from iptv_catalog.services.catalog_types import ChannelRecord, now_millis

logger = logging.getLogger(__name__)

EXTINF_MARKER = "#EXTINF:"
COMMENT_MARKER = "#"

_ATTRIBUTE_PATTERNS = {
    "tvg-logo": re.compile(r'tvg-logo="([^"]*)"'),
    "group-title": re.compile(r'group-title="([^"]*)"'),
    "tvg-id": re.compile(r'tvg-id="([^"]*)"'),
}


class _PendingEntry:
    """Attributes of the last #EXTINF line still waiting for its URL line."""

    __slots__ = ("name", "logo_url", "group", "tvg_id")

    def __init__(self, name: str, logo_url: str | None, group: str, tvg_id: str):
        self.name = name
        self.logo_url = logo_url
        self.group = group
        self.tvg_id = tvg_id


class _PlaylistState:
    """Line-by-line state machine shared by the sync and async entry points."""

    def __init__(self, default_group: str, unknown_name: str):
        self._default_group = default_group
        self._unknown_name = unknown_name
        self._pending: _PendingEntry | None = None
        self.lines_seen = 0
        self.orphan_urls = 0

    def feed(self, raw_line: str) -> ChannelRecord | None:
        self.lines_seen += 1
        # str.strip() keeps a leading byte-order mark
        line = raw_line.lstrip("\ufeff").strip()

        if not line:
            return None

        if line.startswith(EXTINF_MARKER):
            self._pending = self._parse_extinf(line)
            return None

        if line.startswith(COMMENT_MARKER):
            return None

        pending = self._pending
        if pending is None or not pending.name:
            self.orphan_urls += 1
            return None

        self._pending = None
        return ChannelRecord(
            name=pending.name,
            url=line,
            logo_url=pending.logo_url,
            group=pending.group,
            tvg_id=pending.tvg_id,
            is_favorite=False,
            last_updated=now_millis(),
        )

    def _parse_extinf(self, line: str) -> _PendingEntry:
        logo_url = _get_attribute(line, "tvg-logo")
        group = _get_attribute(line, "group-title") or self._default_group
        tvg_id = _get_attribute(line, "tvg-id") or ""

        _, comma, name = line.rpartition(",")
        name = name.strip() if comma else ""

        return _PendingEntry(
            name=name or self._unknown_name,
            logo_url=logo_url,
            group=group,
            tvg_id=tvg_id,
        )


def _get_attribute(line: str, attribute: str) -> str | None:
    """Extract a quoted attribute value, None when missing, malformed or blank."""
    match = _ATTRIBUTE_PATTERNS[attribute].search(line)
    if match is None:
        return None
    value = match.group(1).strip()
    return value or None


def _resolve_defaults(default_group: str | None, unknown_name: str | None) -> tuple[str, str]:
    return (
        default_group or settings.default_group,
        unknown_name or settings.unknown_channel_name,
    )


def parse_playlist(
    lines: Iterable[str],
    *,
    default_group: str | None = None,
    unknown_name: str | None = None,
) -> Iterator[ChannelRecord]:
    """
    Parse playlist lines into channel records, in source order.

    Args:
        lines: Any iterable of text lines (file object, list, generator)

    Keyword Args:
        default_group: Group label for entries without group-title
        unknown_name: Display name for entries without a name after the last comma

    Yields:
        ChannelRecord objects with no store identity
    """
    state = _PlaylistState(*_resolve_defaults(default_group, unknown_name))
    emitted = 0

    for line in lines:
        record = state.feed(line)
        if record is not None:
            emitted += 1
            yield record

    logger.debug(
        f"Playlist parsed: {state.lines_seen} lines, {emitted} channels, "
        f"{state.orphan_urls} orphan URL lines dropped"
    )


def parse_playlist_stream(
    stream: BinaryIO,
    *,
    default_group: str | None = None,
    unknown_name: str | None = None,
) -> Iterator[ChannelRecord]:
    """Parse a binary UTF-8 stream, accepting \\n, \\r\\n and \\r line endings."""
    text = io.TextIOWrapper(stream, encoding="utf-8", errors="replace", newline=None)
    try:
        yield from parse_playlist(text, default_group=default_group, unknown_name=unknown_name)
    finally:
        # Leave the caller's stream open
        text.detach()


async def aparse_playlist(
    lines: AsyncIterable[str],
    *,
    default_group: str | None = None,
    unknown_name: str | None = None,
) -> AsyncIterator[ChannelRecord]:
    """Async variant of parse_playlist for streamed HTTP bodies and async file reads."""
    state = _PlaylistState(*_resolve_defaults(default_group, unknown_name))
    emitted = 0

    async for line in lines:
        record = state.feed(line)
        if record is not None:
            emitted += 1
            yield record

    logger.debug(
        f"Playlist parsed: {state.lines_seen} lines, {emitted} channels, "
        f"{state.orphan_urls} orphan URL lines dropped"
    )
