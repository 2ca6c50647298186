"""
Catalog Store interface

Capability protocols for the persistent channel catalog and the preference
store, plus in-memory implementations used by tests and embedders that do
not need durability. The SQLite implementations live in db_service.
"""
import asyncio
import dataclasses
import logging
from collections.abc import Iterable, Mapping
from typing import Protocol, runtime_checkable

from iptv_catalog.services.catalog_types import ChannelRecord


logger = logging.getLogger(__name__)

SAVED_PLAYLIST_URL_KEY = "saved_playlist_url"


@runtime_checkable
class CatalogStore(Protocol):
    """Persistent collection of channel records.

    Records are deduplicated by URL: inserting a record whose URL is already
    catalogued leaves the existing record untouched.
    """

    async def insert_all(self, records: Iterable[ChannelRecord]) -> int: ...

    async def get_all(self) -> list[ChannelRecord]: ...

    async def get_by_id(self, channel_id: int) -> ChannelRecord | None: ...

    async def get_favorites(self) -> list[ChannelRecord]: ...

    async def get_recents(self, limit: int) -> list[ChannelRecord]: ...

    async def set_favorite(self, channel_id: int, is_favorite: bool) -> bool: ...

    async def update_last_watched(self, channel_id: int, timestamp: int) -> bool: ...

    async def update_logos(self, logos: Mapping[int, str]) -> int: ...

    async def delete_by_id(self, channel_id: int) -> bool: ...

    async def delete_all(self) -> int: ...

    async def clear_favorites(self) -> int: ...

    async def clear_history(self) -> int: ...


@runtime_checkable
class PreferenceStore(Protocol):
    """Tiny string key/value store for user preferences."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...


class InMemoryCatalogStore:
    """Dict-backed CatalogStore. Identifiers are never reused."""

    def __init__(self, records: Iterable[ChannelRecord] = ()):
        self._records: dict[int, ChannelRecord] = {}
        self._ids_by_url: dict[str, int] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()
        for record in records:
            self._insert_one(record)

    def _insert_one(self, record: ChannelRecord) -> bool:
        if record.url in self._ids_by_url:
            return False
        stored = dataclasses.replace(record, id=self._next_id)
        self._records[stored.id] = stored
        self._ids_by_url[stored.url] = stored.id
        self._next_id += 1
        return True

    async def insert_all(self, records: Iterable[ChannelRecord]) -> int:
        async with self._lock:
            inserted = sum(1 for record in records if self._insert_one(record))
        logger.debug(f"In-memory insert: {inserted} new channels")
        return inserted

    async def get_all(self) -> list[ChannelRecord]:
        async with self._lock:
            return [dataclasses.replace(record) for record in self._records.values()]

    async def get_by_id(self, channel_id: int) -> ChannelRecord | None:
        async with self._lock:
            record = self._records.get(channel_id)
            return dataclasses.replace(record) if record else None

    async def get_favorites(self) -> list[ChannelRecord]:
        return [record for record in await self.get_all() if record.is_favorite]

    async def get_recents(self, limit: int) -> list[ChannelRecord]:
        watched = [record for record in await self.get_all() if record.last_updated > 0]
        watched.sort(key=lambda record: record.last_updated, reverse=True)
        return watched[:limit]

    async def set_favorite(self, channel_id: int, is_favorite: bool) -> bool:
        async with self._lock:
            record = self._records.get(channel_id)
            if record is None:
                return False
            record.is_favorite = is_favorite
            return True

    async def update_last_watched(self, channel_id: int, timestamp: int) -> bool:
        async with self._lock:
            record = self._records.get(channel_id)
            if record is None:
                return False
            record.last_updated = timestamp
            return True

    async def update_logos(self, logos: Mapping[int, str]) -> int:
        async with self._lock:
            updated = 0
            for channel_id, logo_url in logos.items():
                record = self._records.get(channel_id)
                if record is None or (record.logo_url and record.logo_url.strip()):
                    continue
                record.logo_url = logo_url
                updated += 1
            return updated

    async def delete_by_id(self, channel_id: int) -> bool:
        async with self._lock:
            record = self._records.pop(channel_id, None)
            if record is None:
                return False
            del self._ids_by_url[record.url]
            return True

    async def delete_all(self) -> int:
        async with self._lock:
            count = len(self._records)
            self._records.clear()
            self._ids_by_url.clear()
            return count

    async def clear_favorites(self) -> int:
        async with self._lock:
            count = 0
            for record in self._records.values():
                if record.is_favorite:
                    record.is_favorite = False
                    count += 1
            return count

    async def clear_history(self) -> int:
        async with self._lock:
            count = 0
            for record in self._records.values():
                if record.last_updated:
                    record.last_updated = 0
                    count += 1
            return count


class InMemoryPreferenceStore:
    """Dict-backed PreferenceStore."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._values: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value
