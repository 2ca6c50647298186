"""
Database operations for the channel catalog

This module contains the SQLite implementations of CatalogStore and
PreferenceStore on top of the async SQLAlchemy session scope.
"""
import logging
from collections.abc import Iterable, Mapping
from contextlib import AbstractAsyncContextManager
from typing import Callable

from sqlalchemy import delete, func, or_, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from iptv_catalog.database import session_scope
from iptv_catalog.models import Channel, Preference
from iptv_catalog.services.catalog_types import ChannelRecord


logger = logging.getLogger(__name__)

SessionScope = Callable[..., AbstractAsyncContextManager[AsyncSession]]

_INSERT_CHANNEL = text(
    """
    INSERT INTO channels (
        name,
        url,
        logo_url,
        group_title,
        tvg_id,
        is_favorite,
        last_updated,
        playback_position
    )
    VALUES (
        :name,
        :url,
        :logo_url,
        :group_title,
        :tvg_id,
        :is_favorite,
        :last_updated,
        :playback_position
    )
    ON CONFLICT(url) DO NOTHING
    """
)


def _to_record(model: Channel) -> ChannelRecord:
    return ChannelRecord(
        id=model.id,
        name=model.name,
        url=model.url,
        logo_url=model.logo_url,
        group=model.group_title,
        tvg_id=model.tvg_id,
        is_favorite=model.is_favorite,
        last_updated=model.last_updated,
        playback_position=model.playback_position,
    )


def _to_row(record: ChannelRecord) -> dict[str, object]:
    return {
        "name": record.name,
        "url": record.url,
        "logo_url": record.logo_url,
        "group_title": record.group,
        "tvg_id": record.tvg_id,
        "is_favorite": record.is_favorite,
        "last_updated": record.last_updated,
        "playback_position": record.playback_position,
    }


class SQLiteCatalogStore:
    """CatalogStore backed by the channels table."""

    def __init__(self, scope: SessionScope = session_scope, *, chunk_size: int = 1000):
        self._scope = scope
        self._chunk_size = chunk_size

    async def insert_all(self, records: Iterable[ChannelRecord]) -> int:
        """
        Insert channels, leaving rows whose URL already exists untouched.

        Args:
            records: Parsed channel records (ids are ignored)

        Returns:
            Number of channels actually inserted
        """
        deduped: dict[str, ChannelRecord] = {}
        for record in records:
            deduped.setdefault(record.url, record)

        if not deduped:
            logger.debug("No channels to store")
            return 0

        payload = [_to_row(record) for record in deduped.values()]

        async with self._scope() as session:
            before = await self._count(session)
            for start_index in range(0, len(payload), self._chunk_size):
                chunk = payload[start_index:start_index + self._chunk_size]
                await session.execute(_INSERT_CHANNEL, chunk)
            after = await self._count(session)

        inserted = after - before
        logger.info(f"Stored {inserted} channels ({len(payload) - inserted} already catalogued)")
        return inserted

    @staticmethod
    async def _count(session: AsyncSession) -> int:
        result = await session.execute(select(func.count(Channel.id)))
        return result.scalar_one_or_none() or 0

    async def get_all(self) -> list[ChannelRecord]:
        async with self._scope() as session:
            result = await session.execute(select(Channel).order_by(Channel.id))
            return [_to_record(model) for model in result.scalars().all()]

    async def get_by_id(self, channel_id: int) -> ChannelRecord | None:
        async with self._scope() as session:
            model = await session.get(Channel, channel_id)
            return _to_record(model) if model else None

    async def get_favorites(self) -> list[ChannelRecord]:
        async with self._scope() as session:
            result = await session.execute(
                select(Channel).where(Channel.is_favorite.is_(True)).order_by(Channel.id)
            )
            return [_to_record(model) for model in result.scalars().all()]

    async def get_recents(self, limit: int) -> list[ChannelRecord]:
        async with self._scope() as session:
            result = await session.execute(
                select(Channel)
                .where(Channel.last_updated > 0)
                .order_by(Channel.last_updated.desc(), Channel.id.desc())
                .limit(limit)
            )
            return [_to_record(model) for model in result.scalars().all()]

    async def set_favorite(self, channel_id: int, is_favorite: bool) -> bool:
        async with self._scope() as session:
            result = await session.execute(
                update(Channel).where(Channel.id == channel_id).values(is_favorite=is_favorite)
            )
            return result.rowcount > 0

    async def update_last_watched(self, channel_id: int, timestamp: int) -> bool:
        async with self._scope() as session:
            result = await session.execute(
                update(Channel).where(Channel.id == channel_id).values(last_updated=timestamp)
            )
            return result.rowcount > 0

    async def update_logos(self, logos: Mapping[int, str]) -> int:
        """
        Backfill logos in a single transaction.

        Rows that gained a logo since the caller's snapshot are skipped.

        Returns:
            Number of rows updated
        """
        if not logos:
            return 0

        updated = 0
        async with self._scope() as session:
            for channel_id, logo_url in logos.items():
                result = await session.execute(
                    update(Channel)
                    .where(
                        Channel.id == channel_id,
                        or_(Channel.logo_url.is_(None), func.trim(Channel.logo_url) == ""),
                    )
                    .values(logo_url=logo_url)
                    .execution_options(synchronize_session=False)
                )
                updated += result.rowcount or 0

        logger.info(f"Updated logos for {updated} channels")
        return updated

    async def delete_by_id(self, channel_id: int) -> bool:
        async with self._scope() as session:
            result = await session.execute(delete(Channel).where(Channel.id == channel_id))
            return result.rowcount > 0

    async def delete_all(self) -> int:
        async with self._scope() as session:
            deleted_count = await self._count(session)
            await session.execute(delete(Channel))

        logger.info(f"Deleted all {deleted_count} channels")
        return deleted_count

    async def clear_favorites(self) -> int:
        async with self._scope() as session:
            result = await session.execute(
                update(Channel).where(Channel.is_favorite.is_(True)).values(is_favorite=False)
            )
            return result.rowcount or 0

    async def clear_history(self) -> int:
        async with self._scope() as session:
            result = await session.execute(
                update(Channel).where(Channel.last_updated != 0).values(last_updated=0)
            )
            return result.rowcount or 0


class SQLitePreferenceStore:
    """PreferenceStore backed by the preferences table."""

    def __init__(self, scope: SessionScope = session_scope):
        self._scope = scope

    async def get(self, key: str) -> str | None:
        async with self._scope() as session:
            preference = await session.get(Preference, key)
            return preference.value if preference else None

    async def set(self, key: str, value: str) -> None:
        async with self._scope() as session:
            preference = await session.get(Preference, key)
            if preference is None:
                session.add(Preference(key=key, value=value))
            else:
                preference.value = value
        logger.debug(f"Preference {key} updated")
