"""Tests for the database session scope."""

import pytest
from sqlalchemy import select

from iptv_catalog import database
from iptv_catalog.models import Preference


@pytest.fixture
async def sqlite_db(tmp_path):
    await database.init_db(str(tmp_path / "catalog.db"))
    yield
    await database.close_db()


class TestSessionScope:
    async def test_commits_on_success(self, sqlite_db) -> None:
        async with database.session_scope() as session:
            session.add(Preference(key="k", value="v"))

        async with database.session_scope() as session:
            stored = await session.scalar(select(Preference.value).where(Preference.key == "k"))

        assert stored == "v"

    async def test_rolls_back_on_error(self, sqlite_db) -> None:
        with pytest.raises(RuntimeError):
            async with database.session_scope() as session:
                session.add(Preference(key="k", value="v"))
                await session.flush()
                raise RuntimeError("abort")

        async with database.session_scope() as session:
            stored = await session.scalar(select(Preference.value).where(Preference.key == "k"))

        assert stored is None

    async def test_requires_init(self) -> None:
        await database.close_db()

        with pytest.raises(RuntimeError, match="not initialized"):
            async with database.session_scope():
                pass
