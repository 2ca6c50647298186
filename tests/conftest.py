"""Shared fixtures."""

import pytest

from iptv_catalog import database
from iptv_catalog.services.catalog_store import InMemoryCatalogStore, InMemoryPreferenceStore
from iptv_catalog.services.db_service import SQLiteCatalogStore, SQLitePreferenceStore


@pytest.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    """Every CatalogStore implementation."""
    if request.param == "memory":
        yield InMemoryCatalogStore()
        return
    await database.init_db(str(tmp_path / "catalog.db"))
    yield SQLiteCatalogStore()
    await database.close_db()


@pytest.fixture(params=["memory", "sqlite"])
async def preferences(request, tmp_path):
    """Every PreferenceStore implementation."""
    if request.param == "memory":
        yield InMemoryPreferenceStore()
        return
    await database.init_db(str(tmp_path / "prefs.db"))
    yield SQLitePreferenceStore()
    await database.close_db()
