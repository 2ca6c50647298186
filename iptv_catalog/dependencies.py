"""
Dependency wiring

Builds the catalog orchestrator from its collaborators and holds the single
instance served to the HTTP layer. Tests replace it through
``app.dependency_overrides[get_orchestrator]`` or ``set_orchestrator``.
"""
import logging

from iptv_catalog.services.catalog_orchestrator import CatalogOrchestrator
from iptv_catalog.services.catalog_store import CatalogStore, PreferenceStore
from iptv_catalog.services.db_service import SQLiteCatalogStore, SQLitePreferenceStore
from iptv_catalog.services.liveness_scanner import LivenessScanner, StreamProbe
from iptv_catalog.services.logo_enrichment_service import LogoEnrichmentService


logger = logging.getLogger(__name__)

_orchestrator: CatalogOrchestrator | None = None
_probe: StreamProbe | None = None


def build_orchestrator(
    store: CatalogStore | None = None,
    preferences: PreferenceStore | None = None,
    probe: StreamProbe | None = None,
) -> CatalogOrchestrator:
    """
    Create an orchestrator wired to the SQLite stores unless others are given.

    The database must already be initialized when the defaults are used.
    """
    global _probe
    store = store or SQLiteCatalogStore()
    preferences = preferences or SQLitePreferenceStore()
    _probe = probe or StreamProbe()

    orchestrator = CatalogOrchestrator(
        store,
        preferences,
        LogoEnrichmentService(store),
        LivenessScanner(store, _probe),
    )
    logger.debug(f"Catalog orchestrator built with {type(store).__name__}")
    return orchestrator


def set_orchestrator(orchestrator: CatalogOrchestrator | None) -> None:
    global _orchestrator
    _orchestrator = orchestrator


def get_orchestrator() -> CatalogOrchestrator:
    """FastAPI dependency returning the application's orchestrator."""
    if _orchestrator is None:
        raise RuntimeError("Catalog not initialized. Call set_orchestrator() during startup.")
    return _orchestrator


async def close_orchestrator() -> None:
    """Cancel any running scan and release the probe's HTTP client."""
    global _orchestrator, _probe
    if _orchestrator is not None:
        _orchestrator.cancel_cleanup()
    if _probe is not None:
        await _probe.aclose()
    _orchestrator = None
    _probe = None
