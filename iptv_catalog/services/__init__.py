"""
Services package for the IPTV Catalog

This package contains the parsing, persistence, enrichment and liveness-scan components.
"""
from iptv_catalog.services.catalog_orchestrator import CatalogOrchestrator
from iptv_catalog.services.catalog_store import (
    CatalogStore,
    InMemoryCatalogStore,
    InMemoryPreferenceStore,
    PreferenceStore,
)
from iptv_catalog.services.catalog_types import ChannelRecord, ImportResult, ScanProgress, ScanResult
from iptv_catalog.services.liveness_scanner import LivenessScanner, StreamProbe
from iptv_catalog.services.logo_enrichment_service import LogoEnrichmentService
from iptv_catalog.services.playlist_parser import aparse_playlist, parse_playlist, parse_playlist_stream

__all__ = [
    'CatalogOrchestrator',
    'CatalogStore',
    'InMemoryCatalogStore',
    'InMemoryPreferenceStore',
    'PreferenceStore',
    'ChannelRecord',
    'ImportResult',
    'ScanProgress',
    'ScanResult',
    'LivenessScanner',
    'StreamProbe',
    'LogoEnrichmentService',
    'aparse_playlist',
    'parse_playlist',
    'parse_playlist_stream',
]
