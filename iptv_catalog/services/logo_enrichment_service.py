"""
Logo Enrichment Service

Backfills missing channel artwork from an external tvg-id -> logo URL
mapping. Best-effort: a failed download or an unexpected document shape
aborts the run without touching the catalog.
"""
import dataclasses
import logging
from collections.abc import Iterable
from typing import Any

import httpx

from iptv_catalog.config import settings
from iptv_catalog.services.catalog_store import CatalogStore
from iptv_catalog.services.catalog_types import ChannelRecord
from iptv_catalog.utils.http_operations import fetch_json, sanitize_url_for_logging
from iptv_catalog.utils.logging_helpers import log_section_end, log_section_start


logger = logging.getLogger(__name__)


class LogoMappingError(ValueError):
    """Raised when the logo mapping document has an unexpected shape"""
    pass


def build_logo_mapping(document: Any) -> dict[str, str]:
    """
    Build a channel id -> logo URL mapping from the decoded JSON document.

    Entries missing "channel" or "url", with non-string values, or with a
    blank URL are skipped. Later entries win for repeated channel ids.

    Raises:
        LogoMappingError: If the document is not a JSON array
    """
    if not isinstance(document, list):
        raise LogoMappingError(f"Expected a JSON array, got {type(document).__name__}")

    mapping: dict[str, str] = {}
    skipped = 0
    for entry in document:
        if not isinstance(entry, dict):
            skipped += 1
            continue
        channel_id = entry.get("channel")
        logo_url = entry.get("url")
        if not isinstance(channel_id, str) or not isinstance(logo_url, str) or not logo_url.strip():
            skipped += 1
            continue
        mapping[channel_id] = logo_url.strip()

    logger.debug(f"Logo mapping built: {len(mapping)} entries, {skipped} skipped")
    return mapping


def build_logo_updates(
    records: Iterable[ChannelRecord],
    mapping: dict[str, str],
) -> list[ChannelRecord]:
    """Stage copies of logo-less records whose tvg-id has a mapped logo."""
    updates: list[ChannelRecord] = []
    for record in records:
        if record.logo_url and record.logo_url.strip():
            continue
        tvg_id = record.tvg_id.strip()
        if not tvg_id:
            continue
        logo_url = mapping.get(tvg_id)
        if logo_url is not None:
            updates.append(dataclasses.replace(record, logo_url=logo_url))
    return updates


class LogoEnrichmentService:
    """Fetches the logo mapping and applies it to the catalog."""

    def __init__(
        self,
        store: CatalogStore,
        *,
        mapping_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._store = store
        self._mapping_url = mapping_url or settings.logo_mapping_url
        self._timeout = timeout or settings.logo_fetch_timeout_sec
        self._max_retries = max_retries or settings.logo_fetch_max_retries
        self._client = client

    async def fetch_logo_mapping(self) -> dict[str, str]:
        """
        Download and decode the logo mapping.

        Raises:
            httpx.HTTPError: On transport failure or error status
            httpx.InvalidURL: If the mapping URL cannot be parsed
            ValueError: If the body is not JSON or not a JSON array
        """
        document = await fetch_json(
            self._mapping_url,
            timeout=self._timeout,
            max_retries=self._max_retries,
            client=self._client,
        )
        return build_logo_mapping(document)

    async def enrich(self) -> int:
        """
        Backfill missing logos across the whole catalog.

        Returns:
            Number of channels that received a logo (0 when the mapping is unavailable)
        """
        log_section_start(logger, "logo enrichment")
        try:
            mapping = await self.fetch_logo_mapping()
        except Exception as exc:  # Any fetch or parse failure leaves the catalog untouched
            logger.warning(
                "Logo enrichment skipped, mapping from "
                f"{sanitize_url_for_logging(self._mapping_url)} unavailable: {type(exc).__name__}: {exc}"
            )
            return 0

        snapshot = await self._store.get_all()
        updates = build_logo_updates(snapshot, mapping)
        logger.info(
            f"Logo mapping has {len(mapping)} entries; "
            f"{len(updates)} of {len(snapshot)} channels can be enriched"
        )

        updated = 0
        if updates:
            updated = await self._store.update_logos(
                {record.id: record.logo_url for record in updates if record.id is not None}
            )

        log_section_end(logger, "logo enrichment")
        return updated
