"""
Structured logging helpers for consistent log formatting.

Provides utilities for structured, clean logging without excessive decorative separators.
"""
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from iptv_catalog.services.catalog_types import ImportResult, ScanProgress, ScanResult


def log_section_start(logger: logging.Logger, section_name: str) -> None:
    """
    Log the start of a processing section.

    Args:
        logger: Logger instance
        section_name: Name of the section being started
    """
    logger.info(f"Starting: {section_name}")


def log_section_end(logger: logging.Logger, section_name: str) -> None:
    """
    Log the end of a processing section.

    Args:
        logger: Logger instance
        section_name: Name of the section being ended
    """
    logger.info(f"Completed: {section_name}")


def log_scan_progress(logger: logging.Logger, progress: "ScanProgress", deleted: int) -> None:
    """
    Log liveness scan progress.

    Args:
        logger: Logger instance
        progress: Current scan position
        deleted: Dead channels removed so far
    """
    logger.info(f"Checking {progress.current + 1}/{progress.total} (removed: {deleted})")


def log_scan_summary(logger: logging.Logger, result: "ScanResult") -> None:
    """Log the outcome of a liveness scan."""
    logger.info(
        f"Scan {result.status} - checked: {result.checked}/{result.total}, "
        f"removed: {result.deleted}, took {result.duration_seconds:.1f}s"
    )


def log_import_summary(logger: logging.Logger, result: "ImportResult") -> None:
    """
    Log playlist import summary.

    Args:
        logger: Logger instance
        result: Finished import
    """
    logger.info(
        f"Import summary - Parsed: {result.channels_parsed}, Inserted: {result.channels_inserted}, "
        f"Duplicates: {result.duplicates_skipped}, Logos: {result.logos_updated}"
    )
