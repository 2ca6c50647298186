"""
HTTP and file read utilities

This module handles remote JSON downloads with retry logic, streamed playlist
bodies, and line-by-line async reads of local playlist files.
"""
import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiofiles
import httpx


logger = logging.getLogger(__name__)


def sanitize_url_for_logging(url: str) -> str:
    """Remove credentials from URL for safe logging."""
    if "://" not in url:
        return url
    try:
        protocol, rest = url.split("://", 1)
        if "@" in rest.split("/", 1)[0]:
            rest = rest.split("@", 1)[1]
            return f"{protocol}://***:***@{rest}"
        return url
    except (ValueError, IndexError):
        return url


async def fetch_json(
    url: str,
    *,
    timeout: float = 30.0,
    max_retries: int = 3,
    backoff_factor: float = 2.0,
    client: httpx.AsyncClient | None = None,
) -> Any:
    """
    Download and decode a JSON document with exponential backoff retry logic

    Retries on transient network errors (timeouts, connection errors) and 5xx.
    Does NOT retry on 4xx HTTP errors (client errors) or undecodable bodies.

    Args:
        url: URL to download from
        timeout: HTTP timeout in seconds
        max_retries: Maximum number of attempts
        backoff_factor: Exponential backoff multiplier (wait = backoff_factor ^ attempt)
        client: Optional shared client; a private one is created otherwise

    Returns:
        The decoded JSON value

    Raises:
        httpx.HTTPError: If download fails after all retries
        ValueError: If the body is not valid JSON
    """
    logger.info(f"Downloading JSON from {sanitize_url_for_logging(url)}...")

    last_error: Exception | None = None

    for attempt in range(max_retries):
        try:
            async with _client_scope(client, timeout) as http:
                response = await http.get(url)
                response.raise_for_status()

            try:
                payload = response.json()
            except json.JSONDecodeError as e:
                raise ValueError(f"Response from {sanitize_url_for_logging(url)} is not valid JSON: {e}") from e

            logger.info(f"Downloaded {len(response.content) / 1024:.1f} KB of JSON")
            return payload

        except (httpx.TimeoutException, httpx.ConnectError) as e:
            last_error = e
            if attempt < max_retries - 1:
                wait_time = backoff_factor ** attempt
                logger.warning(
                    f"Download attempt {attempt + 1}/{max_retries} failed (transient error): {type(e).__name__}. "
                    f"Retrying in {wait_time:.1f}s..."
                )
                await asyncio.sleep(wait_time)
            else:
                logger.error(f"Download failed after {max_retries} attempts (transient error)")

        except httpx.HTTPStatusError as e:
            if 400 <= e.response.status_code < 500:
                logger.error(f"HTTP {e.response.status_code} (client error): {e}")
                raise

            last_error = e
            if attempt < max_retries - 1:
                wait_time = backoff_factor ** attempt
                logger.warning(
                    f"Download attempt {attempt + 1}/{max_retries} failed "
                    f"(HTTP {e.response.status_code} server error). "
                    f"Retrying in {wait_time:.1f}s..."
                )
                await asyncio.sleep(wait_time)
            else:
                logger.error(f"Download failed after {max_retries} attempts (HTTP {e.response.status_code})")

    if last_error:
        raise last_error

    raise RuntimeError(f"Failed to download {url} after {max_retries} attempts")


@asynccontextmanager
async def stream_lines(
    url: str,
    *,
    timeout: float = 60.0,
    client: httpx.AsyncClient | None = None,
) -> AsyncIterator[AsyncIterator[str]]:
    """
    Open a streamed GET request and expose its body as text lines.

    The body is never loaded in full. No retries: a partially consumed body
    cannot be replayed.

    Raises:
        httpx.HTTPError: On transport failure or non-2xx status
    """
    logger.info(f"Streaming playlist from {sanitize_url_for_logging(url)}...")
    async with _client_scope(client, timeout) as http:
        async with http.stream("GET", url) as response:
            response.raise_for_status()
            yield response.aiter_lines()


async def read_file_lines(path: Path | str) -> AsyncIterator[str]:
    """Yield lines of a UTF-8 text file without blocking the event loop."""
    async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
        async for line in f:
            yield line


@asynccontextmanager
async def _client_scope(
    client: httpx.AsyncClient | None,
    timeout: float,
) -> AsyncIterator[httpx.AsyncClient]:
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own_client:
        yield own_client
