"""Blocking HTTP helpers, run off the event loop with ``asyncio.to_thread``."""

from __future__ import annotations

import asyncio
from typing import Any, Dict

import requests

from elaina.util.logger import get_logger

logger = get_logger("http_utils")

DEFAULT_TIMEOUT = 20.0
MAX_DOWNLOAD_BYTES = 25 * 1024 * 1024


def _get_bytes(url: str, timeout: float, max_bytes: int) -> bytes:
    logger.debug("[DOWNLOAD] GET %s", url)
    with requests.get(url, timeout=timeout, stream=True) as response:
        response.raise_for_status()
        chunks = []
        size = 0
        for chunk in response.iter_content(chunk_size=64 * 1024):
            size += len(chunk)
            if size > max_bytes:
                raise requests.RequestException(f"response larger than {max_bytes} bytes")
            chunks.append(chunk)
    return b"".join(chunks)


def _get_json(url: str, params: Dict[str, Any] | None, timeout: float) -> Any:
    response = requests.get(url, params=params, timeout=timeout)
    response.raise_for_status()
    return response.json()


async def fetch_bytes(url: str, *, timeout: float = DEFAULT_TIMEOUT, max_bytes: int = MAX_DOWNLOAD_BYTES) -> bytes:
    """Download ``url``. Raises ``requests.RequestException`` on failure."""
    return await asyncio.to_thread(_get_bytes, url, timeout, max_bytes)


async def fetch_json(url: str, *, params: Dict[str, Any] | None = None, timeout: float = DEFAULT_TIMEOUT) -> Any:
    """GET ``url`` and decode JSON. Raises ``requests.RequestException`` or ``ValueError``."""
    return await asyncio.to_thread(_get_json, url, params, timeout)
