from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import httpx

from .errors import DownloadTooLargeError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class DownloadedFile:
    data: bytes
    content_type: str
    filename: str


def default_filename(now_ms: Optional[int] = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"generated-image-{stamp}.webp"


def sanitize_filename(filename: Optional[str]) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", (filename or "").strip()).strip("._")
    return cleaned or default_filename()


async def fetch_download(
    url: str,
    filename: Optional[str] = None,
    timeout: float = 30.0,
    max_bytes: int = 25 * 1024 * 1024,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> DownloadedFile:
    """Fetch ``url`` so it can be handed back as a file attachment.

    The body is streamed and abandoned once it passes ``max_bytes``. Callers
    decide which URLs may be fetched; this only enforces http(s).

    Raises ValueError for non-http(s) URLs, DownloadTooLargeError for bodies
    over the limit, and httpx.HTTPError on transport or status failures.
    """
    if urlparse(url).scheme not in ("http", "https"):
        raise ValueError("Only http(s) URLs can be downloaded")

    chunks = []
    received = 0
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise DownloadTooLargeError("Image is too large to download")
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > max_bytes:
                    raise DownloadTooLargeError("Image is too large to download")
                chunks.append(chunk)
            content_type = response.headers.get("content-type", "application/octet-stream")

    logger.debug("Downloaded %s bytes from %s", received, url)
    return DownloadedFile(
        data=b"".join(chunks),
        content_type=content_type,
        filename=sanitize_filename(filename) if filename else default_filename(),
    )
