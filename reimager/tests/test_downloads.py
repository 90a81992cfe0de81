"""Tests for :mod:`reimager.downloads`."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from reimager.downloads import default_filename, fetch_download, sanitize_filename
from reimager.errors import DownloadTooLargeError


def test_sanitize_filename() -> None:
    assert sanitize_filename("my image (1).webp") == "my_image_1_.webp"
    assert sanitize_filename("../../etc/passwd") == "etc_passwd"
    assert sanitize_filename("").startswith("generated-image-")
    assert default_filename(1700000000000) == "generated-image-1700000000000.webp"


def test_fetch_download_reads_bytes_and_type() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"webp-bytes", headers={"content-type": "image/webp"})

    downloaded = asyncio.run(
        fetch_download(
            "https://cdn.example/out.webp",
            "result.webp",
            transport=httpx.MockTransport(handler),
        )
    )

    assert downloaded.data == b"webp-bytes"
    assert downloaded.content_type == "image/webp"
    assert downloaded.filename == "result.webp"


def test_fetch_download_raises_on_upstream_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(404))

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(fetch_download("https://cdn.example/missing.webp", transport=transport))


def test_fetch_download_does_not_follow_redirects() -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(302, headers={"location": "http://127.0.0.1/admin"})

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(fetch_download("https://cdn.example/out.webp", transport=httpx.MockTransport(handler)))

    assert requested == ["https://cdn.example/out.webp"]


def test_fetch_download_rejects_oversize_body() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"\0" * 2048))

    with pytest.raises(DownloadTooLargeError):
        asyncio.run(fetch_download("https://cdn.example/big.webp", max_bytes=1024, transport=transport))


def test_fetch_download_accepts_body_at_the_limit() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"\0" * 1024))

    downloaded = asyncio.run(fetch_download("https://cdn.example/ok.webp", max_bytes=1024, transport=transport))

    assert len(downloaded.data) == 1024


def test_fetch_download_rejects_non_http() -> None:
    with pytest.raises(ValueError):
        asyncio.run(fetch_download("ftp://cdn.example/out.webp"))
