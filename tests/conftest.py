"""
Shared fixtures for linkcard tests.

Network access is never required: HTTP seams are patched and images are
generated in memory with Pillow.
"""

import io
import logging
from typing import Callable, Dict, Optional
from unittest.mock import MagicMock

import pytest
import requests
from PIL import Image
from requests.structures import CaseInsensitiveDict

from linkcard.models import FetchedContent


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Factory producing encoded image bytes of a given size and format."""

    def _make(size=(400, 200), fmt="PNG", color=(200, 30, 30)) -> bytes:
        buffer = io.BytesIO()
        Image.new("RGB", size, color).save(buffer, format=fmt)
        return buffer.getvalue()

    return _make


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    """Factory producing ``requests.Response`` look-alikes."""

    def _make(
        body: bytes = b"",
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
        url: str = "https://example.com/",
        chunks=None,
        encoding: Optional[str] = None,
    ) -> MagicMock:
        resp = MagicMock(spec=requests.Response)
        resp.status_code = status_code
        resp.url = url
        resp.encoding = encoding
        resp.content = body
        resp.text = body.decode("utf-8", "replace")
        resp.headers = CaseInsensitiveDict(headers or {})
        resp.iter_content.return_value = iter(chunks if chunks is not None else [body])
        if status_code >= 400:
            resp.raise_for_status.side_effect = requests.HTTPError(
                f"{status_code} Error", response=resp
            )
        return resp

    return _make


@pytest.fixture
def html_content() -> Callable[..., FetchedContent]:
    """Factory wrapping an HTML string in a :class:`FetchedContent`."""

    def _make(
        html: str,
        url: str = "https://example.com/article",
        content_type: str = "text/html; charset=utf-8",
    ) -> FetchedContent:
        return FetchedContent(
            url=url,
            text=html,
            content=html.encode("utf-8"),
            headers={"content-type": content_type},
        )

    return _make


@pytest.fixture
def debug_logs(caplog):
    caplog.set_level(logging.DEBUG, logger="linkcard")
    return caplog


OG_PAGE = """
<html>
  <head>
    <title>Fallback title</title>
    <meta property="og:title" content="Open Graph title" />
    <meta property="og:description" content="Open Graph description" />
    <meta property="og:image" content="https://cdn.example.com/cover.png" />
    <meta property="og:url" content="https://example.com/canonical" />
    <meta name="description" content="Plain description" />
    <link rel="canonical" href="https://example.com/link-canonical" />
  </head>
  <body><p>Hello</p></body>
</html>
"""


@pytest.fixture
def og_page() -> str:
    return OG_PAGE
