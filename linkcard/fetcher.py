"""HTTP retrieval of linked documents and preview images."""

from __future__ import annotations

import logging
from contextlib import closing
from typing import Any, Dict, Mapping, Optional

import requests

from .config import FetchOptions
from .errors import FetchError
from .models import FetchedContent

logger = logging.getLogger("linkcard")

MAX_DOCUMENT_BYTES = 2 * 1024 * 1024
CHUNK_SIZE = 64 * 1024
NON_DOCUMENT_PREFIXES = ("image/", "audio/", "video/", "application/")
MARKUP_APPLICATION_TYPES = {"application/xhtml+xml", "application/xml"}


def normalize_headers(headers: Mapping[str, Any]) -> Dict[str, str]:
    """Flatten response headers into a plain ``str -> str`` mapping.

    Names are lower-cased; list values and other non-string values are
    stringified so extractors never see anything but text.
    """
    normalized: Dict[str, str] = {}
    for key, value in headers.items():
        if isinstance(value, (list, tuple)):
            value = ",".join(str(item) for item in value)
        normalized[str(key).lower()] = str(value)
    return normalized


def is_document_type(content_type: str) -> bool:
    """True unless the Content-Type names media or a non-markup binary."""
    mime = content_type.split(";")[0].strip().lower()
    if mime in MARKUP_APPLICATION_TYPES:
        return True
    return not mime.startswith(NON_DOCUMENT_PREFIXES)


def read_document_stream(
    resp: requests.Response, max_bytes: int = MAX_DOCUMENT_BYTES
) -> bytes:
    """Read at most ``max_bytes`` of a streamed body; the rest is never downloaded."""
    buffer = bytearray()
    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
        if not chunk:
            continue
        buffer.extend(chunk)
        if len(buffer) >= max_bytes:
            logger.debug("Truncated %s to %d bytes", resp.url, max_bytes)
            break
    return bytes(buffer[:max_bytes])


def decode_body(content: bytes, content_type: str, encoding: Optional[str]) -> str:
    """Decode with the declared charset, UTF-8 otherwise; never sniffs the body."""
    codec = encoding if encoding and "charset=" in content_type.lower() else "utf-8"
    try:
        return content.decode(codec, errors="replace")
    except LookupError:
        logger.debug("Unknown charset %s, decoding as utf-8", codec)
        return content.decode("utf-8", errors="replace")


def fetch_content(url: str, fetch_opts: FetchOptions) -> FetchedContent:
    """Download ``url`` and return its body with normalized headers.

    A single attempt is made. Transport errors and non-2xx responses are
    raised as :class:`FetchError`. Bodies of media and binary responses are
    not read, and documents are cut at ``MAX_DOCUMENT_BYTES``.
    """
    with requests.Session() as session:
        try:
            resp = session.get(url, stream=True, **fetch_opts.request_kwargs())
        except requests.RequestException as exc:
            raise FetchError(url, exc) from exc
        with closing(resp):
            try:
                resp.raise_for_status()
                headers = normalize_headers(resp.headers)
                content_type = headers.get("content-type", "")
                content = b""
                if is_document_type(content_type):
                    content = read_document_stream(resp, MAX_DOCUMENT_BYTES)
                else:
                    logger.debug("Not reading %s body of %s", content_type, url)
            except requests.RequestException as exc:
                raise FetchError(url, exc) from exc
            encoding = resp.encoding
        logger.debug(
            "Fetched %s (status=%s, %d bytes)", url, resp.status_code, len(content)
        )
        return FetchedContent(
            url=url,
            text=decode_body(content, content_type, encoding),
            content=content,
            headers=headers,
        )


def open_image_stream(url: str, fetch_opts: FetchOptions) -> requests.Response:
    """Open a streamed GET for an image; the caller must close the response."""
    try:
        resp = requests.get(url, stream=True, **fetch_opts.request_kwargs())
    except requests.RequestException as exc:
        raise FetchError(url, exc) from exc
    try:
        resp.raise_for_status()
    except requests.HTTPError as exc:
        resp.close()
        raise FetchError(url, exc) from exc
    return resp
