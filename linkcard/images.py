"""Image downloading, validation and thumbnail compression."""

from __future__ import annotations

import io
import logging
from contextlib import closing
from typing import Optional, Tuple

import requests
from filetype import guess
from PIL import Image

from .config import FetchOptions, URLGenerationOptions
from .errors import FetchError, ThumbnailError
from .fetcher import open_image_stream
from .models import Thumbnail

logger = logging.getLogger("linkcard")

MAX_IMAGE_BYTES = 10 * 1024 * 1024
ALLOWED_IMAGE_TYPES = {"png", "jpg", "gif", "webp", "bmp", "tiff"}
JPEG_QUALITY = 50
CHUNK_SIZE = 64 * 1024


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type from its signature; returns a lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext in ("jpeg", "jpe"):
            return "jpg"
        if ext == "tif":
            return "tiff"
        return ext
    return None


def infer_image_mimetype(content_type: Optional[str], data: bytes) -> Optional[str]:
    """Guess the MIME type from the file signature, then from HTTP metadata."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        return kind.mime
    if not content_type:
        return None
    mime = content_type.split(";")[0].strip().lower()
    if mime.startswith("image/"):
        return mime
    return None


def read_image_stream(resp: requests.Response, max_bytes: int = MAX_IMAGE_BYTES) -> bytes:
    """Drain a streamed response, refusing bodies larger than ``max_bytes``."""
    buffer = io.BytesIO()
    try:
        for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
            if not chunk:
                continue
            buffer.write(chunk)
            if buffer.tell() > max_bytes:
                logger.warning(
                    "Skipping %s: image larger than %s bytes", resp.url, max_bytes
                )
                raise ThumbnailError(
                    f"Image at {resp.url} is larger than {max_bytes} bytes"
                )
    except requests.RequestException as exc:
        raise FetchError(resp.url, exc) from exc
    return buffer.getvalue()


def fetch_image(url: str, fetch_opts: FetchOptions) -> Tuple[bytes, str]:
    """Download an image with the preview's transport settings.

    Returns the raw bytes and the response Content-Type.
    """
    with closing(open_image_stream(url, fetch_opts)) as resp:
        content_type = resp.headers.get("Content-Type", "")
        data = read_image_stream(resp)
    if not data:
        raise ThumbnailError(f"Empty image response from {url}")
    return data, content_type


def extract_image_thumb(data: bytes, width: int) -> Thumbnail:
    """Decode ``data`` and re-encode it as a JPEG exactly ``width`` pixels wide."""
    if width <= 0:
        raise ValueError(f"Thumbnail width must be positive, got {width}")
    extension = detect_image_format(data)
    if not extension or extension not in ALLOWED_IMAGE_TYPES:
        raise ThumbnailError(f"Unsupported image type: {extension or 'unknown'}")

    try:
        with Image.open(io.BytesIO(data)) as raw_image:
            image = raw_image.convert("RGB")
    except (
        OSError,
        SyntaxError,
        EOFError,
        ValueError,
        Image.DecompressionBombError,
    ) as exc:
        raise ThumbnailError(f"Could not decode image: {exc}") from exc

    original_width, original_height = image.size
    scale = width / float(original_width)
    new_size = (width, max(1, round(original_height * scale)))
    image = image.resize(new_size, Image.Resampling.LANCZOS)

    output = io.BytesIO()
    try:
        image.save(output, format="JPEG", quality=JPEG_QUALITY)
    except OSError as exc:
        raise ThumbnailError(f"Could not encode thumbnail: {exc}") from exc
    return Thumbnail(
        buffer=output.getvalue(),
        width=new_size[0],
        height=new_size[1],
        original_width=original_width,
        original_height=original_height,
    )


def get_compressed_jpeg_thumbnail(url: str, opts: URLGenerationOptions) -> Thumbnail:
    """Fetch an image and generate a thumbnail for it."""
    data, _ = fetch_image(url, opts.fetch_opts)
    thumbnail = extract_image_thumb(data, opts.thumbnail_width)
    logger.debug(
        "Compressed %s from %dx%d to %dx%d (%d bytes)",
        url,
        thumbnail.original_width,
        thumbnail.original_height,
        thumbnail.width,
        thumbnail.height,
        len(thumbnail.buffer),
    )
    return thumbnail
