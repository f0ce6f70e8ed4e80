"""High-level orchestration turning message text into a preview card."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Optional

from .config import THUMBNAIL_LINK_MEDIA_TYPE, FetchOptions, URLGenerationOptions
from .content import GenericPreviewExtractor, MetadataExtractor, OpenGraphExtractor
from .errors import LinkPreviewError, is_preview_unavailable
from .fetcher import fetch_content
from .images import get_compressed_jpeg_thumbnail
from .media import prepare_thumbnail_link_media
from .models import RawPreviewMetadata, UrlInfo
from .utils import detect_url, ensure_scheme

logger = logging.getLogger("linkcard")

DEFAULT_PREVIEW_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "User-Agent": "WhatsApp/2.23.10.77 A",
}


async def _local_thumbnail(
    image_url: str, opts: URLGenerationOptions, page_url: str
) -> Optional[bytes]:
    log = opts.logger or logger
    try:
        thumbnail = await asyncio.to_thread(
            get_compressed_jpeg_thumbnail, image_url, opts
        )
    except Exception as exc:  # pylint: disable=broad-except
        log.debug(
            "error in generating thumbnail for %s (page %s): %s",
            image_url,
            page_url,
            exc,
            exc_info=True,
        )
        return None
    return thumbnail.buffer


async def build_url_info(
    matched_text: str,
    metadata: RawPreviewMetadata,
    opts: URLGenerationOptions,
) -> UrlInfo:
    """Assemble the preview card and attach its thumbnail.

    With ``opts.upload_image`` the image goes through the media pipeline and
    the uploaded message is kept as the high quality thumbnail; otherwise a
    JPEG is compressed locally and thumbnail failures are only logged.
    """
    url_info = UrlInfo(
        matched_text=matched_text,
        canonical_url=metadata.url,
        title=metadata.title or "",
        description=metadata.description,
        original_thumbnail_url=metadata.image,
    )

    if opts.upload_image:
        prepare_media = opts.prepare_media or prepare_thumbnail_link_media
        image_message = await prepare_media(
            metadata.image,
            upload=opts.upload_image,
            media_type_override=THUMBNAIL_LINK_MEDIA_TYPE,
            options=opts.fetch_opts,
            thumbnail_width=opts.thumbnail_width,
        )
        if image_message is not None and image_message.jpeg_thumbnail:
            url_info.jpeg_thumbnail = bytes(image_message.jpeg_thumbnail)
        url_info.high_quality_thumbnail = image_message
    elif metadata.image:
        url_info.jpeg_thumbnail = await _local_thumbnail(
            metadata.image, opts, ensure_scheme(matched_text)
        )
    return url_info


async def get_url_info(
    text: str,
    opts: Optional[URLGenerationOptions] = None,
    extractor: Optional[MetadataExtractor] = None,
) -> Optional[UrlInfo]:
    """Generate the link preview for the first URL found in ``text``.

    Returns ``None`` when the text has no URL, the page has no title, or the
    response cannot yield a valid preview. Any other failure propagates.
    """
    opts = opts or URLGenerationOptions()
    extractor = extractor or GenericPreviewExtractor()
    log = opts.logger or logger

    detected_url = detect_url(text)
    if not detected_url:
        return None

    try:
        fetched = await asyncio.to_thread(fetch_content, detected_url, opts.fetch_opts)
        metadata = await asyncio.to_thread(
            extractor.extract, fetched.text, fetched.headers, detected_url
        )
        if metadata is None or not metadata.found:
            return None
        return await build_url_info(text, metadata, opts)
    except LinkPreviewError as exc:
        if not is_preview_unavailable(exc):
            raise
        log.debug("No valid preview for %s: %s", detected_url, exc)
        return None


async def get_link_preview(
    url: str,
    opts: Optional[URLGenerationOptions] = None,
) -> Optional[UrlInfo]:
    """Scrape Open Graph metadata from a known URL.

    Browser-like headers are sent unless the caller overrides them. Every
    failure is logged at debug level and yields ``None``.
    """
    opts = opts or URLGenerationOptions()
    log = opts.logger or logger
    headers = dict(DEFAULT_PREVIEW_HEADERS)
    headers.update(opts.fetch_opts.headers or {})
    direct_opts = dataclasses.replace(
        opts,
        fetch_opts=FetchOptions(
            timeout=opts.fetch_opts.timeout,
            proxy_url=opts.fetch_opts.proxy_url,
            headers=headers,
        ),
    )

    try:
        fetched = await asyncio.to_thread(fetch_content, url, direct_opts.fetch_opts)
        metadata = await asyncio.to_thread(
            OpenGraphExtractor().extract, fetched.text, fetched.headers, url
        )
        if metadata is None:
            return None
        return await build_url_info(url, metadata, direct_opts)
    except Exception as exc:  # pylint: disable=broad-except
        log.debug("error in getting link preview for %s: %s", url, exc, exc_info=True)
        return None
