"""Upload of preview images as high quality media references."""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
from typing import Optional, Protocol

from .config import (
    THUMBNAIL_LINK_MEDIA_TYPE,
    THUMBNAIL_WIDTH_PX,
    FetchOptions,
    UploadFunction,
)
from .errors import ThumbnailError
from .images import extract_image_thumb, fetch_image, infer_image_mimetype
from .models import ImageMessage

logger = logging.getLogger("linkcard")

DEFAULT_IMAGE_MIMETYPE = "image/jpeg"


class MediaPreparer(Protocol):
    """Turns an image URL into an uploaded :class:`ImageMessage`."""

    async def __call__(
        self,
        image_url: Optional[str],
        *,
        upload: UploadFunction,
        media_type_override: str,
        options: FetchOptions,
        thumbnail_width: int,
    ) -> Optional[ImageMessage]:
        ...


async def prepare_thumbnail_link_media(
    image_url: Optional[str],
    *,
    upload: UploadFunction,
    media_type_override: str = THUMBNAIL_LINK_MEDIA_TYPE,
    options: FetchOptions,
    thumbnail_width: int = THUMBNAIL_WIDTH_PX,
) -> Optional[ImageMessage]:
    """Download the preview image, embed a thumbnail and upload the original.

    ``upload`` is awaited as ``upload(data, media_type=..., file_sha256_b64=...,
    timeout_ms=...)`` and must return an :class:`UploadResult`. Download and
    upload errors propagate; a thumbnail that cannot be generated only leaves
    ``jpeg_thumbnail`` empty.
    """
    if not image_url:
        return None

    data, content_type = await asyncio.to_thread(fetch_image, image_url, options)
    digest = hashlib.sha256(data).digest()

    thumbnail = None
    try:
        thumbnail = await asyncio.to_thread(extract_image_thumb, data, thumbnail_width)
    except ThumbnailError as exc:
        logger.debug("Could not embed thumbnail for %s: %s", image_url, exc)

    result = await upload(
        data,
        media_type=media_type_override,
        file_sha256_b64=base64.b64encode(digest).decode("ascii"),
        timeout_ms=options.timeout,
    )
    logger.debug("Uploaded %s as %s", image_url, result.media_url)

    return ImageMessage(
        url=result.media_url,
        direct_path=result.direct_path,
        mimetype=infer_image_mimetype(content_type, data) or DEFAULT_IMAGE_MIMETYPE,
        file_sha256=digest,
        file_length=len(data),
        width=thumbnail.original_width if thumbnail else None,
        height=thumbnail.original_height if thumbnail else None,
        jpeg_thumbnail=thumbnail.buffer if thumbnail else None,
    )
