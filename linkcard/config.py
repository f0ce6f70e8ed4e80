"""Configuration objects and constants for link preview generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Mapping, Optional

if TYPE_CHECKING:
    from .media import MediaPreparer
    from .models import UploadResult

THUMBNAIL_WIDTH_PX = 192
DEFAULT_TIMEOUT_MS = 3000
THUMBNAIL_LINK_MEDIA_TYPE = "thumbnail-link"

UploadFunction = Callable[..., Awaitable["UploadResult"]]


@dataclass(frozen=True)
class FetchOptions:
    """Transport settings shared by every request made for one preview."""

    timeout: int = DEFAULT_TIMEOUT_MS
    """Timeout in ms"""
    proxy_url: Optional[str] = None
    headers: Optional[Mapping[str, str]] = None

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000.0

    @property
    def proxies(self) -> Optional[Dict[str, str]]:
        if not self.proxy_url:
            return None
        return {"http": self.proxy_url, "https": self.proxy_url}

    def request_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments understood by ``requests.Session.get``."""
        kwargs: Dict[str, Any] = {"timeout": self.timeout_seconds}
        if self.headers:
            kwargs["headers"] = dict(self.headers)
        if self.proxies:
            kwargs["proxies"] = self.proxies
        return kwargs


@dataclass(frozen=True)
class URLGenerationOptions:
    """Top-level settings that control URL detection, fetching and thumbnails.

    ``upload_image`` switches the thumbnail branch: when present the image is
    handed to ``prepare_media`` and uploaded, otherwise a JPEG thumbnail is
    compressed locally.
    """

    thumbnail_width: int = THUMBNAIL_WIDTH_PX
    fetch_opts: FetchOptions = field(default_factory=FetchOptions)
    upload_image: Optional[UploadFunction] = None
    logger: Optional[logging.Logger] = None
    prepare_media: Optional["MediaPreparer"] = None
