"""Exception types raised while building link previews."""

from __future__ import annotations

PREVIEW_UNAVAILABLE_MARKER = "receive a valid"


class LinkPreviewError(Exception):
    """Base class for preview failures."""


class FetchError(LinkPreviewError):
    """The primary document could not be retrieved."""

    def __init__(self, url: str, reason: object) -> None:
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url


class PreviewUnavailableError(LinkPreviewError):
    """The response exists but no valid preview can be derived from it."""

    def __init__(self, detail: str = "response") -> None:
        super().__init__(f"linkcard did not {PREVIEW_UNAVAILABLE_MARKER} {detail}")


class ThumbnailError(LinkPreviewError):
    """The preview image could not be fetched, decoded or re-encoded."""


def is_preview_unavailable(exc: BaseException) -> bool:
    """Return True for failures that mean "nothing to preview" rather than an error."""
    if isinstance(exc, PreviewUnavailableError):
        return True
    if isinstance(exc, FetchError) or not isinstance(exc, LinkPreviewError):
        return False
    return PREVIEW_UNAVAILABLE_MARKER in str(exc)
