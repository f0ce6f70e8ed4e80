"""HTML metadata extraction strategies.

Every strategy takes the fetched body, its normalized headers and the
requested URL, and returns :class:`RawPreviewMetadata` or ``None`` when the
document offers nothing to preview.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Protocol, Sequence, runtime_checkable
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from lxml.etree import LxmlError
from readability import Document
from readability.readability import Unparseable

from .errors import PreviewUnavailableError
from .fetcher import is_document_type
from .models import RawPreviewMetadata

logger = logging.getLogger("linkcard")

DEFAULT_FAVICON_PATH = "/favicon.ico"
FAVICON_SELECTORS = (
    'link[rel="icon"]',
    'link[rel="shortcut icon"]',
    'link[rel="apple-touch-icon"]',
)


@runtime_checkable
class MetadataExtractor(Protocol):
    """Pluggable document-to-metadata strategy."""

    name: str

    def extract(
        self, body: str, headers: Mapping[str, str], url: str
    ) -> Optional[RawPreviewMetadata]:
        ...


def _attr(soup: BeautifulSoup, selector: str, attribute: str) -> Optional[str]:
    """Return a stripped attribute of the first match, treating blanks as missing."""
    tag = soup.select_one(selector)
    if tag is None:
        return None
    value = tag.get(attribute)
    if isinstance(value, list):
        value = " ".join(value)
    if not value or not value.strip():
        return None
    return value.strip()


def _meta_property(soup: BeautifulSoup, prop: str) -> Optional[str]:
    return _attr(soup, f'meta[property="{prop}"]', "content")


def _meta_name(soup: BeautifulSoup, name: str) -> Optional[str]:
    return _attr(soup, f'meta[name="{name}"]', "content")


def _title_text(soup: BeautifulSoup) -> Optional[str]:
    if soup.title is None:
        return None
    text = soup.title.get_text(strip=True)
    return text or None


def resolve_favicon(soup: BeautifulSoup, page_url: str) -> str:
    """Pick the page icon and resolve it against the page URL."""
    href = None
    for selector in FAVICON_SELECTORS:
        href = _attr(soup, selector, "href")
        if href:
            break
    return urljoin(page_url, href or DEFAULT_FAVICON_PATH)


class OpenGraphExtractor:
    """Scrape Open Graph tags directly, falling back to plain HTML tags."""

    name = "open_graph"

    def __init__(self, parser: str = "html.parser") -> None:
        self.parser = parser

    def extract(
        self, body: str, headers: Mapping[str, str], url: str
    ) -> Optional[RawPreviewMetadata]:
        soup = BeautifulSoup(body, self.parser)

        canonical_url = (
            _meta_property(soup, "og:url")
            or _attr(soup, 'link[rel="canonical"]', "href")
            or url
        )
        title = _meta_property(soup, "og:title") or _title_text(soup)
        description = _meta_property(soup, "og:description") or _meta_name(
            soup, "description"
        )
        image = _meta_property(soup, "og:image")

        metadata = RawPreviewMetadata(
            url=canonical_url,
            title=title,
            description=description,
            image=image,
            favicon=resolve_favicon(soup, url),
            images=[image] if image else [],
        )
        if not metadata.found:
            logger.debug("No title found in %s", url)
            return None
        return metadata


class GenericPreviewExtractor:
    """Content-type aware best-effort preview.

    Media and binary responses never carry a title, so they resolve to
    ``None``. HTML (or an unlabeled body) is parsed for Open Graph, Twitter
    card and plain HTML metadata, with readability supplying the title when
    no tag does.
    """

    name = "generic"

    def __init__(self, parser: str = "html.parser") -> None:
        self.parser = parser

    def extract(
        self, body: str, headers: Mapping[str, str], url: str
    ) -> Optional[RawPreviewMetadata]:
        if not url:
            raise PreviewUnavailableError("url")

        content_type = headers.get("content-type", "")
        if not is_document_type(content_type):
            logger.debug("Skipping %s: %s has no preview metadata", url, content_type)
            return None
        if body is None or not body.strip():
            raise PreviewUnavailableError("response body")

        soup = BeautifulSoup(body, self.parser)
        title = (
            _meta_property(soup, "og:title")
            or _meta_name(soup, "twitter:title")
            or self._readable_title(body, url)
            or _title_text(soup)
        )
        if not title:
            logger.debug("No title found in %s", url)
            return None

        images = self._images(soup, url)
        return RawPreviewMetadata(
            url=url,
            title=title,
            description=(
                _meta_property(soup, "og:description")
                or _meta_name(soup, "twitter:description")
                or _meta_name(soup, "description")
            ),
            image=images[0] if images else None,
            favicon=resolve_favicon(soup, url),
            images=images,
            site_name=_meta_property(soup, "og:site_name"),
            media_type=_meta_property(soup, "og:type") or "website",
        )

    @staticmethod
    def _readable_title(body: str, url: str) -> Optional[str]:
        try:
            title = Document(body, url=url).short_title()
        except (Unparseable, LxmlError) as exc:
            logger.debug("Readability could not parse %s: %s", url, exc)
            return None
        if not title or not title.strip():
            return None
        return title.strip()

    @staticmethod
    def _images(soup: BeautifulSoup, url: str) -> List[str]:
        images: List[str] = []
        for tag in soup.select('meta[property="og:image"]'):
            content = (tag.get("content") or "").strip()
            if content:
                images.append(urljoin(url, content))
        if images:
            return images
        for img in soup.find_all("img"):
            src = (img.get("src") or "").strip()
            if not src or src.startswith("data:"):
                continue
            images.append(urljoin(url, src))
        return images


class FallbackExtractor:
    """Run extractors in order and keep the first one that finds a title."""

    name = "fallback"

    def __init__(self, extractors: Sequence[MetadataExtractor]) -> None:
        if not extractors:
            raise ValueError("FallbackExtractor needs at least one extractor")
        self.extractors = list(extractors)

    def extract(
        self, body: str, headers: Mapping[str, str], url: str
    ) -> Optional[RawPreviewMetadata]:
        for extractor in self.extractors:
            metadata = extractor.extract(body, headers, url)
            if metadata is not None and metadata.found:
                return metadata
            logger.debug("Extractor %s found nothing for %s", extractor.name, url)
        return None
