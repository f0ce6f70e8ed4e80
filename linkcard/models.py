"""Data models used throughout the preview pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class FetchedContent:
    """Body and normalized headers of a fetched document."""

    url: str
    text: str
    content: bytes
    headers: Dict[str, str]

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


@dataclass
class RawPreviewMetadata:
    """Metadata describing the linked page, independent of the extractor."""

    url: str
    title: Optional[str]
    description: Optional[str] = None
    image: Optional[str] = None
    favicon: Optional[str] = None
    images: List[str] = field(default_factory=list)
    site_name: Optional[str] = None
    media_type: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.title and self.title.strip())


@dataclass
class Thumbnail:
    """JPEG thumbnail together with the dimensions of its source image."""

    buffer: bytes
    width: int
    height: int
    original_width: int
    original_height: int


@dataclass
class UploadResult:
    """Location of an uploaded media object."""

    media_url: str
    direct_path: Optional[str] = None


@dataclass
class ImageMessage:
    """High quality media reference produced by the upload pipeline."""

    url: str
    mimetype: str
    file_sha256: bytes
    file_length: int
    direct_path: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    jpeg_thumbnail: Optional[bytes] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "url": self.url,
            "mimetype": self.mimetype,
            "fileSha256": self.file_sha256,
            "fileLength": self.file_length,
        }
        if self.direct_path is not None:
            data["directPath"] = self.direct_path
        if self.width is not None:
            data["width"] = self.width
        if self.height is not None:
            data["height"] = self.height
        if self.jpeg_thumbnail is not None:
            data["jpegThumbnail"] = self.jpeg_thumbnail
        return data


@dataclass
class UrlInfo:
    """Preview card attached to an outgoing message."""

    matched_text: str
    canonical_url: str
    title: str
    description: Optional[str] = None
    original_thumbnail_url: Optional[str] = None
    jpeg_thumbnail: Optional[bytes] = None
    high_quality_thumbnail: Optional[ImageMessage] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the field names expected by message payloads."""
        data: Dict[str, Any] = {
            "canonical-url": self.canonical_url,
            "matched-text": self.matched_text,
            "title": self.title,
        }
        if self.description is not None:
            data["description"] = self.description
        if self.original_thumbnail_url is not None:
            data["originalThumbnailUrl"] = self.original_thumbnail_url
        if self.jpeg_thumbnail is not None:
            data["jpegThumbnail"] = self.jpeg_thumbnail
        if self.high_quality_thumbnail is not None:
            data["highQualityThumbnail"] = self.high_quality_thumbnail.to_dict()
        return data
