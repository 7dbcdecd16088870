"""Domain models for resolved videos and the download API payloads.

Field names follow the JSON shape consumed by the static client (``quality``,
``size``, ``type``, ``uploadDate``), so models are returned as-is.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

TITLE_MAX_CHARS: int = 100
DESCRIPTION_MAX_CHARS: int = 200
MAX_QUALITIES: int = 3


class Provenance(str, Enum):
    """Where a ``VideoResult`` came from.

    Notes
    -----
    - ``SCRAPED``: direct URLs mined from the Facebook page HTML.
    - ``EXTERNAL``: an external resolver (yt-dlp) produced the URLs.
    - ``FALLBACK``: synthetic demo data; carries no real information about the video.
    """

    SCRAPED = "scraped"
    EXTERNAL = "external"
    FALLBACK = "fallback"


class VideoQuality(BaseModel):
    """One downloadable rendition of a video."""

    quality: str = Field(description="Rendition label, e.g. HD or SD")
    url: str = Field(description="Direct video file URL")
    size: str = Field(default="Unknown", description="Human-readable file size")
    type: str = Field(default="video/mp4", description="MIME type of the file")


class VideoMetadata(BaseModel):
    """Informational, free-text metadata shown next to the video."""

    views: str = Field(default="Unknown", description="View count description")
    uploadDate: str = Field(default="Unknown", description="Upload date description")
    source: str = Field(default="Facebook", description="Source platform name")
    description: Optional[str] = Field(default=None, description="Post description if available")


class VideoResult(BaseModel):
    """Resolution result returned by ``POST /api/download``.

    Notes
    -----
    - ``qualities`` is ordered best-first and holds at most ``MAX_QUALITIES`` entries.
    - Produced fresh per request; never cached or persisted.
    """

    title: str = Field(max_length=TITLE_MAX_CHARS, description="Video title")
    thumbnail: str = Field(description="Thumbnail image URL")
    duration: str = Field(default="--:--", description="Duration description, e.g. 3:07")
    qualities: list[VideoQuality] = Field(
        default_factory=list,
        max_length=MAX_QUALITIES,
        description="Downloadable renditions, best first",
    )
    metadata: VideoMetadata = Field(default_factory=VideoMetadata)
    provenance: Provenance = Field(description="Which pipeline stage produced this result")


class DownloadRequest(BaseModel):
    """Request payload for ``POST /api/download``.

    ``url`` is optional at the schema level so a missing value maps to the
    API's own 400 envelope instead of a framework validation error.
    """

    url: Optional[str] = Field(default=None, description="Facebook video URL to resolve")


class ApiResponse(BaseModel):
    """Envelope used by every ``/api/download`` response."""

    success: bool
    data: Optional[VideoResult] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of URL validation.

    ``canonical_url`` is set only when ``ok`` is true.
    """

    ok: bool
    canonical_url: Optional[str] = None
