"""Synthetic placeholder results used when nothing real could be resolved."""
from __future__ import annotations

import base64
import random
from datetime import date
from typing import Final, Optional

from fb_downloader.domain.video import Provenance, VideoMetadata, VideoQuality, VideoResult

TOKEN_LENGTH: Final[int] = 8

SAMPLE_QUALITIES: Final[tuple[tuple[str, str, str], ...]] = (
    ("HD 720p", "https://sample-videos.com/zip/10/mp4/SampleVideo_1280x720_1mb.mp4", "1.2 MB"),
    ("SD 480p", "https://sample-videos.com/zip/10/mp4/SampleVideo_640x360_1mb.mp4", "0.8 MB"),
)


def fallback_token(url: str) -> str:
    """Derive a short, stable token from ``url``.

    The token is the tail of the URL-safe base64 form of ``url``: every
    ``https://`` URL shares the same leading characters, while the tail
    encodes the video id.
    """

    encoded: str = base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")
    return encoded[-TOKEN_LENGTH:]


def generate_fallback(url: str, rng: Optional[random.Random] = None) -> VideoResult:
    """Build placeholder demo data for ``url``.

    Parameters
    ----------
    url: str
        The (canonical) URL the user asked for.
    rng: Optional[random.Random]
        Source of randomness for duration and view count; defaults to the
        module-level generator.

    Returns
    -------
    VideoResult
        Always succeeds. ``provenance`` is ``"fallback"``.

    Notes
    -----
    - Title and thumbnail derive from ``fallback_token(url)`` and are stable per URL.
    - Duration and view count are random on every call.
    """

    rand = rng or random
    token: str = fallback_token(url)

    duration: str = f"{rand.randint(1, 5)}:{rand.randint(0, 59):02d}"
    views: int = rand.randint(1000, 10999)

    return VideoResult(
        title=f"Facebook Video - {token}",
        thumbnail=f"https://picsum.photos/400/300?random={token}",
        duration=duration,
        qualities=[
            VideoQuality(quality=label, url=sample_url, size=size, type="video/mp4")
            for label, sample_url, size in SAMPLE_QUALITIES
        ],
        metadata=VideoMetadata(
            views=f"{views:,}",
            uploadDate=date.today().strftime("%d/%m/%Y"),
            source="Facebook",
        ),
        provenance=Provenance.FALLBACK,
    )
