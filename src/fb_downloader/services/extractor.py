"""Best-effort extraction of direct video URLs and metadata from Facebook HTML.

Facebook embeds direct CDN links inside JSON blobs in the page. The keys that
carry them drift over time, so they live in an ordered pattern table (HD keys
first) followed by a permissive last-resort scan for any absolute video URL.
"""
from __future__ import annotations

import html as html_lib
import logging
import re
from datetime import datetime, timezone
from typing import Final, Iterable, Iterator, Optional
from urllib.parse import unquote

from fb_downloader.domain.video import (
    DESCRIPTION_MAX_CHARS,
    MAX_QUALITIES,
    TITLE_MAX_CHARS,
    Provenance,
    VideoMetadata,
    VideoQuality,
    VideoResult,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE: Final[str] = "Facebook Video"
PLACEHOLDER_THUMBNAIL: Final[str] = "https://placehold.co/600x400/1877f2/FFFFFF?text=Facebook+Video"

# An HTML attribute value in either quote style; the other quote may appear inside it.
_QUOTED_VALUE: Final[str] = r'(?:"([^"]*)"|\'([^\']*)\')'
_OG_VIDEO_PROPERTY: Final[str] = r'property=["\']og:video(?::secure_url|:url)?["\']'

# Most-preferred first; the first accepted candidate is labelled HD.
VIDEO_URL_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r'"playable_url_quality_hd"\s*:\s*"([^"]+)"'),
    re.compile(r'"browser_native_hd_url"\s*:\s*"([^"]+)"'),
    re.compile(r'"hd_src(?:_no_ratelimit)?"\s*:\s*"([^"]+)"'),
    re.compile(r'"playable_url"\s*:\s*"([^"]+)"'),
    re.compile(r'"browser_native_sd_url"\s*:\s*"([^"]+)"'),
    re.compile(r'"sd_src(?:_no_ratelimit)?"\s*:\s*"([^"]+)"'),
    re.compile(rf"<meta\s+[^>]*?{_OG_VIDEO_PROPERTY}[^>]*?content={_QUOTED_VALUE}", re.IGNORECASE),
    re.compile(rf"<meta\s+[^>]*?content={_QUOTED_VALUE}[^>]*?{_OG_VIDEO_PROPERTY}", re.IGNORECASE),
)

# Absolute URLs, possibly with JSON-escaped slashes (https:\/\/...)
_RAW_URL_PATTERN: Final[re.Pattern[str]] = re.compile(r'https?:\\?/\\?/[^"\'\s<>]+')

_VIDEO_MIME_TYPES: Final[dict[str, str]] = {
    "mp4": "video/mp4",
    "m4v": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
}
_VIDEO_MARKER: Final[re.Pattern[str]] = re.compile(
    r"\.(mp4|m4v|webm|mov)(?=$|[?&#/])", re.IGNORECASE
)
_PLACEHOLDER_MARKERS: Final[tuple[str, ...]] = ("example.com", "placeholder", "{", "}")

_ESCAPE_SEQUENCES: Final[tuple[tuple[str, str], ...]] = (
    ("\\/", "/"),
    ("\\u0025", "%"),
    ("\\u003d", "="),
    ("\\u003D", "="),
    ("\\u0026", "&"),
    ("\\u002f", "/"),
    ("\\u002F", "/"),
    ("&amp;", "&"),
)

_TITLE_SUFFIX: Final[re.Pattern[str]] = re.compile(r"\s*[|\-–—]\s*Facebook\s*$", re.IGNORECASE)
_TITLE_TAG: Final[re.Pattern[str]] = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)

_DURATION_MS: Final[re.Pattern[str]] = re.compile(r'"playable_duration_in_ms"\s*:\s*(\d+)')
_DURATION_S: Final[re.Pattern[str]] = re.compile(r'"length_in_second"\s*:\s*(\d+(?:\.\d+)?)')
_VIEW_COUNT: Final[re.Pattern[str]] = re.compile(r'"(?:video_view_count|play_count)"\s*:\s*(\d+)')
_PUBLISH_TIME: Final[re.Pattern[str]] = re.compile(r'"(?:publish_time|creation_time)"\s*:\s*(\d{9,11})(?!\d)')


def unescape_url(raw: str) -> str:
    """Reverse JSON escaping used by Facebook's embedded data and percent-decode.

    Notes
    -----
    - Handles escaped slashes (``\\/``), unicode-escaped ``%``, ``=``, ``&`` and
      ``/``, and the ``&amp;`` HTML entity.
    """

    value: str = raw
    for seq, replacement in _ESCAPE_SEQUENCES:
        value = value.replace(seq, replacement)
    return unquote(value)


def video_mime_type(url: str) -> Optional[str]:
    """Return the MIME type for the first video-file marker in ``url``, if any."""

    match = _VIDEO_MARKER.search(url)
    if match is None:
        return None
    return _VIDEO_MIME_TYPES[match.group(1).lower()]


def _captured(match: re.Match[str]) -> str:
    return next((group for group in match.groups() if group is not None), "")


def _is_acceptable(url: str) -> bool:
    if not url.startswith(("http://", "https://")):
        return False
    if video_mime_type(url) is None:
        return False
    lowered: str = url.lower()
    return not any(marker in lowered for marker in _PLACEHOLDER_MARKERS)


def _accepted(raw_values: Iterable[str], seen: set[str]) -> Iterator[str]:
    for raw in raw_values:
        url: str = unescape_url(raw)
        if url in seen or not _is_acceptable(url):
            continue
        seen.add(url)
        yield url


def find_video_urls(html: str) -> list[str]:
    """Return up to ``MAX_QUALITIES`` decoded video URLs, most preferred first.

    Notes
    -----
    - Patterns are tried in table order and each scans the whole document.
    - The raw absolute-URL scan only runs when the table yields nothing.
    """

    seen: set[str] = set()
    urls: list[str] = []
    for pattern in VIDEO_URL_PATTERNS:
        for url in _accepted((_captured(m) for m in pattern.finditer(html)), seen):
            urls.append(url)
            if len(urls) >= MAX_QUALITIES:
                return urls

    if urls:
        return urls

    raw_matches: Iterator[str] = (m.group(0).rstrip("\\") for m in _RAW_URL_PATTERN.finditer(html))
    for url in _accepted(raw_matches, seen):
        urls.append(url)
        if len(urls) >= MAX_QUALITIES:
            break
    if urls:
        logger.debug("Video URLs found by raw scan", extra={"count": len(urls)})
    return urls


def _meta_content(html: str, prop: str) -> Optional[str]:
    """Read a ``<meta property=... content=...>`` value in either attribute order."""

    escaped: str = re.escape(prop)
    patterns: tuple[str, ...] = (
        rf'<meta\s+[^>]*?(?:property|name)=["\']{escaped}["\'][^>]*?content={_QUOTED_VALUE}',
        rf'<meta\s+[^>]*?content={_QUOTED_VALUE}[^>]*?(?:property|name)=["\']{escaped}["\']',
    )
    for pattern in patterns:
        match = re.search(pattern, html, re.IGNORECASE)
        value: str = _captured(match) if match else ""
        if value.strip():
            return html_lib.unescape(value).strip()
    return None


def extract_title(html: str) -> str:
    title: Optional[str] = _meta_content(html, "og:title")
    if not title:
        match = _TITLE_TAG.search(html)
        if match:
            title = _TITLE_SUFFIX.sub("", html_lib.unescape(match.group(1)).strip()) or None
    return (title or DEFAULT_TITLE)[:TITLE_MAX_CHARS]


def extract_thumbnail(html: str) -> str:
    return _meta_content(html, "og:image") or PLACEHOLDER_THUMBNAIL


def extract_description(html: str) -> Optional[str]:
    description: Optional[str] = _meta_content(html, "og:description")
    return description[:DESCRIPTION_MAX_CHARS] if description else None


def format_duration(total_seconds: float) -> str:
    """Format seconds as ``M:SS`` or ``H:MM:SS``."""

    seconds: int = int(total_seconds)
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def extract_duration(html: str) -> str:
    match = _DURATION_MS.search(html)
    if match:
        return format_duration(int(match.group(1)) / 1000)
    match = _DURATION_S.search(html)
    if match:
        return format_duration(float(match.group(1)))
    return "--:--"


def extract_metadata(html: str) -> VideoMetadata:
    views: str = "Unknown"
    match = _VIEW_COUNT.search(html)
    if match:
        views = f"{int(match.group(1)):,}"

    upload_date: str = "Unknown"
    match = _PUBLISH_TIME.search(html)
    if match:
        published = datetime.fromtimestamp(int(match.group(1)), tz=timezone.utc)
        upload_date = published.strftime("%d/%m/%Y")

    return VideoMetadata(
        views=views,
        uploadDate=upload_date,
        source="Facebook",
        description=extract_description(html),
    )


def extract(html: str) -> Optional[VideoResult]:
    """Extract a ``VideoResult`` from Facebook page HTML.

    Parameters
    ----------
    html: str
        Raw page HTML.

    Returns
    -------
    Optional[VideoResult]
        A scraped result with 1-3 qualities, or ``None`` when no video URL was
        found. ``None`` is not an error; it tells the caller to try the next stage.
    """

    urls: list[str] = find_video_urls(html)
    if not urls:
        return None

    qualities: list[VideoQuality] = [
        VideoQuality(
            quality="HD" if index == 0 else "SD",
            url=url,
            size="Unknown",
            type=video_mime_type(url) or "video/mp4",
        )
        for index, url in enumerate(urls)
    ]
    return VideoResult(
        title=extract_title(html),
        thumbnail=extract_thumbnail(html),
        duration=extract_duration(html),
        qualities=qualities,
        metadata=extract_metadata(html),
        provenance=Provenance.SCRAPED,
    )
