"""Facebook video URL validation and canonicalization."""
from __future__ import annotations

import re
from typing import Final, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fb_downloader.domain.video import ValidationResult

_FACEBOOK_DOMAINS: Final[tuple[str, ...]] = ("facebook.com", "fb.watch")

# Query parameters that identify the video; everything else is tracking noise.
_KEPT_QUERY_PARAMS: Final[frozenset[str]] = frozenset({"v", "id", "story_fbid"})

_VIDEO_PATH_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"/videos?/"),
    re.compile(r"/video\.php"),
    re.compile(r"/watch/?"),
    re.compile(r"/reel/"),
    re.compile(r"/share/[vr]/"),
    re.compile(r"/story\.php"),
    re.compile(r"/posts/"),
    re.compile(r"/photo\.php"),
)
_FB_WATCH_PATH: Final[re.Pattern[str]] = re.compile(r"^/[\w-]+/?$")

SUPPORTED_FORMATS: Final[tuple[str, ...]] = (
    "https://www.facebook.com/<page>/videos/<id>",
    "https://www.facebook.com/watch/?v=<id>",
    "https://www.facebook.com/video.php?v=<id>",
    "https://www.facebook.com/reel/<id>",
    "https://www.facebook.com/share/v/<code>",
    "https://www.facebook.com/story.php?story_fbid=<id>&id=<id>",
    "https://www.facebook.com/<page>/posts/<id>",
    "https://fb.watch/<code>",
)


def supported_formats_message() -> str:
    """Return the 400 error text describing accepted URL shapes."""

    return "Invalid Facebook video URL. Supported formats: " + ", ".join(SUPPORTED_FORMATS)


def _hostname(url: str) -> Optional[str]:
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme not in {"http", "https"} or not parts.hostname:
        return None
    return parts.hostname


def is_facebook_host(hostname: str) -> bool:
    """Whether ``hostname`` belongs to Facebook (including ``fb.watch`` short links).

    Matches whole domain labels only, so ``facebook.com.attacker.example`` and
    ``notfacebook.com`` are rejected.
    """

    host: str = hostname.lower().rstrip(".")
    return any(host == domain or host.endswith("." + domain) for domain in _FACEBOOK_DOMAINS)


def canonicalize(url: str) -> str:
    """Strip tracking query parameters and the fragment from ``url``.

    Notes
    -----
    - Keeps only ``v``, ``id`` and ``story_fbid``, in their original order.
    - Idempotent: ``canonicalize(canonicalize(u)) == canonicalize(u)``.

    Raises
    ------
    ValueError
        If ``url`` cannot be parsed.
    """

    parts = urlsplit(url.strip())
    kept: list[tuple[str, str]] = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key in _KEPT_QUERY_PARAMS
    ]
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, urlencode(kept), ""))


def _has_video_path(hostname: str, canonical_url: str) -> bool:
    parts = urlsplit(canonical_url)
    short_link: bool = hostname == "fb.watch" or hostname.endswith(".fb.watch")
    if short_link and _FB_WATCH_PATH.match(parts.path or ""):
        return True
    target: str = parts.path + (f"?{parts.query}" if parts.query else "")
    return any(pattern.search(target) for pattern in _VIDEO_PATH_PATTERNS)


def validate(raw: Optional[str]) -> ValidationResult:
    """Validate ``raw`` as a Facebook video URL and canonicalize it.

    Parameters
    ----------
    raw: Optional[str]
        User-provided URL string.

    Returns
    -------
    ValidationResult
        ``ok=True`` with the canonical URL when the host is Facebook and the path
        looks like a video-bearing page; otherwise ``ok=False``. Never raises.

    Notes
    -----
    - The path allow-list is permissive: acceptance does not guarantee the page
      actually contains a video.
    """

    if not raw or not raw.strip():
        return ValidationResult(ok=False)

    hostname: Optional[str] = _hostname(raw.strip())
    if hostname is None or not is_facebook_host(hostname):
        return ValidationResult(ok=False)

    try:
        canonical: str = canonicalize(raw)
    except ValueError:
        return ValidationResult(ok=False)

    if not _has_video_path(hostname.lower(), canonical):
        return ValidationResult(ok=False)
    return ValidationResult(ok=True, canonical_url=canonical)
