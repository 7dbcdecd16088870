"""External resolution stage: yt-dlp, then configured third-party endpoints.

yt-dlp is the only provider whose output is parsed, through its documented
info-dict contract. The configured HTTP endpoints are an extension point:
they are called with a bounded timeout but their bodies are not interpreted,
so they never produce a result.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp
from yt_dlp import YoutubeDL

from fb_downloader.core.config import Settings, get_settings
from fb_downloader.domain.video import (
    DESCRIPTION_MAX_CHARS,
    MAX_QUALITIES,
    TITLE_MAX_CHARS,
    Provenance,
    VideoMetadata,
    VideoQuality,
    VideoResult,
)
from fb_downloader.services.extractor import PLACEHOLDER_THUMBNAIL, format_duration
from fb_downloader.services.fetcher import BROWSER_USER_AGENT

logger = logging.getLogger(__name__)

_VIDEO_EXTS: dict[str, str] = {"mp4": "video/mp4", "m4v": "video/mp4", "webm": "video/webm", "mov": "video/quicktime"}


def format_file_size(num_bytes: Optional[float]) -> str:
    """Format a byte count as a short human-readable size (``"1.2 MB"``).

    Returns ``"Unknown"`` when the size is missing or zero.
    """

    if not num_bytes:
        return "Unknown"
    size: float = float(num_bytes)
    for unit in ("Bytes", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            break
        size /= 1024
    return f"{round(size, 2):g} {unit}"


def _is_progressive(fmt: dict[str, Any]) -> bool:
    """Whether a yt-dlp format is a single downloadable file with audio and video.

    Notes
    -----
    - yt-dlp uses the literal string ``"none"`` for a missing track; ``None``
      means unknown, which Facebook's extractor reports for its progressive files.
    """

    if fmt.get("ext") not in _VIDEO_EXTS or not fmt.get("url"):
        return False
    if fmt.get("protocol") not in (None, "http", "https"):
        return False
    return fmt.get("vcodec") != "none" and fmt.get("acodec") != "none"


def _select_formats(raw_formats: list[dict[str, Any]]) -> list[VideoQuality]:
    """Pick up to ``MAX_QUALITIES`` progressive formats, tallest first."""

    candidates: list[dict[str, Any]] = [f for f in raw_formats if _is_progressive(f)]

    def sort_key(f: dict[str, Any]) -> tuple[int, float]:
        return (-int(f.get("height") or 0), -float(f.get("tbr") or 0.0))

    candidates.sort(key=sort_key)
    return [
        VideoQuality(
            quality="HD" if index == 0 else "SD",
            url=str(f["url"]),
            size=format_file_size(f.get("filesize") or f.get("filesize_approx")),
            type=_VIDEO_EXTS[f["ext"]],
        )
        for index, f in enumerate(candidates[:MAX_QUALITIES])
    ]


def probe_with_ytdlp(url: str, timeout: float) -> Optional[VideoResult]:
    """Resolve ``url`` with yt-dlp without downloading.

    Parameters
    ----------
    url: str
        Canonical Facebook video URL.
    timeout: float
        Socket timeout passed to yt-dlp.

    Returns
    -------
    Optional[VideoResult]
        A result with ``provenance="external"``, or ``None`` if yt-dlp found no
        progressive format. Blocking; call from a worker thread.
    """

    ydl_opts: dict[str, Any] = {
        "quiet": True,
        "no_warnings": True,
        "noplaylist": True,
        "skip_download": True,
        "socket_timeout": timeout,
        # Runs in a worker thread that outlives asyncio timeouts; keep its network work bounded
        "retries": 0,
        "extractor_retries": 0,
        "http_headers": {"User-Agent": BROWSER_USER_AGENT},
    }
    with YoutubeDL(ydl_opts) as ydl:
        info: dict[str, Any] = ydl.extract_info(url, download=False)

    raw_formats: list[dict[str, Any]] = list(info.get("formats") or [])
    if not raw_formats and info.get("url"):
        raw_formats = [info]
    qualities: list[VideoQuality] = _select_formats(raw_formats)
    if not qualities:
        return None

    dur_val = info.get("duration")
    views = info.get("view_count")
    upload_date: Optional[str] = info.get("upload_date")
    description: Optional[str] = info.get("description")
    return VideoResult(
        title=str(info.get("title") or "Facebook Video")[:TITLE_MAX_CHARS],
        thumbnail=info.get("thumbnail") or PLACEHOLDER_THUMBNAIL,
        duration=format_duration(dur_val) if isinstance(dur_val, (int, float)) else "--:--",
        qualities=qualities,
        metadata=VideoMetadata(
            views=f"{views:,}" if isinstance(views, int) else "Unknown",
            # yt-dlp reports YYYYMMDD
            uploadDate=(
                f"{upload_date[6:8]}/{upload_date[4:6]}/{upload_date[:4]}"
                if upload_date and len(upload_date) == 8
                else "Unknown"
            ),
            source=str(info.get("extractor_key") or "Facebook"),
            description=description[:DESCRIPTION_MAX_CHARS] if description else None,
        ),
        provenance=Provenance.EXTERNAL,
    )


async def _call_endpoint(session: aiohttp.ClientSession, endpoint: str, url: str) -> None:
    """Call one configured resolver endpoint; the response body is not parsed."""

    async with session.get(endpoint, params={"url": url}) as resp:
        resp.raise_for_status()
        logger.info(
            "External endpoint responded; no parser configured",
            extra={"endpoint": endpoint, "status": resp.status},
        )


async def try_external(url: str, settings: Optional[Settings] = None) -> Optional[VideoResult]:
    """Try external resolvers in order and return the first usable result.

    Parameters
    ----------
    url: str
        Canonical Facebook video URL.
    settings: Optional[Settings]
        Settings with ``ytdlp_enabled``, ``external_endpoints`` and
        ``external_timeout_seconds``; defaults to ``get_settings()``.

    Notes
    -----
    - Every provider failure is logged and swallowed; one failing provider never
      stops the others.
    - Endpoint attempts are sequential, each bounded by ``external_timeout_seconds``.
    """

    settings = settings or get_settings()

    if settings.ytdlp_enabled:
        try:
            result: Optional[VideoResult] = await asyncio.wait_for(
                asyncio.to_thread(probe_with_ytdlp, url, settings.external_timeout_seconds),
                timeout=settings.external_timeout_seconds,
            )
            if result is not None:
                return result
            logger.info("yt-dlp found no progressive formats", extra={"url": url})
        except Exception as ex:  # noqa: BLE001 - provider failures only advance the chain
            logger.warning("yt-dlp resolution failed", extra={"url": url, "error": str(ex)})

    if not settings.external_endpoints:
        return None

    timeout = aiohttp.ClientTimeout(total=settings.external_timeout_seconds)
    async with aiohttp.ClientSession(headers={"User-Agent": BROWSER_USER_AGENT}, timeout=timeout) as session:
        for endpoint in settings.external_endpoints:
            try:
                await _call_endpoint(session, endpoint, url)
            except (aiohttp.ClientError, asyncio.TimeoutError) as ex:
                logger.warning(
                    "External endpoint failed",
                    extra={"endpoint": endpoint, "error": str(ex) or type(ex).__name__},
                )
    return None
