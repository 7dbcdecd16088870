"""Resolution orchestrator: fetch, extract, external resolvers, then fallback."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from fb_downloader.core.config import Settings, get_settings
from fb_downloader.core.errors import FetchError, UrlValidationError
from fb_downloader.domain.video import ValidationResult, VideoResult
from fb_downloader.services.external import try_external
from fb_downloader.services.extractor import extract
from fb_downloader.services.fallback import generate_fallback
from fb_downloader.services.fetcher import fetch_html
from fb_downloader.services.validator import supported_formats_message, validate

logger = logging.getLogger(__name__)


def _log_stage(stage: str, url: str, started: float, **fields: object) -> None:
    duration_ms: int = int((time.monotonic() - started) * 1000)
    logger.info(
        "Resolution stage finished",
        extra={"stage": stage, "url": url, "duration_ms": duration_ms, **fields},
    )


async def _run_stages(url: str, settings: Settings) -> Optional[VideoResult]:
    """Fetch and extract, then try external resolvers; ``None`` when both come up empty."""

    started: float = time.monotonic()
    html: Optional[str] = None
    try:
        html = await fetch_html(url, settings)
    except FetchError as ex:
        _log_stage("fetch", url, started, outcome="failed", error=ex.reason)

    if html is not None:
        started = time.monotonic()
        scraped: Optional[VideoResult] = extract(html)
        found: int = len(scraped.qualities) if scraped else 0
        _log_stage("extract", url, started, outcome="found" if found else "empty", qualities=found)
        if scraped is not None and scraped.qualities:
            return scraped

    started = time.monotonic()
    external: Optional[VideoResult] = await try_external(url, settings)
    _log_stage("external", url, started, outcome="found" if external else "empty")
    return external


async def resolve(raw_url: str, settings: Optional[Settings] = None) -> Optional[VideoResult]:
    """Resolve a Facebook URL to downloadable video renditions.

    Parameters
    ----------
    raw_url: str
        URL as provided by the client.
    settings: Optional[Settings]
        Application settings; defaults to ``get_settings()``.

    Returns
    -------
    Optional[VideoResult]
        The first non-empty result of, in order: HTML extraction, external
        resolvers, synthetic fallback. ``None`` only when
        ``settings.synthetic_fallback`` is disabled and nothing was resolved.

    Notes
    -----
    - A page fetch failure is logged and skips straight to the external stage.
    - Fetch, extraction and external resolvers share one deadline,
      ``settings.resolve_timeout_seconds``; when it expires the fallback is used.
    - Scraping failures are never raised to the caller.

    Raises
    ------
    UrlValidationError
        If ``raw_url`` is not a supported Facebook video URL.
    """

    settings = settings or get_settings()
    validation: ValidationResult = validate(raw_url)
    if not validation.ok or validation.canonical_url is None:
        raise UrlValidationError(supported_formats_message())
    url: str = validation.canonical_url

    resolved: Optional[VideoResult] = None
    try:
        resolved = await asyncio.wait_for(_run_stages(url, settings), timeout=settings.resolve_timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning(
            "Resolution deadline exceeded",
            extra={"url": url, "timeout_s": settings.resolve_timeout_seconds},
        )
    if resolved is not None:
        return resolved

    if not settings.synthetic_fallback:
        logger.warning("No video could be resolved", extra={"url": url})
        return None

    logger.warning("Serving synthetic fallback data", extra={"url": url})
    return generate_fallback(url)
