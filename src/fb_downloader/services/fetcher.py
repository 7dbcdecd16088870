"""Fetch Facebook page HTML with browser-like headers."""
from __future__ import annotations

import asyncio
import logging
from typing import Final, Optional

import aiohttp

from fb_downloader.core.config import Settings, get_settings
from fb_downloader.core.errors import FetchError

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT: Final[str] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

# Facebook serves a stripped-down page (or a login wall) to obvious bots
BROWSER_HEADERS: Final[dict[str, str]] = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "sec-ch-ua": '"Chromium";v="131", "Not_A Brand";v="24"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
    "sec-fetch-dest": "document",
    "sec-fetch-mode": "navigate",
    "sec-fetch-site": "none",
    "sec-fetch-user": "?1",
    "Upgrade-Insecure-Requests": "1",
}


def _is_login_wall(final_url: str) -> bool:
    return "facebook.com" in final_url and "/login" in final_url


async def _read_capped(resp: aiohttp.ClientResponse, limit: int) -> bytes:
    """Read at most ``limit`` bytes of the body instead of buffering all of it."""

    body = bytearray()
    while len(body) < limit:
        chunk: bytes = await resp.content.read(limit - len(body))
        if not chunk:
            break
        body.extend(chunk)
    return bytes(body)


def _decode(body: bytes, charset: Optional[str]) -> str:
    try:
        return body.decode(charset or "utf-8", errors="ignore")
    except LookupError:
        return body.decode("utf-8", errors="ignore")


async def fetch_html(url: str, settings: Optional[Settings] = None) -> str:
    """Fetch ``url`` and return the response body as text.

    Parameters
    ----------
    url: str
        Canonical page URL.
    settings: Optional[Settings]
        Settings providing the timeout, redirect cap and size cap; defaults to
        ``get_settings()``.

    Returns
    -------
    str
        The decoded HTML, truncated to ``settings.max_html_chars``.

    Notes
    -----
    - Single attempt; retries are not performed here.
    - Redirects are followed up to ``settings.max_redirects``.

    Raises
    ------
    FetchError
        On network errors, timeouts, too many redirects, non-2xx responses, or a
        redirect to the Facebook login page.
    """

    settings = settings or get_settings()
    timeout = aiohttp.ClientTimeout(total=settings.fetch_timeout_seconds)

    try:
        async with aiohttp.ClientSession(headers=BROWSER_HEADERS, timeout=timeout) as session:
            async with session.get(
                url,
                allow_redirects=True,
                max_redirects=settings.max_redirects,
            ) as resp:
                final_url: str = str(resp.url)
                logger.debug(
                    "Fetched page",
                    extra={"url": url, "status": resp.status, "final_url": final_url},
                )
                resp.raise_for_status()
                if _is_login_wall(final_url):
                    raise FetchError(url, f"redirected to login page {final_url}")
                html: str = _decode(await _read_capped(resp, settings.max_html_chars), resp.charset)
    except aiohttp.TooManyRedirects as ex:
        raise FetchError(url, f"more than {settings.max_redirects} redirects") from ex
    except aiohttp.ClientResponseError as ex:
        raise FetchError(url, f"HTTP {ex.status}") from ex
    # aiohttp's ServerTimeoutError is both a ClientError and a TimeoutError
    except asyncio.TimeoutError as ex:
        raise FetchError(url, f"timed out after {settings.fetch_timeout_seconds}s") from ex
    except aiohttp.ClientError as ex:
        raise FetchError(url, str(ex) or type(ex).__name__) from ex

    return html[: settings.max_html_chars]
