"""Unit tests for the resolution orchestrator's fallback chain."""
from __future__ import annotations

import asyncio
import re
import time
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

from fb_downloader.core.config import Settings
from fb_downloader.core.errors import FetchError, UrlValidationError
from fb_downloader.domain.video import Provenance, VideoQuality, VideoResult
from fb_downloader.services.fallback import fallback_token
from fb_downloader.services.resolver import resolve

_URL: str = "https://www.facebook.com/watch/?v=123456789&mibextid=share"
_CANONICAL: str = "https://www.facebook.com/watch/?v=123456789"
_VIDEO_HTML: str = '<meta property="og:title" content="Real video">{"hd_src":"https:\\/\\/v.fbcdn.net\\/real.mp4"}'

_EXTERNAL = VideoResult(
    title="From yt-dlp",
    thumbnail="https://scontent.xx.fbcdn.net/t.jpg",
    qualities=[VideoQuality(quality="HD", url="https://v.fbcdn.net/ext.mp4")],
    provenance=Provenance.EXTERNAL,
)


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {"ytdlp_enabled": False, "external_endpoints": []}
    values.update(overrides)
    return Settings(**values)


class TestResolve(unittest.IsolatedAsyncioTestCase):
    """The chain is fetch → extract → external → fallback, short-circuiting."""

    async def test_scraped_result_short_circuits(self) -> None:
        """A page with a video URL is returned without trying external resolvers."""
        with patch("fb_downloader.services.resolver.fetch_html", new_callable=AsyncMock, return_value=_VIDEO_HTML) as fetch, \
                patch("fb_downloader.services.resolver.try_external", new_callable=AsyncMock) as external:
            result = await resolve(_URL, _settings())
        assert result is not None
        self.assertEqual(result.provenance, Provenance.SCRAPED)
        self.assertEqual(result.title, "Real video")
        self.assertEqual(result.qualities[0].url, "https://v.fbcdn.net/real.mp4")
        external.assert_not_awaited()
        # The canonical URL is fetched, not the raw input
        self.assertEqual(fetch.await_args.args[0], _CANONICAL)

    async def test_empty_extraction_falls_through_to_external(self) -> None:
        """A page without video URLs moves on to external resolution."""
        with patch("fb_downloader.services.resolver.fetch_html", new_callable=AsyncMock, return_value="<html></html>"), \
                patch("fb_downloader.services.resolver.try_external", new_callable=AsyncMock, return_value=_EXTERNAL):
            result = await resolve(_URL, _settings())
        self.assertIs(result, _EXTERNAL)

    async def test_fetch_failure_skips_to_external(self) -> None:
        """A FetchError is recovered by trying external resolvers."""
        with patch(
            "fb_downloader.services.resolver.fetch_html",
            new_callable=AsyncMock,
            side_effect=FetchError(_CANONICAL, "timed out"),
        ), patch("fb_downloader.services.resolver.try_external", new_callable=AsyncMock, return_value=_EXTERNAL) as external:
            result = await resolve(_URL, _settings())
        self.assertIs(result, _EXTERNAL)
        external.assert_awaited_once()

    async def test_total_network_failure_yields_fallback(self) -> None:
        """With every stage failing, fallback data with ≥1 quality is returned."""
        with patch(
            "fb_downloader.services.resolver.fetch_html",
            new_callable=AsyncMock,
            side_effect=FetchError(_CANONICAL, "connection refused"),
        ):
            result = await resolve(_URL, _settings())
        assert result is not None
        self.assertEqual(result.provenance, Provenance.FALLBACK)
        self.assertGreaterEqual(len(result.qualities), 1)
        self.assertIn(fallback_token(_CANONICAL), result.title)

    async def test_tracking_params_do_not_change_fallback_token(self) -> None:
        """Fallback output is keyed on the canonical URL."""
        with patch(
            "fb_downloader.services.resolver.fetch_html",
            new_callable=AsyncMock,
            side_effect=FetchError(_CANONICAL, "offline"),
        ):
            noisy = await resolve(_URL, _settings())
            clean = await resolve(_CANONICAL, _settings())
        assert noisy is not None and clean is not None
        self.assertEqual(noisy.title, clean.title)

    async def test_fallback_disabled_returns_none(self) -> None:
        """Without synthetic fallback nothing is returned when all stages fail."""
        with patch(
            "fb_downloader.services.resolver.fetch_html",
            new_callable=AsyncMock,
            side_effect=FetchError(_CANONICAL, "offline"),
        ):
            result = await resolve(_URL, _settings(synthetic_fallback=False))
        self.assertIsNone(result)

    async def test_invalid_url_raises(self) -> None:
        """Invalid input is rejected before any network call."""
        with patch("fb_downloader.services.resolver.fetch_html", new_callable=AsyncMock) as fetch:
            with self.assertRaises(UrlValidationError):
                await resolve("https://example.com/video.mp4", _settings())
        fetch.assert_not_awaited()

    async def test_deadline_falls_back_to_synthetic_data(self) -> None:
        """A stage that outlives resolve_timeout_seconds is abandoned for the fallback."""

        async def hanging_fetch(*_: object) -> str:
            await asyncio.sleep(5)
            return _VIDEO_HTML

        with patch("fb_downloader.services.resolver.fetch_html", new=hanging_fetch):
            started: float = time.monotonic()
            result = await resolve(_URL, _settings(resolve_timeout_seconds=0.1))
            elapsed: float = time.monotonic() - started
        assert result is not None
        self.assertEqual(result.provenance, Provenance.FALLBACK)
        self.assertLess(elapsed, 2.0)


class TestTimeBudget(unittest.TestCase):
    """Server-side defaults must leave the web client time to receive a response."""

    def test_default_deadline_is_below_client_timeout(self) -> None:
        app_js: Path = Path(__file__).resolve().parents[1] / "src" / "fb_downloader" / "ui" / "static" / "app.js"
        match = re.search(r"REQUEST_TIMEOUT_MS\s*=\s*(\d+)", app_js.read_text(encoding="utf-8"))
        assert match is not None
        client_timeout_s: float = int(match.group(1)) / 1000
        fields = Settings.model_fields
        deadline: float = fields["resolve_timeout_seconds"].default
        self.assertLess(deadline, client_timeout_s)
        self.assertLessEqual(fields["external_timeout_seconds"].default, deadline)
