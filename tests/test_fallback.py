"""Unit tests for the synthetic fallback generator."""
from __future__ import annotations

import random
import re
import unittest

from fb_downloader.domain.video import Provenance, VideoResult
from fb_downloader.services.fallback import fallback_token, generate_fallback

_URL: str = "https://facebook.com/watch/?v=123456789"


class TestFallback(unittest.TestCase):
    """Tests for fallback_token and generate_fallback."""

    def test_token_is_stable_per_url(self) -> None:
        """The same URL always yields the same token; different ids differ."""
        self.assertEqual(fallback_token(_URL), fallback_token(_URL))
        self.assertEqual(len(fallback_token(_URL)), 8)
        self.assertNotEqual(
            fallback_token("https://facebook.com/watch/?v=111111111"),
            fallback_token("https://facebook.com/watch/?v=222222222"),
        )

    def test_token_derived_fields_are_deterministic(self) -> None:
        """Title and thumbnail depend only on the URL, not on randomness."""
        first: VideoResult = generate_fallback(_URL, rng=random.Random(1))
        second: VideoResult = generate_fallback(_URL, rng=random.Random(2))
        token: str = fallback_token(_URL)
        self.assertEqual(first.title, second.title)
        self.assertEqual(first.thumbnail, second.thumbnail)
        self.assertIn(token, first.title)
        self.assertTrue(first.thumbnail.endswith(f"random={token}"))

    def test_result_shape(self) -> None:
        """Fallback data is flagged and always has renditions to show."""
        result: VideoResult = generate_fallback(_URL)
        self.assertEqual(result.provenance, Provenance.FALLBACK)
        self.assertTrue(1 <= len(result.qualities) <= 2)
        self.assertTrue(result.qualities[0].quality.startswith("HD"))
        for quality in result.qualities:
            self.assertTrue(quality.url.endswith(".mp4"))
            self.assertEqual(quality.type, "video/mp4")
        self.assertRegex(result.duration, r"^[1-5]:[0-5]\d$")
        self.assertEqual(result.metadata.source, "Facebook")
        self.assertRegex(result.metadata.uploadDate, r"^\d{2}/\d{2}/\d{4}$")

    def test_view_count_uses_thousands_separators(self) -> None:
        """Views fall in 1,000-10,999 and are formatted with separators."""
        for seed in range(20):
            views: str = generate_fallback(_URL, rng=random.Random(seed)).metadata.views
            self.assertRegex(views, r"^\d{1,2},\d{3}$")
            self.assertTrue(1000 <= int(re.sub(",", "", views)) <= 10999)
