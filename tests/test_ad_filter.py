"""Tests for ad fingerprint detection and stripping."""
import re

from conftest import media_playlist, segments
from utils.ad_filter import (
    DEFAULT_AD_PATTERNS,
    MAX_STRIP_PASSES,
    AdPattern,
    MatchMode,
    contains_ads,
    matching_patterns,
    strip_ads,
)


class TestDetection:
    def test_clean_playlist_has_no_ads(self, clean_playlist):
        assert not contains_ads(clean_playlist)
        assert matching_patterns(clean_playlist) == []

    def test_duration_fingerprint_detected(self, fingerprint_playlist):
        assert contains_ads(fingerprint_playlist)
        assert matching_patterns(fingerprint_playlist) == ["duration_fingerprint"]

    def test_trailing_block_detected(self, trailing_block_playlist):
        assert matching_patterns(trailing_block_playlist) == ["trailing_block"]

    def test_trailing_block_needs_to_be_the_only_pair(self, trailing_block_playlist):
        # A later marker means the block is not the last pair any more.
        text = trailing_block_playlist.replace(
            "#EXT-X-ENDLIST\n", "#EXT-X-DISCONTINUITY\n" + segments("late", 1) + "#EXT-X-ENDLIST\n"
        )
        assert "trailing_block" not in matching_patterns(text)

    def test_trailing_block_rejects_short_runs(self):
        ad = "#EXT-X-DISCONTINUITY\n" + segments("ad", 3) + "#EXT-X-DISCONTINUITY\n"
        assert not contains_ads(media_playlist(segments("head", 2) + ad + segments("tail", 2)))

    def test_relaxed_block_with_plain_key(self):
        block = (
            "#EXT-X-DISCONTINUITY\n#EXT-X-KEY:METHOD=NONE\n"
            + segments("ad", 10, host="https://ads.example")
            + "#EXT-X-DISCONTINUITY\n"
        )
        text = media_playlist(
            "#EXT-X-DISCONTINUITY\n" + segments("intro", 1)
            + segments("head", 2) + block + segments("tail", 2)
        )
        assert "relaxed_block" in matching_patterns(text)

    def test_ad_cdn_path_fragment_detected(self):
        text = media_playlist("#EXTINF:4.0,\nhttps://cdn.example/convertv7/seg0.ts\n")
        assert matching_patterns(text) == ["relaxed_block"]

    def test_repeated_checks_are_independent(self, fingerprint_playlist, clean_playlist):
        for _ in range(3):
            assert contains_ads(fingerprint_playlist)
            assert not contains_ads(clean_playlist)


class TestStripping:
    def test_fingerprint_region_removed_exactly(self, fingerprint_playlist, fingerprint_stripped):
        assert strip_ads(fingerprint_playlist) == fingerprint_stripped

    def test_trailing_block_removed_keeping_head(self, trailing_block_playlist):
        expected = media_playlist(segments("head", 4) + segments("tail", 4))
        assert strip_ads(trailing_block_playlist) == expected

    def test_ad_cdn_path_fragment_removed(self):
        text = media_playlist("#EXTINF:4.0,\nhttps://cdn.example/convertv7/seg0.ts\n")
        assert "https://cdn.example/seg0.ts\n" in strip_ads(text)

    def test_stripping_is_idempotent(self, fingerprint_playlist, trailing_block_playlist, clean_playlist):
        for playlist in (fingerprint_playlist, trailing_block_playlist, clean_playlist):
            once = strip_ads(playlist)
            assert strip_ads(once) == once

    def test_block_exposed_by_earlier_removal_is_stripped(self):
        head = segments("head", 4)
        tail = segments("tail", 4)
        ad = "#EXT-X-DISCONTINUITY\n" + segments("ad", 10, host="https://ads.example") + "#EXT-X-DISCONTINUITY\n"
        # The empty pair goes first, leaving the ad block as the only pair.
        playlist = media_playlist("#EXT-X-DISCONTINUITY\n#EXT-X-DISCONTINUITY\n" + head + ad + tail)

        once = strip_ads(playlist)

        assert "ads.example" not in once
        assert once == media_playlist(head + tail)
        assert strip_ads(once) == once

    def test_clean_playlist_untouched(self, clean_playlist):
        assert strip_ads(clean_playlist) == clean_playlist

    def test_patterns_apply_in_order(self):
        first = AdPattern("first", re.compile(r"AB"))
        second = AdPattern("second", re.compile(r"AC"))
        # "AABC" -> "AC" after the first pattern, then "" after the second.
        assert strip_ads("AABC", [first, second]) == ""
        # "AC" only appears once "AB" is gone, so a second pass removes it.
        assert strip_ads("AABC", [second, first]) == ""

    def test_first_mode_removes_single_match(self):
        pattern = AdPattern("once", re.compile(r"x"), mode=MatchMode.FIRST)
        assert pattern.remove("xaxbx") == "axbx"
        assert strip_ads("xaxbx", [pattern]) == "ab"

    def test_pass_limit(self):
        pattern = AdPattern("once", re.compile(r"x"), mode=MatchMode.FIRST)
        assert strip_ads("x" * (MAX_STRIP_PASSES + 2), [pattern]) == "xx"

    def test_default_pattern_order(self):
        assert [p.name for p in DEFAULT_AD_PATTERNS] == [
            "trailing_block",
            "relaxed_block",
            "duration_fingerprint",
        ]
