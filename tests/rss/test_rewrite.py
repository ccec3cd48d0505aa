"""Tests for building indirection URLs."""

import pytest

from forwarder.rss.rewrite import (
    build_forward,
    has_audio_extension,
    is_forwardable,
    parse_forwardable,
)


class TestForwardable:
    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/podcast.mp3",
            "http://example.com/podcast.mp3",
            "https://example.com/podcast.aac",
            "https://example.com/podcast1.mp3?bla=blub123",
        ],
    )
    def test_http_audio_urls_are_forwardable(self, url):
        assert is_forwardable(url)

    @pytest.mark.parametrize(
        "url",
        [
            "ftp://example.com/podcast3.mp3",
            "example.com/podcast4.mp3",
            "lol",
            "mailto:someone@example.com.mp3",
            "file:///tmp/podcast.mp3",
            "https://example.com/podcast.ogg",
            "https://example.com/stream.link",
            "https://example.com/download?file=podcast.mp3",
            "",
        ],
    )
    def test_other_urls_are_not_forwardable(self, url):
        assert not is_forwardable(url)

    def test_suffix_check_is_plain_endswith(self):
        assert has_audio_extension("/episode.mp3")
        assert has_audio_extension("/episodexmp3")
        assert not has_audio_extension("/episode.mp3/")

    def test_parse_forwardable_returns_parts(self):
        parsed = parse_forwardable("https://example.com/a/podcast.mp3?x=1")
        assert parsed.netloc == "example.com"
        assert parsed.path == "/a/podcast.mp3"
        assert parsed.query == "x=1"


class TestBuildForward:
    def test_without_prefix(self):
        result = build_forward("https://example.com/podcast.mp3", "http://foo.org")
        assert result == "http://foo.org/podcast.mp3?ref=https%3A%2F%2Fexample.com%2Fpodcast.mp3"

    def test_with_prefix(self):
        result = build_forward("https://example.com/podcast1.mp3", "https://example.org", "/r")
        assert result == (
            "https://example.org/r/podcast1.mp3?ref=https%3A%2F%2Fexample.com%2Fpodcast1.mp3"
        )

    def test_original_query_is_folded_into_ref(self):
        result = build_forward("https://example.com/podcast1.mp3?bla=blub123", "https://example.org")
        assert result == (
            "https://example.org/podcast1.mp3"
            "?ref=https%3A%2F%2Fexample.com%2Fpodcast1.mp3%3Fbla%3Dblub123"
        )

    def test_base_path_is_replaced(self):
        result = build_forward("https://cdn.example.com/shows/ep1.mp3", "https://fwd.example.org/feed")
        assert result.startswith("https://fwd.example.org/shows/ep1.mp3?ref=")

    def test_base_query_is_kept_and_ampersand_escaped(self):
        result = build_forward("https://example.com/podcast.mp3", "https://example.org/?feed=main")
        assert result == (
            "https://example.org/podcast.mp3?feed=main&amp;ref=https%3A%2F%2Fexample.com%2Fpodcast.mp3"
        )

    def test_existing_ref_on_base_is_dropped(self):
        result = build_forward(
            "https://example.com/podcast.mp3", "https://example.org/?ref=newsletter&feed=main"
        )
        assert result == (
            "https://example.org/podcast.mp3?feed=main&amp;ref=https%3A%2F%2Fexample.com%2Fpodcast.mp3"
        )

    def test_base_with_only_ref_gets_single_ref(self):
        result = build_forward("https://example.com/podcast.mp3", "https://example.org/?ref=x")
        assert result == "https://example.org/podcast.mp3?ref=https%3A%2F%2Fexample.com%2Fpodcast.mp3"

    def test_rejects_non_forwardable(self):
        with pytest.raises(ValueError):
            build_forward("ftp://example.com/podcast.mp3", "https://example.org")
