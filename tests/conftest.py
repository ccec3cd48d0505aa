import os
import sys

import httpx
import pytest
from fastapi.testclient import TestClient

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from forwarder.core.settings import Settings, get_settings  # noqa: E402
from forwarder.services.http import get_http_service  # noqa: E402

UPSTREAM_FEED_URL = "https://feeds.example.com/podcast.xml"
WEBSITE_URL = "https://example.org"

SAMPLE_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">
  <channel>
    <title>Engineering Kiosk</title>
    <link>https://redcircle.com/shows/engineering-kiosk</link>
    <item>
      <title>#01 Episode One</title>
      <link>https://example.com/episode-1</link>
      <enclosure url="https://example.com/podcast1.mp3" type="audio/mpeg" length="96950025"/>
    </item>
    <item>
      <title>#02 Episode Two</title>
      <link>https://example.com/episode-2</link>
      <enclosure url="https://stream.redcircle.com/episodes/41cfb14d/stream.link" type="audio/mpeg"/>
    </item>
  </channel>
</rss>
"""


class FakeHttpService:
    """Stands in for HttpService and records upstream calls."""

    def __init__(
        self,
        text: str = SAMPLE_FEED,
        headers: dict | None = None,
        error=None,
        status_code: int = 200,
    ):
        self.text = text
        self.status_code = status_code
        self.headers = headers or {"content-type": "application/rss+xml; charset=utf-8"}
        self.error = error
        self.calls: list[tuple[str, str, dict | None]] = []

    def _respond(self, method: str, url: str, headers) -> httpx.Response:
        self.calls.append((method, url, dict(headers) if headers else None))
        if self.error:
            raise self.error
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            text=self.text if method == "GET" else None,
            request=httpx.Request(method, url),
        )

    async def fetch(self, url, headers=None):
        return self._respond("GET", url, headers)

    async def head(self, url, headers=None):
        return self._respond("HEAD", url, headers)


@pytest.fixture
def test_settings():
    """Settings with analytics disabled and a fixed upstream."""
    return Settings(
        upstream_feed_url=UPSTREAM_FEED_URL,
        website_url=WEBSITE_URL,
        path_prefix="/r",
        version="1.2.3",
        posthog_api_key=None,
        openpodcast_api_endpoint=None,
        openpodcast_api_key=None,
    )


@pytest.fixture
def fake_http():
    return FakeHttpService()


@pytest.fixture
def client(test_settings, fake_http):
    """Create a test client with settings and upstream overrides."""
    from forwarder.main import app

    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_http_service] = lambda: fake_http

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
