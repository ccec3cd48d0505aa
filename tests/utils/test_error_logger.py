"""Tests for the structured failure logging helpers."""

import logging

import httpx
import pytest

from forwarder.rss.reference import MissingReferenceError
from forwarder.utils.error_logger import (
    log_analytics_error,
    log_error,
    log_rejected_forward,
    log_upstream_error,
    upstream_details,
)

FEED_URL = "https://feeds.example.com/podcast.xml"


@pytest.fixture
def upstream_404():
    request = httpx.Request("GET", FEED_URL)
    return httpx.Response(404, text="not found", request=request)


def _records(caplog, level):
    return [record for record in caplog.records if record.levelno == level]


def test_upstream_details(upstream_404):
    details = upstream_details(upstream_404)

    assert details["status_code"] == 404
    assert details["method"] == "GET"
    assert details["request_url"] == FEED_URL
    assert details["response_body"] == "not found"


def test_upstream_details_without_request():
    details = upstream_details(httpx.Response(502, text="x" * 2000))

    assert "method" not in details
    assert len(details["response_body"]) == 500


def test_log_error_attaches_forwarder_fields(caplog):
    error = ValueError("boom")

    with caplog.at_level(logging.ERROR):
        log_error("feed_router", error, operation="rewrite_feed", request_path="/")

    (record,) = _records(caplog, logging.ERROR)
    assert record.name == "error.feed_router"
    assert record.getMessage() == "feed_router error during rewrite_feed (/): boom"
    assert record.operation == "rewrite_feed"
    assert record.request_path == "/"
    assert record.http_details is None
    assert record.error_type == "ValueError"
    assert record.exc_info[1] is error


def test_log_upstream_error(caplog, upstream_404):
    error = httpx.HTTPStatusError("404", request=upstream_404.request, response=upstream_404)

    with caplog.at_level(logging.ERROR):
        log_upstream_error(FEED_URL, error, method="HEAD", response=upstream_404)

    (record,) = _records(caplog, logging.ERROR)
    assert record.component == "upstream"
    assert record.operation == "upstream_head"
    assert record.context_data == {"url": FEED_URL, "status_code": 404}
    assert record.http_details["status_code"] == 404


def test_log_upstream_transport_error(caplog):
    with caplog.at_level(logging.ERROR):
        log_upstream_error(FEED_URL, httpx.ConnectError("refused"))

    (record,) = _records(caplog, logging.ERROR)
    assert record.operation == "upstream_get"
    assert record.context_data == {"url": FEED_URL}
    assert record.error_type == "ConnectError"


def test_log_analytics_error(caplog):
    with caplog.at_level(logging.ERROR):
        log_analytics_error(
            "posthog", httpx.ConnectError("refused"), event="mp3", request_path="/r/p.mp3"
        )

    (record,) = _records(caplog, logging.ERROR)
    assert record.component == "analytics.posthog"
    assert record.operation == "send_event"
    assert record.context_data == {"event": "mp3"}
    assert record.request_path == "/r/p.mp3"


def test_log_rejected_forward_is_a_warning(caplog):
    with caplog.at_level(logging.WARNING):
        log_rejected_forward(MissingReferenceError("Could not find ref parameter"), "/r/p.mp3")

    (record,) = _records(caplog, logging.WARNING)
    assert record.getMessage() == "Rejected forward request /r/p.mp3: Could not find ref parameter"
    assert record.context_data == {"kind": "missing_reference"}
    assert record.exc_info is None
    assert not _records(caplog, logging.ERROR)
