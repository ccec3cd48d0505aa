"""
Analytics events for feed and download requests.

Events are built from the inbound request and handed to the PostHog and
OpenPodcast senders. Sending is best-effort: `dispatch_events` logs failures
and never raises, so analytics can't break the response.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from forwarder.core.logging import get_logger
from forwarder.core.settings import Settings, get_settings
from forwarder.rss.reference import ForwardingError, extract_reference
from forwarder.services.openpodcast import OpenPodcastClient
from forwarder.services.posthog import PostHogClient
from forwarder.services.user_agent import ClientIdentity, client_from_headers
from forwarder.utils.error_logger import log_analytics_error

logger = get_logger(__name__)


def request_kind(path: str, path_prefix: str | None = "/r") -> str:
    """Name a request by what it fetches: `rss`, `mp3` or the raw path."""
    if path == "/":
        return "rss"
    if path_prefix and path.startswith(f"{path_prefix}/"):
        return "mp3"
    return path


@dataclass(frozen=True)
class RequestInfo:
    """The parts of an inbound request that analytics cares about."""

    path: str
    url: str
    headers: Mapping[str, str]

    @property
    def client(self) -> ClientIdentity:
        return client_from_headers(self.headers)

    @property
    def ip(self) -> str | None:
        return self.headers.get("x-real-ip")

    @property
    def country(self) -> str | None:
        return self.headers.get("cf-ipcountry")

    @property
    def coordinates(self) -> tuple[float, float]:
        try:
            return (
                float(self.headers.get("cf-iplatitude", 0.0)),
                float(self.headers.get("cf-iplongitude", 0.0)),
            )
        except ValueError:
            return (0.0, 0.0)

    @property
    def reference(self) -> str | None:
        try:
            return extract_reference(self.url)
        except ForwardingError:
            return None


class PostHogEvent(BaseModel):
    """A PostHog capture event. `distinct_id` is stored with the properties."""

    event: str
    properties: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def new(cls, event: str, distinct_id: str) -> "PostHogEvent":
        return cls(event=event, properties={"distinct_id": distinct_id})

    def add_property(self, key: str, value: Any) -> "PostHogEvent":
        self.properties[key] = value
        return self


class OpenPodcastEvent(BaseModel):
    """Payload accepted by the OpenPodcast ingest API."""

    model_config = ConfigDict(populate_by_name=True)

    kind: str
    upstream: str
    upstream_ref: str | None = Field(None, alias="upstream-ref")
    client: str
    is_bot: bool = Field(..., alias="is-bot")
    country: str | None = None
    path: str
    latitude: float = 0.0
    longitude: float = 0.0
    headers: str
    user_agent: str | None = Field(None, alias="user-agent")
    ip: str | None = None


def build_posthog_event(info: RequestInfo, upstream: str, path_prefix: str | None) -> PostHogEvent:
    client = info.client
    event = (
        PostHogEvent.new(request_kind(info.path, path_prefix), upstream)
        .add_property("client", client.name)
        .add_property("is_bot", client.is_bot)
        .add_property("country", info.country)
        .add_property("path", info.path)
    )
    latitude, longitude = info.coordinates
    if latitude or longitude:
        event.add_property("latitude", latitude).add_property("longitude", longitude)
    for key, value in info.headers.items():
        event.add_property(key, value)
    # Overwrite ip for GeoIP lookup
    if info.ip:
        event.add_property("$ip", info.ip)
    reference = info.reference
    if reference:
        event.add_property("upstream", reference)
    return event


def build_openpodcast_event(
    info: RequestInfo, upstream: str, path_prefix: str | None
) -> OpenPodcastEvent:
    client = info.client
    latitude, longitude = info.coordinates
    return OpenPodcastEvent(
        kind=request_kind(info.path, path_prefix),
        upstream=upstream,
        upstream_ref=info.reference,
        client=client.name,
        is_bot=client.is_bot,
        country=info.country,
        path=info.path,
        latitude=latitude,
        longitude=longitude,
        headers="; ".join(f"{key}: {value}" for key, value in info.headers.items()),
        user_agent=info.headers.get("user-agent"),
        ip=info.ip,
    )


async def send_posthog(info: RequestInfo, settings: Settings) -> None:
    if not settings.posthog_api_key:
        logger.debug("PostHog API key not configured, skipping event")
        return
    event = build_posthog_event(info, settings.upstream_feed_url, settings.path_prefix)
    try:
        response = await PostHogClient(settings.posthog_api_key, settings.posthog_endpoint).send(
            event
        )
        logger.info("PostHog status: %s", response.status_code)
    except Exception as e:
        log_analytics_error("posthog", e, event=event.event, request_path=info.path)


async def send_openpodcast(info: RequestInfo, settings: Settings) -> None:
    if not settings.openpodcast_api_endpoint or not settings.openpodcast_api_key:
        logger.debug("OpenPodcast API not configured, skipping event")
        return
    event = build_openpodcast_event(info, settings.upstream_feed_url, settings.path_prefix)
    try:
        response = await OpenPodcastClient(
            settings.openpodcast_api_endpoint, settings.openpodcast_api_key
        ).send(event)
        logger.info("OpenPodcast API status: %s", response.status_code)
    except Exception as e:
        log_analytics_error("openpodcast", e, event=event.kind, request_path=info.path)


async def dispatch_events(info: RequestInfo, settings: Settings | None = None) -> None:
    """Send the download event to every configured analytics backend."""
    settings = settings or get_settings()
    await send_posthog(info, settings)
    await send_openpodcast(info, settings)
