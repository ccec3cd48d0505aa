"""Minimal client for the PostHog capture API."""

from typing import TYPE_CHECKING

import httpx

from forwarder.core.logging import get_logger

if TYPE_CHECKING:
    from forwarder.services.analytics import PostHogEvent

logger = get_logger(__name__)

DEFAULT_ENDPOINT = "https://app.posthog.com/capture/"


class PostHogClient:
    def __init__(self, api_key: str, endpoint: str = DEFAULT_ENDPOINT, timeout: float = 10.0):
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout

    def payload(self, event: "PostHogEvent") -> dict:
        """Attach the API key so callers never have to."""
        return {"api_key": self.api_key, **event.model_dump()}

    async def send(self, event: "PostHogEvent") -> httpx.Response:
        """POST the event. Raises httpx.HTTPError on transport or status errors."""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            logger.debug(f"Sending PostHog event {event.event}")
            response = await client.post(self.endpoint, json=self.payload(event))
            response.raise_for_status()
            return response
