"""Client for the Open Podcast API (https://openpodcast.dev)."""

from typing import TYPE_CHECKING

import httpx

from forwarder.core.logging import get_logger

if TYPE_CHECKING:
    from forwarder.services.analytics import OpenPodcastEvent

logger = get_logger(__name__)


class OpenPodcastClient:
    def __init__(self, endpoint: str, token: str, timeout: float = 10.0):
        self.endpoint = endpoint
        self.token = token
        self.timeout = timeout

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    async def send(self, event: "OpenPodcastEvent") -> httpx.Response:
        """POST the event. Raises httpx.HTTPError on transport or status errors."""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            logger.debug(f"Sending OpenPodcast event {event.kind}")
            response = await client.post(
                self.endpoint,
                headers=self.headers,
                json=event.model_dump(by_alias=True),
            )
            response.raise_for_status()
            return response
