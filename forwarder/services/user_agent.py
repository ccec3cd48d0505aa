"""Classify requesting podcast clients by their User-Agent header."""

from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml

from forwarder.core.logging import get_logger
from forwarder.core.settings import get_settings

logger = get_logger(__name__)

DEFAULT_USER_AGENTS_PATH = Path(__file__).resolve().parent.parent / "data" / "user_agents.yml"
UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class ClientIdentity:
    """Canonical client name plus whether it looks like a crawler."""

    name: str
    is_bot: bool

    @classmethod
    def from_name(cls, name: str) -> "ClientIdentity":
        return cls(name=name, is_bot="bot" in name.lower())

    @property
    def is_known(self) -> bool:
        return self.name != UNKNOWN_CLIENT


UNKNOWN_IDENTITY = ClientIdentity.from_name(UNKNOWN_CLIENT)


@lru_cache
def load_user_agents(path: Path | None = None) -> tuple[tuple[str, str], ...]:
    """Load the ordered (pattern, name) table from YAML.

    The result is cached per path, so the table is parsed once and shared
    read-only by every request.
    """
    table_path = path or get_settings().user_agents_path or DEFAULT_USER_AGENTS_PATH
    with open(table_path, encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}

    entries: list[tuple[str, str]] = []
    for entry in payload.get("user_agents") or []:
        if not isinstance(entry, dict):
            continue
        pattern = entry.get("pattern")
        name = entry.get("name")
        if not pattern or not name:
            logger.warning("Skipping incomplete user agent entry: %s", entry)
            continue
        entries.append((str(pattern), str(name)))

    logger.info("Loaded %d user agent patterns from %s", len(entries), table_path)
    return tuple(entries)


def lookup(user_agent: str, table: tuple[tuple[str, str], ...] | None = None) -> str | None:
    """Return the canonical name of the first pattern contained in user_agent."""
    for pattern, name in table if table is not None else load_user_agents():
        if pattern in user_agent:
            return name
    return None


def classify(user_agent: str | None) -> ClientIdentity:
    """Classify a raw User-Agent value. Unmatched or missing values are unknown."""
    if not user_agent:
        return UNKNOWN_IDENTITY
    name = lookup(user_agent)
    if name is None:
        return UNKNOWN_IDENTITY
    return ClientIdentity.from_name(name)


def client_from_headers(headers: Mapping[str, str]) -> ClientIdentity:
    """Classify the client behind a request's headers.

    Classification is best-effort: any failure yields the unknown identity.
    """
    try:
        return classify(headers.get("user-agent"))
    except Exception as e:
        logger.warning("Error detecting user agent: %s", e)
        return UNKNOWN_IDENTITY
