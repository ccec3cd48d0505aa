"""Rewrite a podcast feed so audio downloads pass through the forwarder."""

from urllib.parse import urlsplit

from forwarder.core.logging import get_logger
from forwarder.rss.extract import LINK_PATTERN, extract_enclosures
from forwarder.rss.rewrite import build_forward, is_forwardable

logger = get_logger(__name__)


def _site_url(url: str) -> str:
    # A bare origin renders with a trailing slash, e.g. https://example.org/
    parts = urlsplit(url)
    if parts.netloc and not parts.path:
        return parts._replace(path="/").geturl()
    return url


class Replacer:
    """
    Replaces audio enclosure URLs and `<link>` elements in a feed document.

    Example:
        replacer = Replacer("https://example.org", "https://fwd.example.org", "/r")
        replacer.replace('<enclosure url="https://cdn.example.com/ep1.mp3"/>')
        # '<enclosure url="https://fwd.example.org/r/ep1.mp3?ref=https%3A%2F%2F..."/>'
    """

    def __init__(self, link_url: str, forward_url: str, path_prefix: str | None = None):
        self.link_url = _site_url(link_url)
        self.forward_url = forward_url
        self.path_prefix = path_prefix

    def rewrite_mapping(self, document: str) -> dict[str, str]:
        """Map each forwardable enclosure URL, as written in the source, to its rewrite."""
        mapping: dict[str, str] = {}
        for candidate in extract_enclosures(document):
            if not is_forwardable(candidate):
                continue
            mapping[candidate] = build_forward(candidate, self.forward_url, self.path_prefix)
        return mapping

    def replace_links(self, document: str) -> str:
        """Point every `<link>` element at the site URL."""
        replacement = f"<link>{self.link_url}</link>"
        return LINK_PATTERN.sub(lambda _match: replacement, document)

    def replace(self, document: str) -> str:
        mapping = self.rewrite_mapping(document)
        # Longest first: `ep.mp3` must not clobber `ep.mp3?v=2`
        for original in sorted(mapping, key=len, reverse=True):
            document = document.replace(original, mapping[original])
        logger.debug("Rewrote %d enclosure URLs", len(mapping))
        return self.replace_links(document)


def replace(
    document: str, base: str, path_prefix: str | None = None, *, link_url: str
) -> str:
    """Functional shortcut for `Replacer(link_url, base, path_prefix).replace(document)`."""
    return Replacer(link_url, base, path_prefix).replace(document)
