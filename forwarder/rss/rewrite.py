"""Turn audio links into indirection URLs that route through this service."""

import html
from urllib.parse import SplitResult, urlencode, urlsplit, urlunsplit

AUDIO_EXTENSIONS = ("mp3", "aac")
FORWARDABLE_SCHEMES = {"http", "https"}
REFERENCE_PARAM = "ref"


def has_audio_extension(path: str) -> bool:
    """Plain suffix check; `xmp3` counts as well as `.mp3`."""
    return path.endswith(AUDIO_EXTENSIONS)


def parse_forwardable(candidate: str) -> SplitResult | None:
    """Parse candidate and return it only if it is an http(s) audio link."""
    try:
        parsed = urlsplit(candidate)
    except ValueError:
        return None
    if parsed.scheme not in FORWARDABLE_SCHEMES or not parsed.netloc:
        return None
    if not has_audio_extension(parsed.path):
        return None
    return parsed


def is_forwardable(candidate: str) -> bool:
    return parse_forwardable(candidate) is not None


def _without_reference(query: str) -> str:
    """Drop `ref` pairs from a raw query string, leaving the rest byte-for-byte."""
    pairs = [
        pair for pair in query.split("&") if pair and pair.split("=", 1)[0] != REFERENCE_PARAM
    ]
    return "&".join(pairs)


def build_forward(original: str, base: str, path_prefix: str | None = None) -> str:
    """
    Build the indirection URL for an audio link.

    The result keeps scheme and host of `base`, uses the original path (behind
    `path_prefix` when given) and appends a single `ref` parameter carrying the
    full original URL. A `ref` already present on `base` is dropped. The
    rendered URL is HTML-escaped so it can be dropped into feed markup as-is.

    Args:
        original: Original audio URL, as it appeared in the feed.
        base: URL of the forwarding service.
        path_prefix: Optional path segment inserted before the original path.

    Returns:
        Escaped indirection URL string.

    Raises:
        ValueError: If `original` is not a forwardable URL.
    """
    parsed = parse_forwardable(original)
    if parsed is None:
        raise ValueError(f"Not a forwardable audio URL: {original}")

    forward = urlsplit(base)
    path = (path_prefix or "") + parsed.path
    reference = urlencode({REFERENCE_PARAM: original})
    base_query = _without_reference(forward.query)
    query = f"{base_query}&{reference}" if base_query else reference

    rendered = urlunsplit((forward.scheme, forward.netloc, path, query, ""))
    return html.escape(rendered, quote=False)
