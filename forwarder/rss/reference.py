"""Recover the original audio URL from an indirection request."""

import html
import re
from enum import Enum
from urllib.parse import parse_qsl, unquote, urlsplit

from forwarder.rss.rewrite import REFERENCE_PARAM, has_audio_extension

# Only complete entities (terminated by `;`) are decoded, so query keys such
# as `&copy=` or `&not=` survive untouched.
_ENTITY_PATTERN = re.compile(r"&(?:#[0-9]+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);")


class ErrorKind(str, Enum):
    INVALID_PREFIX = "invalid_prefix"
    INVALID_AUDIO_FORMAT = "invalid_audio_format"
    MISSING_REFERENCE = "missing_reference"
    MALFORMED_REFERENCE = "malformed_reference"


class ForwardingError(Exception):
    """Base error for indirection requests that cannot be redirected."""

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidPrefixError(ForwardingError):
    kind = ErrorKind.INVALID_PREFIX


class InvalidAudioFormatError(ForwardingError):
    kind = ErrorKind.INVALID_AUDIO_FORMAT


class MissingReferenceError(ForwardingError):
    kind = ErrorKind.MISSING_REFERENCE


class MalformedReferenceError(ForwardingError):
    kind = ErrorKind.MALFORMED_REFERENCE


def unescape_entities(value: str) -> str:
    return _ENTITY_PATTERN.sub(lambda match: html.unescape(match.group(0)), value)


def validate_forward_path(request_path: str, required_prefix: str | None = None) -> None:
    """Check that a request path looks like an indirection URL for an audio file."""
    if required_prefix is not None and not request_path.startswith(required_prefix):
        raise InvalidPrefixError(
            f"Forward URL does not start with `{required_prefix}` prefix"
        )
    if not has_audio_extension(request_path):
        raise InvalidAudioFormatError(f"Unknown audio file format: {request_path}")


def _parse_reference(reference: str) -> str:
    try:
        parsed = urlsplit(reference)
    except ValueError as e:
        raise MalformedReferenceError(f"Cannot parse ref {reference}: {e}") from e
    if not parsed.scheme or not parsed.netloc:
        raise MalformedReferenceError(f"Cannot parse ref {reference}: not an absolute URL")
    return reference


def extract_reference(request_url: str) -> str:
    """
    Decode the original URL carried in the `ref` parameter of request_url.

    The indirection URL was HTML-escaped when it was embedded in the feed, so
    entities are decoded before the query string is parsed. The parameter value
    is percent-decoded once more on top of the query-string decoding.

    Raises:
        MissingReferenceError: No `ref` parameter is present.
        MalformedReferenceError: The value cannot be decoded or is not a URL.
    """
    decoded_url = unescape_entities(request_url)
    try:
        query = urlsplit(decoded_url).query
    except ValueError as e:
        raise MalformedReferenceError(f"Cannot parse request URL {request_url}: {e}") from e

    try:
        pairs = parse_qsl(query, keep_blank_values=True, errors="strict")
    except UnicodeDecodeError as e:
        raise MalformedReferenceError(f"Cannot decode query of {request_url}: {e}") from e

    for key, value in pairs:
        if key != REFERENCE_PARAM:
            continue
        try:
            reference = unquote(value, errors="strict")
        except UnicodeDecodeError as e:
            raise MalformedReferenceError(f"Cannot decode ref {value}: {e}") from e
        return _parse_reference(reference)

    raise MissingReferenceError("Could not find ref parameter")


def resolve(request_path: str, request_url: str, required_prefix: str | None = None) -> str:
    """
    Validate an indirection request and return the original URL to redirect to.

    Example:
        resolve("/r/podcast1.mp3",
                "https://example.org/r/podcast1.mp3?ref=https%3A%2F%2Fexample.com%2Fpodcast1.mp3",
                "/r")
        # 'https://example.com/podcast1.mp3'
    """
    validate_forward_path(request_path, required_prefix)
    return extract_reference(request_url)
