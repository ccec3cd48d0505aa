"""Pull candidate links out of raw feed markup.

Not an XML parser: two narrow patterns pick up
`<enclosure ... url="...">` attributes and `<link>...</link>` bodies, and
values are returned exactly as they appear in the source (entities such as
`&amp;` are left alone).
"""

import re
from dataclasses import dataclass
from enum import Enum

ENCLOSURE_URL_PATTERN = re.compile(r"""<enclosure[^>]*?\burl=(["'])(?P<url>.*?)\1""")
LINK_PATTERN = re.compile(r"<link>(?P<url>.*?)</link>")


class LinkOrigin(str, Enum):
    ENCLOSURE = "enclosure"
    LINK = "link"


@dataclass(frozen=True)
class CandidateLink:
    url: str
    origin: LinkOrigin


def extract_enclosures(document: str) -> list[str]:
    """Return every enclosure `url` attribute value, in document order."""
    return [match.group("url") for match in ENCLOSURE_URL_PATTERN.finditer(document)]


def extract_links(document: str) -> list[str]:
    """Return every `<link>` element body, in document order."""
    return [match.group("url") for match in LINK_PATTERN.finditer(document)]


def extract_candidates(document: str) -> list[CandidateLink]:
    candidates = [CandidateLink(url, LinkOrigin.ENCLOSURE) for url in extract_enclosures(document)]
    candidates.extend(CandidateLink(url, LinkOrigin.LINK) for url in extract_links(document))
    return candidates
