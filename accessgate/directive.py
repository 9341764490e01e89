"""
Directive - the parsed two-part answer of the control endpoint

Wire format is plain text ``<token>#<url>``.
"""

from dataclasses import dataclass

import httpx

from accessgate.errors import ParseError

SEGMENT_SEPARATOR = "#"


def is_absolute_url(value: str) -> bool:
    """True if value parses as a URL with both a scheme and a host"""
    if not value:
        return False
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError):
        return False
    return bool(url.scheme) and bool(url.host)


@dataclass(frozen=True)
class Directive:
    """Trust decision subject returned by the control endpoint"""
    granted_token: str
    delegated_url: str

    def is_valid_for(self, expected_token: str) -> bool:
        """Valid iff the token matches this build and the URL is absolute"""
        return self.granted_token == expected_token and is_absolute_url(self.delegated_url)


def parse_directive(raw_body: str) -> Directive:
    """
    Parse a response body into a Directive

    Leading/trailing whitespace is stripped, then the body must split on '#'
    into exactly two segments, the second being an absolute URL.

    Raises:
        ParseError: For any other shape
    """
    parts = raw_body.strip().split(SEGMENT_SEPARATOR)
    if len(parts) != 2:
        raise ParseError(f"Expected 2 '#'-separated segments, got {len(parts)}")

    token, url = parts
    if not is_absolute_url(url):
        raise ParseError("Second segment is not an absolute URL")

    return Directive(granted_token=token, delegated_url=url)
