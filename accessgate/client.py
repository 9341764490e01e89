"""
Remote directive client

Builds the control request, fetches the raw body over HTTP and parses it into
a Directive. Any status code is accepted: a reachable server's body is always
handed to the parser, only network-layer failures become TransportError.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import httpx

from accessgate.config import GateConfig
from accessgate.directive import Directive, parse_directive
from accessgate.environment import EnvironmentInfoProvider, SystemEnvironmentInfo
from accessgate.errors import ConfigurationError, TransportError
from accessgate.reasons import ReasonCode

logger = logging.getLogger(__name__)


class RemoteDirectiveClient:
    """Client for the control endpoint"""

    def __init__(
        self,
        config: GateConfig,
        environment: Optional[EnvironmentInfoProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: Static gate configuration
            environment: Device/locale metadata source (default: system)
            transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self.config = config
        self.environment = environment or SystemEnvironmentInfo()
        self.transport = transport

    def _query_items(self) -> List[Tuple[str, str]]:
        env = self.environment
        items = [
            ("p", self.config.auth_code),
            ("os", env.os_description()),
            ("lng", env.language_code()),
            ("devicemodel", env.device_model()),
        ]
        country = env.region_code()
        if country:
            items.append(("country", country))
        return items

    def build_request_url(self) -> str:
        """
        Compose the control endpoint URL with the request metadata

        Raises:
            ConfigurationError: If the endpoint is not an absolute http(s) URL
        """
        endpoint = self.config.control_endpoint
        try:
            base = httpx.URL(endpoint)
        except (httpx.InvalidURL, TypeError) as e:
            raise ConfigurationError(f"Malformed control endpoint: {e}") from e

        if base.scheme not in ("http", "https") or not base.host:
            raise ConfigurationError(f"Control endpoint must be an absolute http(s) URL: {endpoint!r}")

        return str(base.copy_with(params=self._query_items()))

    async def fetch_directive(self, request_url: str) -> str:
        """
        GET the request URL and return the body text

        Raises:
            TransportError: On any network-layer failure
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.config.request_timeout_seconds,
                transport=self.transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(request_url)
        except httpx.TimeoutException as e:
            raise TransportError(f"Control request timed out: {e}", ReasonCode.TIMEOUT) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Control request failed: {type(e).__name__}: {e}") from e

        logger.debug(f"Control endpoint answered HTTP {response.status_code} ({len(response.content)} bytes)")
        return response.content.decode("utf-8", errors="replace")

    def parse_directive(self, raw_body: str) -> Directive:
        """See accessgate.directive.parse_directive"""
        return parse_directive(raw_body)
