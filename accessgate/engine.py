"""
Access decision engine

Orchestrates the startup decision:

    cached grant?  --yes-->  ALLOWED (no network)
        |no
    CHECKING --> build request --> fetch --> parse/validate --> persist --> ALLOWED
                      |               |             |
               config error    transport error   malformed/rejected
                      |               |             |
                  FALLBACK     backoff + retry   FALLBACK

Transport failures are retried forever; every other failure is terminal.
"""

import asyncio
import logging
import threading
from typing import Awaitable, Callable, Optional, Tuple

import httpx

from accessgate.backoff import backoff_delay
from accessgate.client import RemoteDirectiveClient
from accessgate.config import GateConfig
from accessgate.directive import Directive
from accessgate.environment import EnvironmentInfoProvider
from accessgate.errors import ConfigurationError, NotFound, ParseError, StoreError, TransportError
from accessgate.reasons import ReasonCode, get_hint
from accessgate.secrets import EncryptedFileBackend, MemoryBackend, SecretBackend, SecureValueStore, redact
from accessgate.state import DecisionState, FallbackReason, StatePublisher
from accessgate.trust_cache import TrustCache

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class AccessDecisionEngine:
    """Single owner of the decision state for one application run"""

    def __init__(
        self,
        config: GateConfig,
        client: RemoteDirectiveClient,
        secure_store: SecureValueStore,
        trust_cache: TrustCache,
        publisher: Optional[StatePublisher] = None,
        sleep: SleepFunc = asyncio.sleep,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        """
        Args:
            config: Static gate configuration
            client: Control endpoint client
            secure_store: Store holding the token half of the grant
            trust_cache: Settings holding the URL half of the grant
            publisher: State channel observed by the presentation layer
            sleep: Backoff sleep (injectable for tests)
            cancel_event: Optional event checked at each backoff sleep;
                when set, the retry loop stops and the state stays CHECKING
        """
        self.config = config
        self.client = client
        self.secure_store = secure_store
        self.trust_cache = trust_cache
        self.publisher = publisher or StatePublisher()
        self._sleep = sleep
        self._cancel_event = cancel_event

        self._attempts = 0
        self._started = False
        self._start_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: GateConfig,
        environment: Optional[EnvironmentInfoProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AccessDecisionEngine":
        """Wire an engine against the on-disk stores below config.data_dir"""
        backend: SecretBackend
        try:
            backend = EncryptedFileBackend(config.secrets_path, config.secrets_key_path)
        except StoreError as e:
            # Grant cannot be read or kept across runs; the decision itself still works
            logger.warning(f"Secret store unavailable, using process-local store: {e}")
            backend = MemoryBackend()

        return cls(
            config=config,
            client=RemoteDirectiveClient(config, environment=environment, transport=transport),
            secure_store=SecureValueStore(backend),
            trust_cache=TrustCache(config.settings_path, url_key=config.cache_url_key),
        )

    @property
    def state(self) -> DecisionState:
        return self.publisher.value

    @property
    def attempts(self) -> int:
        """Transport failures seen so far in this run"""
        return self._attempts

    async def start(self) -> DecisionState:
        """
        Run the decision flow once per engine

        Re-entrant or concurrent calls while a flow is running, or after it
        finished, return the current state without doing anything.
        """
        with self._start_lock:
            if self._started:
                logger.debug(f"Decision flow already started (state={self.state}), ignoring start()")
                return self.state
            self._started = True

        cached = self._read_cached_grant()
        if cached is not None:
            token, url = cached
            logger.info("Using cached grant, skipping control request")
            self.publisher.publish(DecisionState.allowed(token, url))
            return self.state

        self.publisher.publish(DecisionState.checking())
        await self._retrieve_access()
        return self.state

    def _read_cached_grant(self) -> Optional[Tuple[str, str]]:
        url = self.trust_cache.read_cached_url()
        if url is None:
            return None

        try:
            token = self.secure_store.read(self.config.cache_token_key)
        except NotFound:
            logger.debug("Cached URL present but no stored token")
            return None
        except StoreError as e:
            logger.warning(f"Cannot read stored token, ignoring cached grant: {e}")
            return None

        if token != self.config.expected_token:
            logger.info(f"Stored token {redact(token)} does not match this build, re-checking")
            return None

        return token, url

    async def _retrieve_access(self) -> None:
        try:
            request_url = self.client.build_request_url()
        except ConfigurationError as e:
            logger.error(f"{e} ({e.hint})")
            self.publisher.publish(DecisionState.fallback(FallbackReason.INVALID_CONFIG))
            return

        while True:
            try:
                body = await self.client.fetch_directive(request_url)
            except TransportError as e:
                self._attempts += 1
                delay = backoff_delay(
                    self._attempts,
                    base_seconds=self.config.backoff_base_seconds,
                    max_exponent=self.config.backoff_max_exponent,
                    cap_seconds=self.config.backoff_cap_seconds,
                )
                logger.warning(f"Control request attempt {self._attempts} failed: {e}; retrying in {delay:g}s")
                if await self._sleep_or_cancel(delay):
                    logger.info(f"Decision flow cancelled after {self._attempts} failed attempts")
                    return
                continue

            try:
                directive = self.client.parse_directive(body)
            except ParseError as e:
                logger.info(f"Falling back to local mode: {e} ({e.hint})")
                self.publisher.publish(DecisionState.fallback(FallbackReason.MALFORMED_RESPONSE))
                return

            if not directive.is_valid_for(self.config.expected_token):
                logger.info(
                    f"Falling back to local mode: token {redact(directive.granted_token)} rejected "
                    f"({get_hint(ReasonCode.REJECTED_TOKEN)})"
                )
                self.publisher.publish(DecisionState.fallback(FallbackReason.REJECTED_TOKEN))
                return

            self._persist_grant(directive)
            self.publisher.publish(DecisionState.allowed(directive.granted_token, directive.delegated_url))
            return

    async def _sleep_or_cancel(self, delay: float) -> bool:
        """Sleep for delay; True if the run was cancelled at this boundary"""
        if self._cancel_event is not None and self._cancel_event.is_set():
            return True
        await self._sleep(delay)
        return self._cancel_event is not None and self._cancel_event.is_set()

    def _persist_grant(self, directive: Directive) -> None:
        try:
            self.trust_cache.write_cached_url(directive.delegated_url)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to cache trusted URL: {e}")

        try:
            self.secure_store.save(self.config.cache_token_key, directive.granted_token)
        except StoreError as e:
            logger.warning(f"Failed to store verification token: {e}")
