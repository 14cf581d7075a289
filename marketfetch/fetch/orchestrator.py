"""Fetch orchestrator — one retry state machine for every logical fetch.

Coordinates a logical fetch through the pipeline:
pacer wait → identity select → proxy select → HTTP request → classify →
feedback to the proxy registry and session stats → backoff and retry, or
return.

Attempts are bounded by ``max_retries``. OK short-circuits, PERMANENT_ERROR
stops immediately, everything else is retried with a different identity and
proxy after an exponential backoff. An optional deadline wraps the whole
logical fetch; when it expires the in-flight request or backoff wait is
cancelled and a TIMEOUT failure is returned.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

import httpx

from marketfetch.config.fetch_policies import load_fetch_policies
from marketfetch.config.settings import FetchSettings
from marketfetch.fetch.stats import OrchestratorStats, SessionStats
from marketfetch.fetch.types import (
    FailureKind,
    FetchAttempt,
    FetchFailure,
    FetchOptions,
    FetchOutcome,
    FetchResult,
    failure_kind_for,
)
from marketfetch.identity.pool import Identity, IdentityPool
from marketfetch.middleware.error_handler import ConfigurationError, FetchFailedError
from marketfetch.pacing.pacer import RatePacer
from marketfetch.proxy.loader import load_proxy_file, parse_proxy_lines
from marketfetch.proxy.registry import ProxyRegistry
from marketfetch.proxy.types import Proxy, ProxyOutcome
from marketfetch.resilience.backoff import BackoffPolicy
from marketfetch.resilience.classifier import Classification, ResponseClassifier

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Proxy | None, float], httpx.AsyncClient]

_DIRECT = "direct"


def _default_client_factory(proxy: Proxy | None, timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        proxy=proxy.url if proxy is not None else None,
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
    )


class _FetchState:
    """Progress of one logical fetch, readable after a deadline cancels it."""

    def __init__(self) -> None:
        self.attempts = 0
        self.last_status: int | None = None
        self.last_classification: Classification | None = None

    def failure(self, kind: FailureKind, reason: str | None = None) -> FetchFailure:
        return FetchFailure(
            kind=kind,
            attempts=self.attempts,
            last_status=self.last_status,
            last_classification=self.last_classification,
            reason=reason,
        )


class FetchOrchestrator:
    """Adaptive HTTP retrieval with identity/proxy rotation and pacing.

    The identity pool and proxy registry may be shared between orchestrators;
    the pacer and session stats belong to this instance. Dependencies are
    injected so the orchestrator is testable without network access; use
    :meth:`from_settings` to build the default wiring.
    """

    def __init__(
        self,
        settings: FetchSettings,
        *,
        identity_pool: IdentityPool,
        proxy_registry: ProxyRegistry,
        pacer: RatePacer,
        classifier: ResponseClassifier,
        backoff: BackoffPolicy | None = None,
        stats: SessionStats | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._settings = settings
        self._identity_pool = identity_pool
        self._proxy_registry = proxy_registry
        self._pacer = pacer
        self._classifier = classifier
        self._backoff = backoff or BackoffPolicy(
            base_delay_ms=settings.backoff_base_delay_ms,
            max_delay_ms=settings.backoff_max_delay_ms,
            jitter_ms=settings.backoff_jitter_ms,
            rate_limited_multiplier=settings.rate_limited_backoff_multiplier,
        )
        self._stats = stats or SessionStats()
        self._client_factory = client_factory or _default_client_factory

        # One client per route (proxy URL or direct), closed by aclose()
        self._clients: dict[str, httpx.AsyncClient] = {}

    @classmethod
    def from_settings(
        cls,
        settings: FetchSettings,
        *,
        proxy_registry: ProxyRegistry | None = None,
        client_factory: ClientFactory | None = None,
    ) -> "FetchOrchestrator":
        """Wire every component from settings plus the YAML fetch policies."""
        policies = load_fetch_policies(settings.policies_path)

        signatures = list(settings.block_signatures)
        for signature in policies.block_signatures:
            if signature.lower() not in (s.lower() for s in signatures):
                signatures.append(signature)

        if proxy_registry is None:
            proxy_registry = ProxyRegistry(
                failure_threshold=settings.proxy_failure_threshold,
                failed_cooldown_seconds=settings.proxy_failed_cooldown_seconds,
            )
            if settings.proxy_file:
                proxy_registry.add(load_proxy_file(settings.proxy_file))
            if settings.proxy_endpoints:
                proxy_registry.add(parse_proxy_lines(settings.proxy_endpoints))

        if settings.use_proxies and not settings.allow_direct_fallback and not len(proxy_registry):
            raise ConfigurationError(
                "use_proxies without direct fallback needs at least one proxy",
                proxy_file=settings.proxy_file,
            )

        return cls(
            settings,
            identity_pool=IdentityPool(
                policies.build_identities() or None,
                strategy=settings.identity_strategy,
            ),
            proxy_registry=proxy_registry,
            pacer=RatePacer(
                min_delay_ms=settings.min_delay_ms,
                max_delay_ms=settings.max_delay_ms,
                max_pages_per_session=settings.max_pages_per_session,
                session_break_duration_ms=settings.session_break_duration_ms,
            ),
            classifier=ResponseClassifier(signatures),
            client_factory=client_factory,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def proxy_registry(self) -> ProxyRegistry:
        return self._proxy_registry

    @property
    def pacer(self) -> RatePacer:
        return self._pacer

    async def fetch(
        self,
        url: str,
        options: FetchOptions | None = None,
        *,
        max_retries: int | None = None,
        timeout: float | None = None,
    ) -> FetchOutcome:
        """Fetch *url*, retrying with rotated identity and proxy.

        Returns a :class:`FetchResult` on success or a :class:`FetchFailure`
        describing why the fetch ended. Never raises for network or HTTP
        errors; cancellation by the caller still propagates.
        """
        options = options or FetchOptions()
        retries = self._settings.max_retries if max_retries is None else max_retries
        if retries < 1:
            raise ValueError("max_retries must be >= 1")
        deadline = self._settings.fetch_timeout_seconds if timeout is None else timeout

        state = _FetchState()
        started = time.monotonic()

        if deadline is None:
            outcome = await self._run(url, options, retries, state, started)
        else:
            try:
                outcome = await asyncio.wait_for(
                    self._run(url, options, retries, state, started),
                    timeout=deadline,
                )
            except asyncio.TimeoutError:
                outcome = state.failure(
                    FailureKind.TIMEOUT, reason=f"deadline of {deadline}s exceeded"
                )

        if isinstance(outcome, FetchFailure):
            logger.warning(
                "Fetch failed for %s: %s after %d attempts (last_status=%s)",
                url,
                outcome.kind.value,
                outcome.attempts,
                outcome.last_status,
                extra={
                    "target_url": url,
                    "attempt": outcome.attempts,
                    "status_code": outcome.last_status,
                    "elapsed_ms": round((time.monotonic() - started) * 1000, 1),
                },
            )
        return outcome

    async def fetch_or_raise(
        self,
        url: str,
        options: FetchOptions | None = None,
        *,
        max_retries: int | None = None,
        timeout: float | None = None,
    ) -> FetchResult:
        """Like :meth:`fetch`, but raise :class:`FetchFailedError` on failure."""
        outcome = await self.fetch(url, options, max_retries=max_retries, timeout=timeout)
        if isinstance(outcome, FetchFailure):
            raise FetchFailedError(outcome, url=url)
        return outcome

    def stats(self) -> OrchestratorStats:
        return self._stats.snapshot()

    def new_session(self) -> None:
        """Explicit session break: new fingerprint, pacer counter reset."""
        self._stats.start_new_session()
        self._pacer.reset_session()
        logger.info("Started new fetch session %s", self._stats.session_fingerprint)

    async def aclose(self) -> None:
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()

    async def __aenter__(self) -> "FetchOrchestrator":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Retry loop
    # ------------------------------------------------------------------

    async def _run(
        self,
        url: str,
        options: FetchOptions,
        max_retries: int,
        state: _FetchState,
        started: float,
    ) -> FetchOutcome:
        previous_proxy: Proxy | None = None

        while state.attempts < max_retries:
            decision = await self._pacer.wait_for_slot(new_page=state.attempts == 0)
            if decision.session_break:
                self._stats.start_new_session()

            identity = options.identity or self._identity_pool.next()
            proxy, routable = self._select_proxy(options, state.attempts == 0, previous_proxy)
            if not routable:
                return state.failure(FailureKind.NETWORK, reason="no active proxies")

            state.attempts += 1
            classification, response = await self._attempt(
                url, options, identity, proxy, state.attempts
            )
            state.last_classification = classification
            state.last_status = response.status_code if response is not None else None

            if classification == Classification.OK and response is not None:
                return FetchResult(
                    status=response.status_code,
                    body=response.text,
                    headers=dict(response.headers),
                    final_url=str(response.url),
                    attempts=state.attempts,
                    elapsed_ms=round((time.monotonic() - started) * 1000, 1),
                    proxy=proxy.key if proxy is not None else None,
                    identity=identity.name,
                )

            if not classification.is_retryable:
                return state.failure(
                    FailureKind.PERMANENT,
                    reason=f"HTTP {state.last_status}" if state.last_status else None,
                )

            previous_proxy = proxy
            if state.attempts < max_retries:
                delay_ms = self._backoff.delay_ms(state.attempts, classification)
                logger.info(
                    "Retrying %s in %.0fms after %s (attempt %d/%d)",
                    url,
                    delay_ms,
                    classification.value,
                    state.attempts,
                    max_retries,
                    extra={
                        "target_url": url,
                        "attempt": state.attempts,
                        "classification": classification.value,
                        "backoff_ms": round(delay_ms, 1),
                    },
                )
                await asyncio.sleep(delay_ms / 1000)

        return state.failure(failure_kind_for(state.last_classification))

    def _select_proxy(
        self,
        options: FetchOptions,
        first_attempt: bool,
        previous: Proxy | None,
    ) -> tuple[Proxy | None, bool]:
        """Return ``(proxy, routable)``; ``(None, True)`` means go direct."""
        if options.proxy is not None:
            return options.proxy, True

        use_proxies = (
            self._settings.use_proxies if options.use_proxies is None else options.use_proxies
        )
        if not use_proxies:
            return None, True

        if first_attempt:
            proxy = self._proxy_registry.best()
        else:
            proxy = self._proxy_registry.random_active(exclude=previous)

        if proxy is not None:
            return proxy, True
        if self._settings.allow_direct_fallback:
            logger.warning("No active proxies, falling back to a direct connection")
            return None, True
        return None, False

    # ------------------------------------------------------------------
    # Single attempt
    # ------------------------------------------------------------------

    async def _attempt(
        self,
        url: str,
        options: FetchOptions,
        identity: Identity,
        proxy: Proxy | None,
        attempt_number: int,
    ) -> tuple[Classification, httpx.Response | None]:
        """Issue one request and apply its feedback to registry, stats and pacer."""
        headers = identity.build_headers(options.headers, referer=options.referer)
        client = self._client_for(proxy)
        started_at = time.time()
        started = time.monotonic()

        response: httpx.Response | None = None
        error: str | None = None
        try:
            response = await client.request(
                options.method, url, headers=headers, params=options.params
            )
            classification = self._classifier.classify(
                response.status_code, response.text, response.headers
            )
        except asyncio.CancelledError:
            # Deadline hit mid-request; the proxy did not deliver
            self._finish_attempt(
                url, identity, proxy, started_at, started, None,
                "Cancelled", Classification.TRANSIENT_ERROR, attempt_number,
            )
            raise
        except (httpx.HTTPError, OSError) as exc:
            error = type(exc).__name__
            classification = self._classifier.classify_exception(exc)

        self._finish_attempt(
            url, identity, proxy, started_at, started,
            response.status_code if response is not None else None,
            error, classification, attempt_number,
        )
        return classification, response

    def _finish_attempt(
        self,
        url: str,
        identity: Identity,
        proxy: Proxy | None,
        started_at: float,
        started: float,
        status_code: int | None,
        error: str | None,
        classification: Classification,
        attempt_number: int,
    ) -> None:
        elapsed_ms = (time.monotonic() - started) * 1000
        self._pacer.mark_complete()

        if proxy is not None:
            if classification == Classification.OK:
                self._proxy_registry.report(proxy, ProxyOutcome.SUCCESS, latency_ms=elapsed_ms)
            elif classification != Classification.PERMANENT_ERROR:
                self._proxy_registry.report(proxy, ProxyOutcome.FAILURE)

        self._stats.record(
            FetchAttempt(
                url=url,
                identity=identity.name,
                proxy=proxy.key if proxy is not None else None,
                started_at=started_at,
                elapsed_ms=elapsed_ms,
                status_code=status_code,
                error=error,
                classification=classification,
            )
        )

        level = logging.DEBUG if classification == Classification.OK else logging.INFO
        logger.log(
            level,
            "Attempt %d for %s: %s",
            attempt_number,
            url,
            classification.value,
            extra={
                "target_url": url,
                "proxy_used": proxy.key if proxy is not None else _DIRECT,
                "identity": identity.name,
                "attempt": attempt_number,
                "classification": classification.value,
                "status_code": status_code,
                "elapsed_ms": round(elapsed_ms, 1),
            },
        )

    def _client_for(self, proxy: Proxy | None) -> httpx.AsyncClient:
        key = proxy.url if proxy is not None else _DIRECT
        client = self._clients.get(key)
        if client is None or client.is_closed:
            client = self._client_factory(proxy, self._settings.request_timeout_seconds)
            self._clients[key] = client
        return client
