"""Active proxy probing.

Sends one lightweight GET through each proxy and feeds the outcome and
latency back into the registry. This is the only proxy-side component that
touches the network; the registry itself stays I/O free.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from marketfetch.proxy.registry import ProxyRegistry
from marketfetch.proxy.types import Proxy, ProxyOutcome

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Proxy, float], httpx.AsyncClient]


@dataclass(frozen=True)
class ProbeResult:
    proxy: Proxy
    success: bool
    latency_ms: float
    error: str | None = None


def _default_client_factory(proxy: Proxy, timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(proxy=proxy.url, timeout=httpx.Timeout(timeout))


class ProxyProber:
    """Tests proxies against a probe URL and reports results to the registry.

    Args:
        registry: Registry receiving the feedback.
        test_url: URL fetched through each proxy.
        timeout: Per-probe timeout in seconds.
        pause_seconds: Pause between consecutive probes.
    """

    def __init__(
        self,
        registry: ProxyRegistry,
        test_url: str = "https://httpbin.org/ip",
        timeout: float = 10.0,
        pause_seconds: float = 1.0,
        *,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._registry = registry
        self._test_url = test_url
        self._timeout = timeout
        self._pause_seconds = pause_seconds
        self._client_factory = client_factory or _default_client_factory

    async def probe(self, proxy: Proxy) -> ProbeResult:
        """Probe one proxy. Any status below 500 counts as reachable."""
        started = time.monotonic()
        try:
            async with self._client_factory(proxy, self._timeout) as client:
                response = await client.get(self._test_url)
            latency_ms = (time.monotonic() - started) * 1000
            success = response.status_code < 500
            error = None if success else f"HTTP {response.status_code}"
        except (httpx.HTTPError, OSError) as exc:
            latency_ms = (time.monotonic() - started) * 1000
            success = False
            error = type(exc).__name__

        self._registry.report(
            proxy,
            ProxyOutcome.SUCCESS if success else ProxyOutcome.FAILURE,
            latency_ms if success else None,
        )
        if success:
            logger.debug("Proxy probe ok: %s (%.0fms)", proxy.key, latency_ms)
        else:
            logger.debug("Proxy probe failed: %s (%s)", proxy.key, error)
        return ProbeResult(proxy=proxy, success=success, latency_ms=latency_ms, error=error)

    async def probe_all(self) -> list[ProbeResult]:
        """Probe every proxy currently selectable, one after the other."""
        proxies = self._registry.active()
        logger.info("Probing %d proxies against %s", len(proxies), self._test_url)

        results: list[ProbeResult] = []
        for index, proxy in enumerate(proxies):
            results.append(await self.probe(proxy))
            if self._pause_seconds > 0 and index < len(proxies) - 1:
                await asyncio.sleep(self._pause_seconds)

        ok = sum(1 for r in results if r.success)
        logger.info("Proxy probe finished: %d ok, %d failed", ok, len(results) - ok)
        return results

    async def probe_loop(self, interval_seconds: float) -> None:
        """Re-probe the pool every *interval_seconds* until cancelled.

        A round that raises is logged and the loop carries on with the next
        one; only cancellation ends it.
        """
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.probe_all()
            except Exception:  # noqa: BLE001
                logger.exception("Proxy probe round failed")
