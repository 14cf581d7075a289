"""Proxy registry with success-rate ranking, random spreading, and failure tracking.

The registry never performs network I/O and never raises: callers learn
that no proxy is usable because ``best()`` / ``random_active()`` return
``None``. Feedback from the orchestrator flows in through ``report()``;
a proxy moves to ``failed`` after ``failure_threshold`` consecutive
failures and comes back only through ``reset_failed()`` or, when
configured, once ``failed_cooldown_seconds`` have elapsed.

All mutations happen under a single registry-wide lock so one registry
can be shared by several orchestrators without interleaved updates.
"""

from __future__ import annotations

import logging
import math
import random
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass

from marketfetch.proxy.types import Proxy, ProxyOutcome, ProxyStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxyPoolStats:
    """Aggregate snapshot of the registry."""

    total: int
    active: int
    failed: int
    success_rate: float  # percentage, 2 decimals
    average_latency: float  # ms, 2 decimals

    def as_dict(self) -> dict:
        """Monitoring shape consumed by dashboards and the CLI."""
        return {
            "total": self.total,
            "active": self.active,
            "failed": self.failed,
            "successRate": self.success_rate,
            "averageSpeed": self.average_latency,
        }


class ProxyRegistry:
    """Tracks a pool of upstream proxies and their health.

    Args:
        failure_threshold: Consecutive failures that move a proxy to ``failed``.
        failed_cooldown_seconds: When set, failed proxies become selectable
            again after this many seconds. ``None`` keeps them failed until
            ``reset_failed()`` is called.
        latency_smoothing: Weight of the newest sample in the latency
            exponential moving average (0 < alpha <= 1).
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        failed_cooldown_seconds: int | None = None,
        latency_smoothing: float = 0.3,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._proxies: list[Proxy] = []
        self._failure_threshold = max(1, failure_threshold)
        self._failed_cooldown_seconds = failed_cooldown_seconds
        self._alpha = min(max(latency_smoothing, 0.01), 1.0)
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def add(self, proxies: Iterable[Proxy]) -> None:
        """Append proxies. Duplicates are kept and tracked independently."""
        added = list(proxies)
        with self._lock:
            self._proxies.extend(added)
            total = len(self._proxies)
        logger.info("Added %d proxies to registry (total: %d)", len(added), total)

    def remove_stale(self, max_age_seconds: float) -> int:
        """Drop proxies last used more than *max_age_seconds* ago.

        Proxies never used are kept. Returns the number removed.
        """
        cutoff = time.time() - max_age_seconds
        with self._lock:
            before = len(self._proxies)
            self._proxies = [
                p for p in self._proxies
                if p.last_used_at is None or p.last_used_at >= cutoff
            ]
            removed = before - len(self._proxies)
        if removed:
            logger.info("Removed %d stale proxies from registry", removed)
        return removed

    def __len__(self) -> int:
        return len(self._proxies)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def best(self) -> Proxy | None:
        """Active proxy with the highest success rate, ties → lowest latency."""
        with self._lock:
            self._reactivate_cooled_down()
            candidates = [p for p in self._proxies if p.is_selectable]
            if not candidates:
                return None
            return min(candidates, key=_ranking_key)

    def random_active(self, exclude: Proxy | None = None) -> Proxy | None:
        """Uniform-random active proxy, avoiding *exclude* when another exists."""
        with self._lock:
            self._reactivate_cooled_down()
            candidates = [p for p in self._proxies if p.is_selectable]
            if exclude is not None and len(candidates) > 1:
                candidates = [p for p in candidates if p is not exclude]
            if not candidates:
                return None
            return self._rng.choice(candidates)

    def active(self) -> list[Proxy]:
        with self._lock:
            self._reactivate_cooled_down()
            return [p for p in self._proxies if p.is_selectable]

    def failed(self) -> list[Proxy]:
        with self._lock:
            self._reactivate_cooled_down()
            return [p for p in self._proxies if p.status == ProxyStatus.FAILED]

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def report(
        self,
        proxy: Proxy,
        outcome: ProxyOutcome,
        latency_ms: float | None = None,
    ) -> None:
        """Record the outcome of one attempt made through *proxy*."""
        with self._lock:
            proxy.last_used_at = time.time()

            if outcome == ProxyOutcome.SUCCESS:
                proxy.success_count += 1
                proxy.consecutive_failures = 0
                if proxy.status != ProxyStatus.FAILED:
                    proxy.status = ProxyStatus.ACTIVE
                if latency_ms is not None:
                    self._update_latency(proxy, latency_ms)
                return

            proxy.failure_count += 1
            proxy.consecutive_failures += 1

            if proxy.status == ProxyStatus.FAILED:
                return

            if proxy.consecutive_failures >= self._failure_threshold:
                proxy.status = ProxyStatus.FAILED
                proxy.failed_at = time.monotonic()
                logger.warning(
                    "Proxy marked failed: %s (%d consecutive failures)",
                    proxy.key,
                    proxy.consecutive_failures,
                )
            else:
                proxy.status = ProxyStatus.ACTIVE
                logger.debug(
                    "Proxy failure %d/%d: %s",
                    proxy.consecutive_failures,
                    self._failure_threshold,
                    proxy.key,
                )

    def reset_failed(self) -> int:
        """Move every failed proxy back to active; history counters are kept."""
        with self._lock:
            count = 0
            for proxy in self._proxies:
                if proxy.status == ProxyStatus.FAILED:
                    self._reactivate(proxy)
                    count += 1
        if count:
            logger.info("Reset %d failed proxies to active", count)
        return count

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def stats(self) -> ProxyPoolStats:
        """Aggregate snapshot. Only an elapsed cooldown changes state."""
        with self._lock:
            self._reactivate_cooled_down()
            total = len(self._proxies)
            failed = sum(1 for p in self._proxies if p.status == ProxyStatus.FAILED)
            successes = sum(p.success_count for p in self._proxies)
            failures = sum(p.failure_count for p in self._proxies)
            measured = [p.average_latency_ms for p in self._proxies if p.success_count > 0]

        attempts = successes + failures
        success_rate = (successes / attempts) * 100 if attempts else 0.0
        average_latency = sum(measured) / len(measured) if measured else 0.0

        return ProxyPoolStats(
            total=total,
            active=total - failed,
            failed=failed,
            success_rate=round(success_rate, 2),
            average_latency=round(average_latency, 2),
        )

    def snapshot(self) -> list[dict]:
        """Per-proxy rows for the monitoring endpoint. Credentials are omitted."""
        with self._lock:
            self._reactivate_cooled_down()
            return [
                {
                    "proxy": p.key,
                    "protocol": p.protocol,
                    "country": p.country,
                    "status": p.status.value,
                    "success_count": p.success_count,
                    "failure_count": p.failure_count,
                    "average_latency_ms": round(p.average_latency_ms, 2),
                }
                for p in self._proxies
            ]

    # ------------------------------------------------------------------
    # Internals (call with the lock held)
    # ------------------------------------------------------------------

    def _update_latency(self, proxy: Proxy, latency_ms: float) -> None:
        if proxy.success_count <= 1 or proxy.average_latency_ms == 0.0:
            proxy.average_latency_ms = float(latency_ms)
        else:
            proxy.average_latency_ms = (
                (1 - self._alpha) * proxy.average_latency_ms + self._alpha * latency_ms
            )

    def _reactivate_cooled_down(self) -> None:
        if self._failed_cooldown_seconds is None:
            return
        now = time.monotonic()
        for proxy in self._proxies:
            if (
                proxy.status == ProxyStatus.FAILED
                and proxy.failed_at is not None
                and now - proxy.failed_at >= self._failed_cooldown_seconds
            ):
                self._reactivate(proxy)
                logger.info("Proxy cooldown elapsed, reactivated: %s", proxy.key)

    @staticmethod
    def _reactivate(proxy: Proxy) -> None:
        proxy.status = ProxyStatus.ACTIVE
        proxy.consecutive_failures = 0
        proxy.failed_at = None


def _ranking_key(proxy: Proxy) -> tuple[float, float]:
    latency = proxy.average_latency_ms if proxy.success_count > 0 else math.inf
    return (-proxy.success_rate, latency)
