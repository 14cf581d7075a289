"""Exponential backoff between retry attempts of one logical fetch."""

from __future__ import annotations

import random

from marketfetch.resilience.classifier import Classification


class BackoffPolicy:
    """Computes retry delays as ``base * 2**attempt`` capped at ``max``.

    Args:
        base_delay_ms: Delay unit in milliseconds.
        max_delay_ms: Ceiling applied before jitter.
        jitter_ms: Upper bound of the uniform random jitter added on top.
        rate_limited_multiplier: Extra factor applied after a 429 / rate-limit verdict.
    """

    def __init__(
        self,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 60000,
        jitter_ms: int = 0,
        rate_limited_multiplier: float = 2.0,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._base = base_delay_ms
        self._max = max_delay_ms
        self._jitter = jitter_ms
        self._rate_limited_multiplier = rate_limited_multiplier
        self._rng = rng or random.Random()

    def delay_ms(
        self,
        attempt: int,
        classification: Classification | None = None,
    ) -> float:
        """Return the wait in milliseconds after *attempt* failed attempts."""
        delay = self._base * (2 ** max(attempt, 0))
        if classification == Classification.RATE_LIMITED:
            delay *= self._rate_limited_multiplier
        delay = min(delay, self._max)
        if self._jitter > 0:
            delay += self._rng.uniform(0, self._jitter)
        return float(delay)
