"""Sequential multi-page runner on top of one orchestrator."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable

from marketfetch.fetch.orchestrator import FetchOrchestrator
from marketfetch.fetch.types import FailureKind, FetchFailure, FetchOptions, FetchOutcome

logger = logging.getLogger(__name__)

DEFAULT_STOP_ON: tuple[FailureKind, ...] = (
    FailureKind.BLOCKED,
    FailureKind.RATE_LIMITED,
    FailureKind.TIMEOUT,
)


async def fetch_pages(
    orchestrator: FetchOrchestrator,
    urls: Iterable[str],
    *,
    options: FetchOptions | None = None,
    stop_on: Iterable[FailureKind] = DEFAULT_STOP_ON,
) -> AsyncIterator[tuple[str, FetchOutcome]]:
    """Fetch *urls* one after another, yielding ``(url, outcome)`` pairs.

    Pages are never fetched concurrently; the orchestrator's pacer spaces them
    and inserts session breaks. The run stops after the first failure whose
    kind is in *stop_on*; other failures are yielded and the run continues.
    """
    stop_kinds = frozenset(stop_on)
    for url in urls:
        outcome = await orchestrator.fetch(url, options)
        yield url, outcome
        if isinstance(outcome, FetchFailure) and outcome.kind in stop_kinds:
            logger.warning(
                "Stopping page run at %s: %s",
                url,
                outcome.kind.value,
                extra={"target_url": url},
            )
            return
