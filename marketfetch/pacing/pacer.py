"""Human-cadence request pacing.

Spaces requests by a random delay drawn from ``[min_delay_ms, max_delay_ms]``
measured from the previous request's completion, and groups requests into
sessions: once ``max_pages_per_session`` slots have been granted, the next
caller sits through a ``session_break_duration_ms`` pause and a new session
starts.

Key behaviors:
- wait_for_slot() suspends (async sleep) until the request may proceed
- no artificial wait when enough wall-clock time has already passed
- slot grants are serialized, so concurrent callers queue in order
- purely time-based: no retries or error handling happen here
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PacingDecision:
    """Outcome of one ``wait_for_slot()`` call."""

    waited_ms: float
    session_break: bool = False


class RatePacer:
    """Inter-request delay and session-break enforcement.

    Args:
        min_delay_ms: Lower bound of the random inter-request delay.
        max_delay_ms: Upper bound of the random inter-request delay.
        max_pages_per_session: Slots granted before a session break.
        session_break_duration_ms: Length of the pause between sessions.
    """

    def __init__(
        self,
        min_delay_ms: int = 3000,
        max_delay_ms: int = 5000,
        max_pages_per_session: int = 2,
        session_break_duration_ms: int = 600000,
        *,
        rng: random.Random | None = None,
    ) -> None:
        if max_delay_ms < min_delay_ms:
            raise ValueError("max_delay_ms must be >= min_delay_ms")
        self._min_delay_ms = min_delay_ms
        self._max_delay_ms = max_delay_ms
        self._max_pages_per_session = max(1, max_pages_per_session)
        self._session_break_ms = session_break_duration_ms
        self._rng = rng or random.Random()
        self._lock = asyncio.Lock()

        self._last_request_at: float | None = None  # time.monotonic()
        self._session_count = 0
        self._total_slots = 0
        self._breaks_taken = 0

    async def wait_for_slot(self, *, new_page: bool = True) -> PacingDecision:
        """Suspend until the next request may proceed.

        Retries of a page already counted pass ``new_page=False``: they still
        honour the inter-request delay but do not advance the session counter.
        """
        # Sleeps under the lock so grants stay in arrival order
        async with self._lock:
            waited_ms = 0.0
            session_break = False

            if new_page and self._session_count >= self._max_pages_per_session:
                logger.info(
                    "Session limit of %d pages reached, pausing %.0fs",
                    self._max_pages_per_session,
                    self._session_break_ms / 1000,
                )
                await asyncio.sleep(self._session_break_ms / 1000)
                waited_ms += self._session_break_ms
                self._session_count = 0
                self._breaks_taken += 1
                session_break = True

            if self._last_request_at is not None:
                target_ms = self._rng.uniform(self._min_delay_ms, self._max_delay_ms)
                elapsed_ms = (time.monotonic() - self._last_request_at) * 1000
                if elapsed_ms < target_ms:
                    remaining_ms = target_ms - elapsed_ms
                    logger.debug("Pacing: waiting %.0fms before next request", remaining_ms)
                    await asyncio.sleep(remaining_ms / 1000)
                    waited_ms += remaining_ms

            if new_page:
                self._session_count += 1
            self._total_slots += 1
            self._last_request_at = time.monotonic()

            return PacingDecision(waited_ms=waited_ms, session_break=session_break)

    def mark_complete(self) -> None:
        """Stamp the completion time of the request that just finished."""
        self._last_request_at = time.monotonic()

    def reset_session(self) -> None:
        """Start a new session immediately, without the break."""
        self._session_count = 0

    def stats(self) -> dict:
        return {
            "session_requests": self._session_count,
            "max_pages_per_session": self._max_pages_per_session,
            "total_slots": self._total_slots,
            "session_breaks": self._breaks_taken,
            "min_delay_ms": self._min_delay_ms,
            "max_delay_ms": self._max_delay_ms,
        }
