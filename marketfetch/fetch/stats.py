"""Rolling request statistics owned by a single orchestrator."""

from __future__ import annotations

import secrets
import time
from collections import deque
from dataclasses import dataclass

from marketfetch.fetch.types import FetchAttempt
from marketfetch.resilience.classifier import Classification

RECENT_WINDOW_SECONDS = 300  # 5 minutes


def _new_fingerprint() -> str:
    return "-".join(secrets.token_hex(4) for _ in range(3))


@dataclass(frozen=True)
class OrchestratorStats:
    total_requests: int
    successful_requests: int
    success_rate: float  # percentage, 2 decimals
    recent_requests: int
    session_fingerprint: str
    session_requests: int
    session_started_at: float  # time.time()

    def as_dict(self) -> dict:
        """Monitoring shape consumed by dashboards and the CLI."""
        return {
            "totalRequests": self.total_requests,
            "successRate": self.success_rate,
            "recentRequests": self.recent_requests,
            "sessionFingerprint": self.session_fingerprint,
        }


class SessionStats:
    """Request counters plus a 5 minute sliding window of attempt timestamps.

    Every attempt increments ``total_requests``; only OK attempts increment
    ``successful_requests``. The window is pruned on read.
    """

    def __init__(self, window_seconds: int = RECENT_WINDOW_SECONDS) -> None:
        self._window_seconds = window_seconds
        self.total_requests = 0
        self.successful_requests = 0
        self._recent: deque[float] = deque()  # time.monotonic()
        self.session_start = time.time()
        self.session_request_count = 0
        self.session_fingerprint = _new_fingerprint()

    def record(self, attempt: FetchAttempt) -> None:
        self.total_requests += 1
        self.session_request_count += 1
        if attempt.classification == Classification.OK:
            self.successful_requests += 1
        self._recent.append(time.monotonic())

    def start_new_session(self) -> None:
        """Session break: new fingerprint and counter, lifetime totals kept."""
        self.session_start = time.time()
        self.session_request_count = 0
        self.session_fingerprint = _new_fingerprint()

    def recent_requests(self) -> int:
        cutoff = time.monotonic() - self._window_seconds
        while self._recent and self._recent[0] < cutoff:
            self._recent.popleft()
        return len(self._recent)

    def snapshot(self) -> OrchestratorStats:
        rate = (
            (self.successful_requests / self.total_requests) * 100
            if self.total_requests
            else 0.0
        )
        return OrchestratorStats(
            total_requests=self.total_requests,
            successful_requests=self.successful_requests,
            success_rate=round(rate, 2),
            recent_requests=self.recent_requests(),
            session_fingerprint=self.session_fingerprint,
            session_requests=self.session_request_count,
            session_started_at=self.session_start,
        )
