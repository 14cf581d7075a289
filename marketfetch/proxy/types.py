"""Proxy data models for the proxy registry."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import quote


class ProxyStatus(str, Enum):
    """Lifecycle state of a proxy endpoint."""

    UNTESTED = "untested"
    ACTIVE = "active"
    FAILED = "failed"


class ProxyOutcome(str, Enum):
    """Result reported back to the registry after an attempt through a proxy."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(eq=False)
class Proxy:
    """A single upstream proxy with health and usage tracking.

    Identity-based equality: duplicates of the same host:port are tracked
    independently.
    """

    host: str
    port: int
    protocol: str = "http"  # http, https, socks5
    username: str | None = None
    password: str | None = None
    country: str | None = None
    success_count: int = 0
    failure_count: int = 0
    consecutive_failures: int = 0
    average_latency_ms: float = 0.0
    last_used_at: float | None = None  # time.time()
    failed_at: float | None = None  # time.monotonic()
    status: ProxyStatus = ProxyStatus.UNTESTED

    @property
    def key(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def url(self) -> str:
        """Proxy URL in the form httpx expects, credentials URL-quoted."""
        auth = ""
        if self.username:
            auth = quote(self.username, safe="")
            if self.password:
                auth += ":" + quote(self.password, safe="")
            auth += "@"
        return f"{self.protocol}://{auth}{self.host}:{self.port}"

    @property
    def is_selectable(self) -> bool:
        return self.status != ProxyStatus.FAILED

    @property
    def success_rate(self) -> float:
        """Fraction of successful attempts; 0.0 when the proxy was never used."""
        attempts = self.success_count + self.failure_count
        if attempts == 0:
            return 0.0
        return self.success_count / attempts

    def __repr__(self) -> str:
        # Never leak credentials into logs or reprs
        return (
            f"Proxy({self.protocol}://{self.key}, status={self.status.value}, "
            f"ok={self.success_count}, ko={self.failure_count})"
        )
