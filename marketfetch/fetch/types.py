"""Request options and outcome types for the fetch orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from marketfetch.identity.pool import Identity
from marketfetch.proxy.types import Proxy
from marketfetch.resilience.classifier import Classification


class FailureKind(str, Enum):
    """Why a logical fetch ended without a usable page."""

    TIMEOUT = "timeout"
    BLOCKED = "blocked"
    RATE_LIMITED = "rate_limited"
    PERMANENT = "permanent"
    NETWORK = "network"


_KIND_BY_CLASSIFICATION: dict[Classification, FailureKind] = {
    Classification.BLOCKED: FailureKind.BLOCKED,
    Classification.RATE_LIMITED: FailureKind.RATE_LIMITED,
    Classification.TRANSIENT_ERROR: FailureKind.NETWORK,
    Classification.PERMANENT_ERROR: FailureKind.PERMANENT,
}


def failure_kind_for(classification: Classification | None) -> FailureKind:
    if classification is None:
        return FailureKind.NETWORK
    return _KIND_BY_CLASSIFICATION.get(classification, FailureKind.NETWORK)


@dataclass
class FetchOptions:
    """Per-call overrides for one logical fetch."""

    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] | None = None
    method: str = "GET"
    referer: str | None = None
    proxy: Proxy | None = None  # pin every attempt to this proxy
    identity: Identity | None = None  # pin every attempt to this identity
    use_proxies: bool | None = None  # None → settings.use_proxies


@dataclass(frozen=True)
class FetchAttempt:
    """One HTTP attempt. Used to update aggregates, then discarded."""

    url: str
    identity: str
    proxy: str | None  # None = direct
    started_at: float  # time.time()
    elapsed_ms: float
    status_code: int | None
    error: str | None
    classification: Classification


@dataclass(frozen=True)
class FetchResult:
    """A page retrieved successfully."""

    status: int
    body: str
    headers: dict[str, str]
    final_url: str
    attempts: int = 1
    elapsed_ms: float = 0.0
    proxy: str | None = None
    identity: str | None = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class FetchFailure:
    """Terminal failure of a logical fetch. Callers branch on ``kind``."""

    kind: FailureKind
    attempts: int
    last_status: int | None = None
    last_classification: Classification | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return False


FetchOutcome = Union[FetchResult, FetchFailure]
