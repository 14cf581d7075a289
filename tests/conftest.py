"""Shared test fixtures for the marketfetch test suite."""

from __future__ import annotations

import os
import random
from typing import Callable

import httpx
import pytest

from marketfetch.config.settings import FetchSettings
from marketfetch.fetch.orchestrator import FetchOrchestrator
from marketfetch.identity.pool import IdentityPool
from marketfetch.pacing.pacer import RatePacer
from marketfetch.proxy.registry import ProxyRegistry
from marketfetch.proxy.types import Proxy
from marketfetch.resilience.backoff import BackoffPolicy
from marketfetch.resilience.classifier import ResponseClassifier


# ---------------------------------------------------------------------------
# Keep MARKETFETCH_* variables from the developer shell out of the tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("MARKETFETCH_"):
            monkeypatch.delenv(key, raising=False)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> FetchSettings:
    """Test settings with zero pacing and zero backoff."""
    return FetchSettings(
        max_retries=3,
        backoff_base_delay_ms=0,
        min_delay_ms=0,
        max_delay_ms=0,
        max_pages_per_session=1000,
        session_break_duration_ms=0,
        request_timeout_seconds=5.0,
        policies_path="does-not-exist.yaml",
    )


# ---------------------------------------------------------------------------
# Component builders
# ---------------------------------------------------------------------------

Handler = Callable[[httpx.Request, "Proxy | None"], httpx.Response]


def mock_client_factory(handler: Handler, created: list | None = None):
    """Client factory routing every request to *handler(request, proxy)*."""

    def factory(proxy: Proxy | None, timeout: float) -> httpx.AsyncClient:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: handler(request, proxy)),
            timeout=timeout,
        )
        if created is not None:
            created.append(client)
        return client

    return factory


def make_orchestrator(
    settings: FetchSettings,
    handler: Handler,
    *,
    registry: ProxyRegistry | None = None,
    pacer: RatePacer | None = None,
    backoff: BackoffPolicy | None = None,
    created: list | None = None,
) -> FetchOrchestrator:
    return FetchOrchestrator(
        settings,
        identity_pool=IdentityPool(rng=random.Random(7)),
        proxy_registry=registry or ProxyRegistry(rng=random.Random(7)),
        pacer=pacer or RatePacer(min_delay_ms=0, max_delay_ms=0, max_pages_per_session=1000),
        classifier=ResponseClassifier(),
        backoff=backoff or BackoffPolicy(base_delay_ms=0),
        client_factory=mock_client_factory(handler, created),
    )


def make_proxies(count: int) -> list[Proxy]:
    return [Proxy(host=f"10.0.0.{i + 1}", port=8000 + i) for i in range(count)]


# ---------------------------------------------------------------------------
# Builder fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def orchestrator_factory(settings: FetchSettings):
    """Build an orchestrator over a mock transport: ``factory(handler, **kw)``."""

    def build(handler: Handler, **kwargs) -> FetchOrchestrator:
        return make_orchestrator(kwargs.pop("settings", settings), handler, **kwargs)

    return build


@pytest.fixture
def proxies() -> list[Proxy]:
    return make_proxies(3)
