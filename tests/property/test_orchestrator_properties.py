"""Property tests for the fetch orchestrator's attempt bounds.

Every property drives a real orchestrator over ``httpx.MockTransport`` with
zero pacing and zero backoff.
"""

from __future__ import annotations

import asyncio

import httpx
from hypothesis import given, settings
from hypothesis import strategies as st

from marketfetch.config.settings import FetchSettings
from marketfetch.fetch.orchestrator import FetchOrchestrator
from marketfetch.fetch.types import FailureKind, FetchFailure, FetchResult
from marketfetch.identity.pool import IdentityPool
from marketfetch.pacing.pacer import RatePacer
from marketfetch.proxy.registry import ProxyRegistry
from marketfetch.resilience.backoff import BackoffPolicy
from marketfetch.resilience.classifier import ResponseClassifier


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

retry_budgets = st.integers(min_value=1, max_value=6)
transient_statuses = st.sampled_from([500, 502, 503, 504])
retryable_statuses = st.sampled_from([403, 429, 500, 502, 503, 504])
permanent_statuses = st.sampled_from([400, 401, 404, 405, 410])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine synchronously."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _orchestrator(statuses: list[int], calls: list[int]) -> FetchOrchestrator:
    """Serve *statuses* in order (last one repeats), counting requests in *calls*."""

    def handler(request: httpx.Request) -> httpx.Response:
        status = statuses[min(len(calls), len(statuses) - 1)]
        calls.append(status)
        return httpx.Response(status, text="<html>listing</html>")

    return FetchOrchestrator(
        FetchSettings(min_delay_ms=0, max_delay_ms=0, policies_path="missing.yaml"),
        identity_pool=IdentityPool(),
        proxy_registry=ProxyRegistry(),
        pacer=RatePacer(min_delay_ms=0, max_delay_ms=0, max_pages_per_session=1000),
        classifier=ResponseClassifier(),
        backoff=BackoffPolicy(base_delay_ms=0),
        client_factory=lambda proxy, timeout: httpx.AsyncClient(
            transport=httpx.MockTransport(handler)
        ),
    )


async def _fetch(orchestrator: FetchOrchestrator, max_retries: int):
    async with orchestrator:
        return await orchestrator.fetch("https://www.example.fr/recherche", max_retries=max_retries)


# ---------------------------------------------------------------------------
# All-transient fetches use exactly max_retries attempts
# ---------------------------------------------------------------------------


@settings(max_examples=50, deadline=None)
@given(max_retries=retry_budgets, status=transient_statuses)
def test_all_transient_uses_exactly_max_retries(max_retries: int, status: int) -> None:
    calls: list[int] = []
    outcome = _run_async(_fetch(_orchestrator([status], calls), max_retries))

    assert isinstance(outcome, FetchFailure)
    assert outcome.kind == FailureKind.NETWORK
    assert outcome.attempts == max_retries
    assert len(calls) == max_retries


# ---------------------------------------------------------------------------
# First attempt OK means one attempt
# ---------------------------------------------------------------------------


@settings(max_examples=50, deadline=None)
@given(max_retries=retry_budgets)
def test_first_ok_makes_one_attempt(max_retries: int) -> None:
    calls: list[int] = []
    outcome = _run_async(_fetch(_orchestrator([200], calls), max_retries))

    assert isinstance(outcome, FetchResult)
    assert outcome.attempts == 1
    assert len(calls) == 1


# ---------------------------------------------------------------------------
# PERMANENT_ERROR stops immediately
# ---------------------------------------------------------------------------


@settings(max_examples=50, deadline=None)
@given(
    max_retries=retry_budgets,
    before=st.lists(retryable_statuses, max_size=5),
    permanent=permanent_statuses,
)
def test_permanent_error_stops_immediately(max_retries: int, before: list[int], permanent: int) -> None:
    calls: list[int] = []
    outcome = _run_async(_fetch(_orchestrator(before + [permanent], calls), max_retries))

    assert isinstance(outcome, FetchFailure)
    if len(before) < max_retries:
        assert outcome.kind == FailureKind.PERMANENT
        assert outcome.attempts == len(before) + 1
        assert calls[-1] == permanent
    else:
        assert outcome.attempts == max_retries
    assert len(calls) == outcome.attempts


# ---------------------------------------------------------------------------
# Attempts never exceed the budget
# ---------------------------------------------------------------------------


@settings(max_examples=50, deadline=None)
@given(
    max_retries=retry_budgets,
    statuses=st.lists(
        st.sampled_from([200, 403, 404, 429, 500, 503]), min_size=1, max_size=8
    ),
)
def test_attempts_bounded_by_budget(max_retries: int, statuses: list[int]) -> None:
    calls: list[int] = []
    outcome = _run_async(_fetch(_orchestrator(statuses, calls), max_retries))

    assert 1 <= outcome.attempts <= max_retries
    assert len(calls) == outcome.attempts
    if isinstance(outcome, FetchResult):
        assert calls[-1] == 200
