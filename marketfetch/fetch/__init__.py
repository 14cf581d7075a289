"""Fetch orchestration — retry state machine, outcomes and session stats."""

from marketfetch.fetch.orchestrator import ClientFactory, FetchOrchestrator
from marketfetch.fetch.pages import DEFAULT_STOP_ON, fetch_pages
from marketfetch.fetch.stats import OrchestratorStats, SessionStats
from marketfetch.fetch.types import (
    FailureKind,
    FetchAttempt,
    FetchFailure,
    FetchOptions,
    FetchOutcome,
    FetchResult,
    failure_kind_for,
)

__all__ = [
    "ClientFactory",
    "DEFAULT_STOP_ON",
    "FailureKind",
    "FetchAttempt",
    "FetchFailure",
    "FetchOptions",
    "FetchOrchestrator",
    "FetchOutcome",
    "FetchResult",
    "OrchestratorStats",
    "SessionStats",
    "failure_kind_for",
    "fetch_pages",
]
