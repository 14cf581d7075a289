"""marketfetch — adaptive HTTP retrieval for marketplace listing scrapers."""

from marketfetch.config.settings import FetchSettings
from marketfetch.fetch import (
    FailureKind,
    FetchFailure,
    FetchOptions,
    FetchOrchestrator,
    FetchResult,
    fetch_pages,
)

__all__ = [
    "FailureKind",
    "FetchFailure",
    "FetchOptions",
    "FetchOrchestrator",
    "FetchResult",
    "FetchSettings",
    "fetch_pages",
]
