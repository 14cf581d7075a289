"""Error hierarchy and FastAPI exception handlers.

All marketfetch-specific errors extend MarketFetchError. The FastAPI exception
handlers catch these errors (plus unhandled exceptions) and return a
consistent JSON envelope: { success, data, error, meta }.
"""

from __future__ import annotations

import logging
import traceback
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from marketfetch.fetch.types import FetchFailure

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class MarketFetchError(Exception):
    """Base error for all marketfetch-specific errors."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(MarketFetchError):
    """Invalid settings or policy file contents."""

    status_code = 500
    message = "Invalid fetch configuration"


class FetchFailedError(MarketFetchError):
    """A logical fetch ended in a terminal failure.

    Raised only by ``FetchOrchestrator.fetch_or_raise``; ``fetch`` returns
    the failure as a value.
    """

    status_code = 502
    message = "Fetch failed"

    def __init__(self, failure: "FetchFailure", url: str | None = None) -> None:
        self.failure = failure
        super().__init__(
            f"Fetch failed ({failure.kind.value}) after {failure.attempts} attempts"
            + (f": {url}" if url else ""),
            kind=failure.kind.value,
            attempts=failure.attempts,
            last_status=failure.last_status,
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


def _envelope(
    status_code: int,
    error: str,
    meta: dict | None = None,
) -> JSONResponse:
    """Build a JSON envelope error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "error": error,
            "meta": meta,
        },
    )


async def _marketfetch_error_handler(_request: Request, exc: MarketFetchError) -> JSONResponse:
    """Handle MarketFetchError subclasses."""
    meta = exc.details if exc.details else None
    return _envelope(exc.status_code, exc.message, meta=meta)


async def _unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: log the traceback, return a generic 500."""
    logger.error(
        "Unhandled exception: %s\n%s",
        exc,
        traceback.format_exc(),
    )
    return _envelope(status_code=500, error="Internal server error")


# ---------------------------------------------------------------------------
# Registration helper
# ---------------------------------------------------------------------------


def register_error_handlers(app: FastAPI) -> None:
    """Wire up all exception handlers on the FastAPI application."""
    app.add_exception_handler(MarketFetchError, _marketfetch_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)  # type: ignore[arg-type]
