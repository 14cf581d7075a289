"""Middleware package — error hierarchy and FastAPI handlers."""

from marketfetch.middleware.error_handler import (
    ConfigurationError,
    FetchFailedError,
    MarketFetchError,
    register_error_handlers,
)

__all__ = [
    "ConfigurationError",
    "FetchFailedError",
    "MarketFetchError",
    "register_error_handlers",
]
