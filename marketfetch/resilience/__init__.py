"""Resilience components for the fetch orchestrator."""

from marketfetch.resilience.backoff import BackoffPolicy
from marketfetch.resilience.classifier import (
    DEFAULT_BLOCK_SIGNATURES,
    Classification,
    ResponseClassifier,
)

__all__ = [
    "DEFAULT_BLOCK_SIGNATURES",
    "BackoffPolicy",
    "Classification",
    "ResponseClassifier",
]
