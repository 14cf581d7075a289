"""Unit tests for fetch outcome types."""

from __future__ import annotations

import pytest

from marketfetch.fetch.types import (
    FailureKind,
    FetchFailure,
    FetchOptions,
    FetchResult,
    failure_kind_for,
)
from marketfetch.resilience.classifier import Classification


class TestFailureKindFor:
    @pytest.mark.parametrize(
        ("classification", "kind"),
        [
            (Classification.BLOCKED, FailureKind.BLOCKED),
            (Classification.RATE_LIMITED, FailureKind.RATE_LIMITED),
            (Classification.TRANSIENT_ERROR, FailureKind.NETWORK),
            (Classification.PERMANENT_ERROR, FailureKind.PERMANENT),
            (None, FailureKind.NETWORK),
        ],
    )
    def test_mapping(self, classification, kind):
        assert failure_kind_for(classification) == kind


class TestOutcomes:
    def test_result_is_ok(self):
        result = FetchResult(status=200, body="", headers={}, final_url="https://www.example.fr/")
        assert result.ok is True
        assert result.attempts == 1

    def test_failure_is_not_ok(self):
        failure = FetchFailure(kind=FailureKind.TIMEOUT, attempts=0)
        assert failure.ok is False
        assert failure.last_status is None

    def test_outcomes_are_frozen(self):
        failure = FetchFailure(kind=FailureKind.NETWORK, attempts=1)
        with pytest.raises(Exception):
            failure.attempts = 2  # type: ignore[misc]

    def test_options_defaults(self):
        options = FetchOptions()
        assert options.method == "GET"
        assert options.headers == {}
        assert options.use_proxies is None
