"""Unit tests for the response classifier."""

from __future__ import annotations

import httpx
import pytest

from marketfetch.resilience.classifier import (
    DEFAULT_BLOCK_SIGNATURES,
    Classification,
    ResponseClassifier,
)


@pytest.fixture
def classifier() -> ResponseClassifier:
    return ResponseClassifier()


class TestStatusRules:
    def test_clean_200_is_ok(self, classifier):
        assert classifier.classify(200, "<html><ul class='annonces'></ul></html>") == Classification.OK

    def test_403_is_blocked(self, classifier):
        assert classifier.classify(403, "") == Classification.BLOCKED

    def test_429_is_rate_limited(self, classifier):
        assert classifier.classify(429, "slow down") == Classification.RATE_LIMITED

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_server_errors_are_transient(self, classifier, status):
        assert classifier.classify(status, "upstream error") == Classification.TRANSIENT_ERROR

    @pytest.mark.parametrize("status", [400, 401, 404, 410, 501])
    def test_other_errors_are_permanent(self, classifier, status):
        assert classifier.classify(status, "not here") == Classification.PERMANENT_ERROR

    def test_other_2xx_without_signature_is_ok(self, classifier):
        assert classifier.classify(204, "") == Classification.OK

    def test_empty_body_is_ok(self, classifier):
        assert classifier.classify(200, None) == Classification.OK


class TestSoftBlocks:
    def test_captcha_on_200_is_blocked(self, classifier):
        body = "<html><div id='captcha-container'></div></html>"
        assert classifier.classify(200, body) == Classification.BLOCKED

    def test_signatures_are_case_insensitive(self, classifier):
        assert classifier.classify(200, "ACCESS DENIED") == Classification.BLOCKED

    def test_signature_on_transient_status_is_blocked(self, classifier):
        assert classifier.classify(503, "Cloudflare Ray ID") == Classification.BLOCKED

    def test_429_with_signature_stays_rate_limited(self, classifier):
        assert classifier.classify(429, "captcha") == Classification.RATE_LIMITED

    def test_challenge_header_marks_blocked(self, classifier):
        headers = {"CF-Mitigated": "challenge"}
        assert classifier.classify(200, "<html></html>", headers) == Classification.BLOCKED

    def test_unrelated_headers_do_not_block(self, classifier):
        assert classifier.classify(200, "ok", {"server": "nginx"}) == Classification.OK

    def test_custom_signatures_replace_defaults(self):
        classifier = ResponseClassifier(["datadome"])
        assert classifier.classify(200, "captcha") == Classification.OK
        assert classifier.classify(200, "geo.captcha-delivery.com DataDome") == Classification.BLOCKED

    def test_matched_signature_reports_first_hit(self, classifier):
        assert classifier.matched_signature("Please solve the CAPTCHA") == "captcha"
        assert classifier.matched_signature("listing page") is None

    def test_default_signatures_are_lowercase(self, classifier):
        assert classifier.signatures == tuple(s.lower() for s in DEFAULT_BLOCK_SIGNATURES)


class TestExceptions:
    def test_transport_errors_are_transient(self):
        request = httpx.Request("GET", "https://example.fr")
        for exc in (
            httpx.ConnectError("refused", request=request),
            httpx.ReadTimeout("slow", request=request),
            httpx.ProxyError("bad proxy", request=request),
        ):
            assert ResponseClassifier.classify_exception(exc) == Classification.TRANSIENT_ERROR

    def test_os_errors_are_transient(self):
        assert ResponseClassifier.classify_exception(ConnectionResetError()) == Classification.TRANSIENT_ERROR

    def test_other_errors_are_permanent(self):
        request = httpx.Request("GET", "https://example.fr")
        exc = httpx.TooManyRedirects("loop", request=request)
        assert ResponseClassifier.classify_exception(exc) == Classification.PERMANENT_ERROR


class TestRetryable:
    def test_retryable_verdicts(self):
        assert Classification.BLOCKED.is_retryable
        assert Classification.RATE_LIMITED.is_retryable
        assert Classification.TRANSIENT_ERROR.is_retryable
        assert not Classification.OK.is_retryable
        assert not Classification.PERMANENT_ERROR.is_retryable
