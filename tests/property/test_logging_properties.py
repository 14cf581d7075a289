"""Property tests for structured fetch logging."""

from __future__ import annotations

import json
import logging

from hypothesis import given, settings, strategies as st

from marketfetch.logging_config import JsonFormatter


# --- Strategies ---

messages = st.text(min_size=1, max_size=100, alphabet="abcdefghijklmnopqrstuvwxyz0123456789 ._-/")
levels = st.sampled_from(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
target_urls = st.from_regex(r"https://www\.[a-z]{3,10}\.fr/[a-z0-9]{1,10}", fullmatch=True)
proxy_keys = st.from_regex(r"10\.0\.[0-9]{1,3}\.[0-9]{1,3}:[0-9]{4}", fullmatch=True)
classifications = st.sampled_from(
    ["ok", "blocked", "rate_limited", "transient_error", "permanent_error"]
)
secrets = st.text(min_size=8, max_size=32, alphabet="abcdefghijklmnopqrstuvwxyz0123456789")


def _make_record(message: str, level: str = "INFO", **extra: object) -> logging.LogRecord:
    """Create a LogRecord with optional extra attributes."""
    record = logging.LogRecord(
        name="marketfetch.fetch.orchestrator",
        level=getattr(logging, level),
        pathname="orchestrator.py",
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


# --- Structured log format ---

@settings(max_examples=100)
@given(message=messages, level=levels)
def test_required_fields_present(message: str, level: str) -> None:
    parsed = json.loads(JsonFormatter().format(_make_record(message, level=level)))

    assert parsed["level"] == level
    assert parsed["message"] == message
    assert parsed["logger"] == "marketfetch.fetch.orchestrator"
    assert "timestamp" in parsed


@settings(max_examples=100)
@given(
    message=messages,
    target_url=target_urls,
    proxy_used=proxy_keys,
    attempt=st.integers(min_value=1, max_value=10),
    classification=classifications,
    status_code=st.one_of(st.none(), st.integers(min_value=100, max_value=599)),
    elapsed_ms=st.floats(min_value=0.0, max_value=60000.0, allow_nan=False),
)
def test_attempt_fields_carried(
    message: str,
    target_url: str,
    proxy_used: str,
    attempt: int,
    classification: str,
    status_code: int | None,
    elapsed_ms: float,
) -> None:
    record = _make_record(
        message,
        target_url=target_url,
        proxy_used=proxy_used,
        identity="chrome-windows",
        attempt=attempt,
        classification=classification,
        status_code=status_code,
        elapsed_ms=elapsed_ms,
    )
    parsed = json.loads(JsonFormatter().format(record))

    assert parsed["target_url"] == target_url
    assert parsed["proxy_used"] == proxy_used
    assert parsed["identity"] == "chrome-windows"
    assert parsed["attempt"] == attempt
    assert parsed["classification"] == classification
    assert parsed["status_code"] == status_code
    assert parsed["elapsed_ms"] == elapsed_ms


@settings(max_examples=100)
@given(message=messages, unrelated=messages)
def test_unknown_extras_not_emitted(message: str, unrelated: str) -> None:
    parsed = json.loads(JsonFormatter().format(_make_record(message, user_note=unrelated)))
    assert "user_note" not in parsed


# --- No credentials in logs ---

@settings(max_examples=100)
@given(
    secret_value=secrets,
    prefix=st.sampled_from(
        ["api_key=", "secret=", "password=", "token=", "credential=", "authorization: ", "proxy-auth="]
    ),
)
def test_credentials_redacted_from_message(secret_value: str, prefix: str) -> None:
    record = _make_record(f"Attempt failed with {prefix}{secret_value} set", level="ERROR")
    parsed = json.loads(JsonFormatter().format(record))

    assert secret_value not in parsed["message"]
    assert "[REDACTED]" in parsed["message"]


@settings(max_examples=100)
@given(
    user=secrets,
    password=secrets,
    scheme=st.sampled_from(["http", "https", "socks5"]),
    target_url=target_urls,
)
def test_proxy_url_credentials_redacted(user: str, password: str, scheme: str, target_url: str) -> None:
    proxy_url = f"{scheme}://{user}:{password}@10.0.0.1:8080"
    record = _make_record(
        f"Connecting via {proxy_url}",
        level="WARNING",
        target_url=target_url,
        proxy_used=proxy_url,
    )
    parsed = json.loads(JsonFormatter().format(record))

    assert parsed["message"] == f"Connecting via {scheme}://[REDACTED]@10.0.0.1:8080"
    assert parsed["proxy_used"] == f"{scheme}://[REDACTED]@10.0.0.1:8080"
    assert parsed["target_url"] == target_url
