"""Response classification for the fetch orchestrator.

Labels a single HTTP attempt so the orchestrator can decide between
returning, retrying with a fresh identity/proxy, or giving up.

Rules, in priority order:
- 200 with no blocking signature in the body → OK
- 403 → BLOCKED, 429 → RATE_LIMITED
- body contains a blocking signature (case-insensitive) → BLOCKED, even on 200
- 500/502/503/504 or a network-level error → TRANSIENT_ERROR
- any other non-2xx → PERMANENT_ERROR

Body matching has to run on 200 responses too: the target serves soft-block
pages (captcha walls, challenge interstitials) with a success status.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum

import httpx


class Classification(str, Enum):
    """Verdict on one HTTP attempt."""

    OK = "ok"
    BLOCKED = "blocked"
    RATE_LIMITED = "rate_limited"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"

    @property
    def is_retryable(self) -> bool:
        return self in (
            Classification.BLOCKED,
            Classification.RATE_LIMITED,
            Classification.TRANSIENT_ERROR,
        )


DEFAULT_BLOCK_SIGNATURES: tuple[str, ...] = (
    "captcha",
    "access denied",
    "blocked",
    "cloudflare",
    "too many requests",
    "ddos protection",
    "rate limit",
)

TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({500, 502, 503, 504})

# Response headers set by common bot-protection fronts on challenge pages
_CHALLENGE_HEADERS: dict[str, str] = {
    "cf-mitigated": "challenge",
}


class ResponseClassifier:
    """Classifies status code + body (+ optional headers) into a :class:`Classification`.

    Args:
        signatures: Case-insensitive substrings that mark a soft-block page.
    """

    def __init__(self, signatures: Iterable[str] | None = None) -> None:
        source = DEFAULT_BLOCK_SIGNATURES if signatures is None else signatures
        self._signatures: tuple[str, ...] = tuple(
            s.lower() for s in source if s and s.strip()
        )

    @property
    def signatures(self) -> tuple[str, ...]:
        return self._signatures

    def matched_signature(self, body_text: str | None) -> str | None:
        """Return the first blocking signature found in *body_text*, if any."""
        if not body_text:
            return None
        lowered = body_text.lower()
        for signature in self._signatures:
            if signature in lowered:
                return signature
        return None

    def classify(
        self,
        status_code: int,
        body_text: str | None,
        headers: Mapping[str, str] | None = None,
    ) -> Classification:
        signature = self.matched_signature(body_text)
        challenged = self._has_challenge_header(headers)

        if status_code == 200 and signature is None and not challenged:
            return Classification.OK

        if status_code == 403:
            return Classification.BLOCKED
        if status_code == 429:
            return Classification.RATE_LIMITED

        if signature is not None or challenged:
            return Classification.BLOCKED

        if status_code in TRANSIENT_STATUS_CODES:
            return Classification.TRANSIENT_ERROR

        if 200 <= status_code < 300:
            return Classification.OK

        return Classification.PERMANENT_ERROR

    @staticmethod
    def classify_exception(exc: BaseException) -> Classification:
        """Map a transport-level exception to a classification.

        Every network failure (DNS, refused connection, reset, timeout,
        proxy handshake) is transient from the orchestrator's point of view.
        """
        if isinstance(exc, (httpx.TransportError, OSError)):
            return Classification.TRANSIENT_ERROR
        return Classification.PERMANENT_ERROR

    @staticmethod
    def _has_challenge_header(headers: Mapping[str, str] | None) -> bool:
        if not headers:
            return False
        lowered = {k.lower(): str(v).lower() for k, v in headers.items()}
        return any(
            lowered.get(name) == value for name, value in _CHALLENGE_HEADERS.items()
        )
