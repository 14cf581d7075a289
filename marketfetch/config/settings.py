"""Pydantic Settings for the fetch orchestrator.

All environment variables use the MARKETFETCH_ prefix.
Example: MARKETFETCH_MAX_RETRIES=5, MARKETFETCH_USE_PROXIES=true
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from marketfetch.resilience.classifier import DEFAULT_BLOCK_SIGNATURES

# Shipped as package data next to this module
BUNDLED_POLICIES_PATH = str(Path(__file__).resolve().with_name("fetch_policies.yaml"))


class FetchSettings(BaseSettings):
    """Fetch orchestrator configuration validated from environment variables."""

    # Service
    port: int = 8002
    log_level: str = "INFO"
    log_json: bool = True

    # Retry / backoff
    max_retries: int = Field(default=3, ge=1)
    backoff_base_delay_ms: int = Field(default=1000, ge=0)
    backoff_max_delay_ms: int = Field(default=60000, ge=0)
    backoff_jitter_ms: int = Field(default=0, ge=0)
    rate_limited_backoff_multiplier: float = Field(default=2.0, ge=1.0)

    # Pacing
    min_delay_ms: int = Field(default=3000, ge=0)
    max_delay_ms: int = Field(default=5000, ge=0)
    max_pages_per_session: int = Field(default=2, ge=1)
    session_break_duration_ms: int = Field(default=600000, ge=0)  # 10 minutes

    # Timeouts
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    fetch_timeout_seconds: float | None = Field(default=None, gt=0)

    # Proxy
    use_proxies: bool = False
    allow_direct_fallback: bool = True
    proxy_file: str | None = None
    proxy_endpoints: list[str] = []  # host:port[:user:pass] entries
    proxy_failure_threshold: int = Field(default=3, ge=1)
    proxy_failed_cooldown_seconds: int | None = Field(default=None, ge=1)
    proxy_probe_url: str = "https://httpbin.org/ip"
    proxy_probe_interval_seconds: int | None = Field(default=None, ge=10)  # None = no background probing

    # Identities / classification
    identity_strategy: str = Field(default="cycle", pattern="^(cycle|random)$")
    block_signatures: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCK_SIGNATURES)
    )

    # Optional YAML overrides for identities and block signatures
    policies_path: str = BUNDLED_POLICIES_PATH

    model_config = {"env_prefix": "MARKETFETCH_"}

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> "FetchSettings":
        if self.max_delay_ms < self.min_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= min_delay_ms ({self.min_delay_ms})"
            )
        return self
