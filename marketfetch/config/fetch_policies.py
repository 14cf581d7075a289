"""Fetch policy models and YAML loader.

Provides typed Pydantic models for the optional identity profiles and
extra blocking signatures, and a loader function that parses the YAML
config into those models.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from marketfetch.identity.pool import Identity, identity_from_user_agent

logger = logging.getLogger(__name__)


class IdentityProfile(BaseModel):
    """A browser identity declared in the policies file."""

    name: str
    user_agent: str = Field(min_length=1)
    headers: dict[str, str] = Field(default_factory=dict)
    platform: str | None = None
    viewport_width: int | None = Field(default=None, ge=320)
    viewport_height: int | None = Field(default=None, ge=240)

    def to_identity(self) -> Identity:
        """Build an :class:`Identity`; a bare UA gets a derived header template."""
        if not self.headers:
            derived = identity_from_user_agent(self.user_agent, name=self.name)
            return Identity(
                name=derived.name,
                user_agent=derived.user_agent,
                headers=derived.headers,
                platform=self.platform or derived.platform,
                viewport_width=self.viewport_width,
                viewport_height=self.viewport_height,
            )
        return Identity(
            name=self.name,
            user_agent=self.user_agent,
            headers=tuple(self.headers.items()),
            platform=self.platform,
            viewport_width=self.viewport_width,
            viewport_height=self.viewport_height,
        )


class FetchPolicies(BaseModel):
    """Overrides loaded from the policies file. Empty lists mean built-in defaults."""

    identities: list[IdentityProfile] = Field(default_factory=list)
    block_signatures: list[str] = Field(default_factory=list)

    def build_identities(self) -> list[Identity]:
        return [profile.to_identity() for profile in self.identities]


def load_fetch_policies(yaml_path: str) -> FetchPolicies:
    """Parse a fetch policies YAML file into a typed FetchPolicies object.

    Args:
        yaml_path: Path to the YAML configuration file.

    Returns:
        The parsed policies. If the file is missing or malformed, returns
        empty policies so the built-in defaults apply.
    """
    path = Path(yaml_path)

    if not path.exists():
        logger.warning("Fetch policies file not found at %s, using built-in defaults", yaml_path)
        return FetchPolicies()

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        logger.error("Failed to parse fetch policies YAML at %s: %s", yaml_path, exc)
        return FetchPolicies()

    if raw is None:
        return FetchPolicies()

    if not isinstance(raw, dict):
        logger.warning("Fetch policies YAML must be a mapping, using built-in defaults")
        return FetchPolicies()

    identities: list[IdentityProfile] = []
    for index, entry in enumerate(raw.get("identities") or []):
        try:
            identities.append(IdentityProfile.model_validate(entry))
        except Exception as exc:
            logger.error("Invalid identity profile #%d: %s, skipping", index, exc)

    signatures = [
        str(s).strip() for s in (raw.get("block_signatures") or []) if str(s).strip()
    ]

    return FetchPolicies(identities=identities, block_signatures=signatures)
