"""Identity pool — rotating user agents and browser header templates."""

from marketfetch.identity.pool import (
    DEFAULT_IDENTITIES,
    Identity,
    IdentityPool,
    identity_from_user_agent,
)

__all__ = [
    "DEFAULT_IDENTITIES",
    "Identity",
    "IdentityPool",
    "identity_from_user_agent",
]
