"""Configuration module — settings and fetch policies."""

from marketfetch.config.fetch_policies import FetchPolicies, IdentityProfile, load_fetch_policies
from marketfetch.config.settings import FetchSettings

__all__ = [
    "FetchPolicies",
    "FetchSettings",
    "IdentityProfile",
    "load_fetch_policies",
]
