"""Rotating request identities for anti-detection.

An identity is a simulated desktop browser: a user agent plus the ordered
header set that browser sends on a top-level navigation (client hints,
Sec-Fetch-*, Accept-Language). The pool hands identities out either
round-robin or at random, never repeating the previous identity back to
back so retries inside one logical fetch do not reuse a fingerprint.
"""

from __future__ import annotations

import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Header building blocks
# ---------------------------------------------------------------------------

_ACCEPT_HTML = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,"
    "image/avif,image/webp,image/apng,*/*;q=0.8"
)
_ACCEPT_LANGUAGE_FR = "fr-FR,fr;q=0.9,en-US;q=0.8,en;q=0.7"
_CHROME_CH_UA = '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"'
_EDGE_CH_UA = '"Not_A Brand";v="8", "Chromium";v="120", "Microsoft Edge";v="120"'


def _chromium_headers(ch_ua: str, platform: str) -> tuple[tuple[str, str], ...]:
    return (
        ("Accept", _ACCEPT_HTML),
        ("Accept-Language", _ACCEPT_LANGUAGE_FR),
        ("Accept-Encoding", "gzip, deflate, br"),
        ("Sec-Ch-Ua", ch_ua),
        ("Sec-Ch-Ua-Mobile", "?0"),
        ("Sec-Ch-Ua-Platform", f'"{platform}"'),
        ("Upgrade-Insecure-Requests", "1"),
        ("Sec-Fetch-Dest", "document"),
        ("Sec-Fetch-Mode", "navigate"),
        ("Sec-Fetch-Site", "none"),
        ("Sec-Fetch-User", "?1"),
    )


def _gecko_headers() -> tuple[tuple[str, str], ...]:
    # Firefox and Safari do not send client hints
    return (
        ("Accept", _ACCEPT_HTML),
        ("Accept-Language", "fr-FR,fr;q=0.8,en-US;q=0.5,en;q=0.3"),
        ("Accept-Encoding", "gzip, deflate, br"),
        ("Upgrade-Insecure-Requests", "1"),
        ("Sec-Fetch-Dest", "document"),
        ("Sec-Fetch-Mode", "navigate"),
        ("Sec-Fetch-Site", "none"),
        ("Sec-Fetch-User", "?1"),
    )


# ---------------------------------------------------------------------------
# Identity dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Identity:
    """A simulated client fingerprint used for one HTTP attempt."""

    name: str
    user_agent: str
    headers: tuple[tuple[str, str], ...] = ()
    platform: str | None = None
    viewport_width: int | None = None
    viewport_height: int | None = None

    def build_headers(
        self,
        extra: Mapping[str, str] | None = None,
        *,
        referer: str | None = None,
    ) -> dict[str, str]:
        """Render the ordered header dict for a request.

        ``User-Agent`` comes first, then the template in order, then the
        referer and finally caller-supplied extras (which win on conflict).
        """
        rendered: dict[str, str] = {"User-Agent": self.user_agent}
        for key, value in self.headers:
            rendered[key] = value
        if referer:
            rendered["Referer"] = referer
            rendered["Sec-Fetch-Site"] = "same-origin"
        if extra:
            rendered.update(extra)
        return rendered


# ---------------------------------------------------------------------------
# Built-in desktop profiles
# ---------------------------------------------------------------------------

DEFAULT_IDENTITIES: tuple[Identity, ...] = (
    Identity(
        name="chrome-windows",
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        headers=_chromium_headers(_CHROME_CH_UA, "Windows"),
        platform="Windows",
        viewport_width=1920,
        viewport_height=1080,
    ),
    Identity(
        name="chrome-mac",
        user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        headers=_chromium_headers(_CHROME_CH_UA, "macOS"),
        platform="macOS",
        viewport_width=1440,
        viewport_height=900,
    ),
    Identity(
        name="chrome-linux",
        user_agent="Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        headers=_chromium_headers(_CHROME_CH_UA, "Linux"),
        platform="Linux",
        viewport_width=1920,
        viewport_height=1080,
    ),
    Identity(
        name="edge-windows",
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
        headers=_chromium_headers(_EDGE_CH_UA, "Windows"),
        platform="Windows",
        viewport_width=1536,
        viewport_height=864,
    ),
    Identity(
        name="firefox-windows",
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
        headers=_gecko_headers(),
        platform="Windows",
        viewport_width=1920,
        viewport_height=1080,
    ),
    Identity(
        name="safari-mac",
        user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
        headers=_gecko_headers(),
        platform="macOS",
        viewport_width=1440,
        viewport_height=900,
    ),
)


def _platform_from_user_agent(user_agent: str) -> str:
    if "Windows" in user_agent:
        return "Windows"
    if "Macintosh" in user_agent or "Mac OS X" in user_agent:
        return "macOS"
    return "Linux"


def identity_from_user_agent(user_agent: str, name: str | None = None) -> Identity:
    """Derive a full identity (platform, header template) from a bare UA string."""
    platform = _platform_from_user_agent(user_agent)
    if "Chrome/" in user_agent:
        ch_ua = _EDGE_CH_UA if "Edg/" in user_agent else _CHROME_CH_UA
        headers = _chromium_headers(ch_ua, platform)
    else:
        headers = _gecko_headers()
    return Identity(
        name=name or f"custom-{platform.lower()}",
        user_agent=user_agent,
        headers=headers,
        platform=platform,
    )


# ---------------------------------------------------------------------------
# IdentityPool
# ---------------------------------------------------------------------------

class IdentityPool:
    """Process-wide pool of immutable identities with a selection cursor.

    ``strategy="cycle"`` walks the pool round-robin from a random starting
    point; ``strategy="random"`` draws uniformly but skips the identity
    handed out last whenever the pool holds more than one entry.
    """

    def __init__(
        self,
        identities: Iterable[Identity] | None = None,
        *,
        strategy: str = "cycle",
        rng: random.Random | None = None,
    ) -> None:
        if strategy not in ("cycle", "random"):
            raise ValueError(f"Unknown identity strategy: {strategy!r}")

        self._identities: tuple[Identity, ...] = tuple(identities or ()) or DEFAULT_IDENTITIES
        self._strategy = strategy
        self._rng = rng or random.Random()
        self._cursor = self._rng.randrange(len(self._identities))
        self._last: Identity | None = None

    @classmethod
    def from_user_agents(
        cls,
        user_agents: Iterable[str],
        *,
        strategy: str = "cycle",
        rng: random.Random | None = None,
    ) -> "IdentityPool":
        identities = [
            identity_from_user_agent(ua, name=f"custom-{index}")
            for index, ua in enumerate(u for u in user_agents if u.strip())
        ]
        return cls(identities, strategy=strategy, rng=rng)

    def __len__(self) -> int:
        return len(self._identities)

    @property
    def identities(self) -> tuple[Identity, ...]:
        return self._identities

    def next(self) -> Identity:
        """Return the next identity. Never fails."""
        if self._strategy == "random":
            identity = self._draw_random()
        else:
            identity = self._identities[self._cursor % len(self._identities)]
            self._cursor = (self._cursor + 1) % len(self._identities)

        self._last = identity
        return identity

    def _draw_random(self) -> Identity:
        if len(self._identities) == 1:
            return self._identities[0]
        candidates = [i for i in self._identities if i is not self._last]
        return self._rng.choice(candidates)
