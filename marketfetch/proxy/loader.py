"""Flat-file proxy list loader.

One proxy per line, either ``host:port`` or ``host:port:username:password``,
optionally prefixed with a scheme (``socks5://host:port``). Blank lines and
``#`` comments are ignored; malformed lines are logged and skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from marketfetch.proxy.types import Proxy

logger = logging.getLogger(__name__)

SUPPORTED_PROTOCOLS = ("http", "https", "socks5")


def parse_proxy_line(line: str, default_protocol: str = "http") -> Proxy | None:
    """Parse a single proxy list entry. Returns ``None`` for blanks and comments.

    Raises:
        ValueError: If the line is not a recognised proxy entry.
    """
    entry = line.strip()
    if not entry or entry.startswith("#"):
        return None

    protocol = default_protocol
    if "://" in entry:
        protocol, entry = entry.split("://", 1)
        protocol = protocol.lower()

    if protocol not in SUPPORTED_PROTOCOLS:
        raise ValueError(f"unsupported proxy protocol '{protocol}'")

    parts = entry.split(":")
    if len(parts) not in (2, 4):
        raise ValueError("expected host:port or host:port:username:password")

    host, raw_port = parts[0], parts[1]
    if not host:
        raise ValueError("empty host")
    try:
        port = int(raw_port)
    except ValueError:
        raise ValueError(f"invalid port '{raw_port}'") from None
    if not 0 < port < 65536:
        raise ValueError(f"port out of range: {port}")

    username = password = None
    if len(parts) == 4:
        username, password = parts[2] or None, parts[3] or None

    return Proxy(
        host=host,
        port=port,
        protocol=protocol,
        username=username,
        password=password,
    )


def parse_proxy_lines(lines: Iterable[str], default_protocol: str = "http") -> list[Proxy]:
    """Parse many entries, skipping (and logging) the malformed ones."""
    proxies: list[Proxy] = []
    for lineno, line in enumerate(lines, start=1):
        try:
            proxy = parse_proxy_line(line, default_protocol)
        except ValueError as exc:
            logger.warning("Skipping proxy entry on line %d: %s", lineno, exc)
            continue
        if proxy is not None:
            proxies.append(proxy)
    return proxies


def load_proxy_file(path: str, default_protocol: str = "http") -> list[Proxy]:
    """Load proxies from a flat file. A missing file yields an empty list."""
    file_path = Path(path)
    if not file_path.exists():
        logger.warning("Proxy file not found at %s, continuing without proxies", path)
        return []

    proxies = parse_proxy_lines(
        file_path.read_text(encoding="utf-8").splitlines(),
        default_protocol,
    )
    logger.info("Loaded %d proxies from %s", len(proxies), path)
    return proxies
