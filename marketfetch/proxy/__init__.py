"""Proxy management package — registry, flat-file loading, and probing."""

from marketfetch.proxy.loader import load_proxy_file, parse_proxy_line, parse_proxy_lines
from marketfetch.proxy.prober import ProbeResult, ProxyProber
from marketfetch.proxy.registry import ProxyPoolStats, ProxyRegistry
from marketfetch.proxy.types import Proxy, ProxyOutcome, ProxyStatus

__all__ = [
    "ProbeResult",
    "Proxy",
    "ProxyOutcome",
    "ProxyPoolStats",
    "ProxyProber",
    "ProxyRegistry",
    "ProxyStatus",
    "load_proxy_file",
    "parse_proxy_line",
    "parse_proxy_lines",
]
