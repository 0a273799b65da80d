"""
URL helpers shared by the rule matcher and the lifecycle controller.

Parsing is tolerant: anything urllib cannot split, or that carries no scheme,
is reported as unparsable (None) instead of raising.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlsplit


SPECIAL_URL_PREFIXES = (
    "chrome://",
    "chrome-extension://",
    "about:",
    "edge://",
)


@dataclass(frozen=True)
class ParsedURL:
    """Components of an address, mirroring what a browser URL object exposes."""
    scheme: str
    hostname: str
    path: str
    query: str
    full_url: str

    @property
    def search(self) -> str:
        """Querystring with its leading '?', or '' when there is none."""
        return f"?{self.query}" if self.query else ""


def parse_url(url: str) -> Optional[ParsedURL]:
    """
    Split an address into scheme, hostname, path and querystring.

    Args:
        url: Raw address string

    Returns:
        ParsedURL, or None when the address is malformed
    """
    if not isinstance(url, str) or not url:
        return None
    try:
        parts = urlsplit(url)
        hostname = (parts.hostname or "").lower()
    except ValueError:
        return None

    if not parts.scheme:
        return None

    path = parts.path
    if parts.netloc and not path:
        path = "/"

    return ParsedURL(
        scheme=parts.scheme.lower(),
        hostname=hostname,
        path=path,
        query=parts.query,
        full_url=url,
    )


def hostname_of(url: str) -> str:
    parsed = parse_url(url)
    return parsed.hostname if parsed else ""


def host_matches_base(host: str, base: str) -> bool:
    """True when host equals base or is a subdomain of it."""
    host = (host or "").strip().lower()
    base = (base or "").strip().lower()
    if not host or not base:
        return False
    if host == base:
        return True
    return host.endswith("." + base)


def is_special_url(url: Optional[str]) -> bool:
    """Browser-internal pages (new tab, settings, extensions) and tabs without an address."""
    if not url:
        return True
    lowered = url.lower()
    return any(lowered.startswith(prefix) for prefix in SPECIAL_URL_PREFIXES)


def wants_launch_pause(url: str) -> bool:
    """
    Check the quit_* launch parameters.

    A link opened with `quit_group=<name>&quit_pause=true` asks for the tab
    to start paused. quit_group is required for the parameters to apply.
    """
    parsed = parse_url(url)
    if parsed is None or not parsed.query:
        return False
    params = parse_qs(parsed.query)
    group = (params.get("quit_group") or [""])[0].strip()
    if not group:
        return False
    return (params.get("quit_pause") or [""])[0] == "true"
