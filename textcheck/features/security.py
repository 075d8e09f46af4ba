"""
Access control for the check server.

This module provides:
- Client IP allow/block lists with CIDR support
- Per-client rate limiting using a token bucket
- CORS origin headers for browser based clients
"""

import time
from collections import OrderedDict
from dataclasses import dataclass, field
from ipaddress import ip_address, ip_network, IPv4Network, IPv6Network
from typing import Iterable, List, Optional, Tuple, Union

Network = Union[IPv4Network, IPv6Network]


@dataclass(frozen=True)
class CORSConfig:
    """CORS configuration settings.

    An empty ``allowed_origins`` disables CORS headers entirely.
    """
    allowed_origins: Tuple[str, ...] = ()
    allowed_methods: Tuple[str, ...] = ("GET", "POST")
    max_age: int = 86400  # 24 hours

    @property
    def enabled(self) -> bool:
        return bool(self.allowed_origins)


def cors_headers(request_origin: Optional[str], config: CORSConfig) -> List[Tuple[str, str]]:
    """Return the CORS headers for a response to ``request_origin``."""
    if not config.enabled:
        return []

    if "*" in config.allowed_origins:
        origin_value = "*"
    elif request_origin and any(
        request_origin == allowed
        or (allowed.startswith("*.") and request_origin.endswith(allowed[1:]))
        for allowed in config.allowed_origins
    ):
        origin_value = request_origin
    else:
        return []

    headers = [
        ("Access-Control-Allow-Origin", origin_value),
        ("Access-Control-Allow-Methods", ", ".join(config.allowed_methods)),
        ("Access-Control-Max-Age", str(config.max_age)),
    ]
    if origin_value != "*":
        headers.append(("Vary", "Origin"))
    return headers


class RateLimiter:
    """Token bucket per client address.

    Each client starts with ``burst`` tokens, spends one per request and
    regains ``rate`` tokens per second. Only the ``max_entries`` most
    recently seen clients are remembered; a forgotten client starts over
    with a full bucket. Used from the event loop thread only.
    """

    def __init__(self, rate: float, burst: int, max_entries: int = 10000):
        if rate <= 0:
            raise ValueError("Rate must be positive")
        if burst <= 0:
            raise ValueError("Burst must be positive")

        self.rate = rate
        self.burst = burst
        self.max_entries = max_entries
        # client -> (tokens, monotonic time of last request), oldest first
        self._buckets: "OrderedDict[str, Tuple[float, float]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._buckets)

    def is_allowed(self, client: str) -> bool:
        """Spend a token for ``client``; False when its bucket is empty."""
        now = time.monotonic()
        tokens, last_seen = self._buckets.pop(client, (float(self.burst), now))
        tokens = min(float(self.burst), tokens + (now - last_seen) * self.rate)

        allowed = tokens >= 1
        if allowed:
            tokens -= 1
        self._buckets[client] = (tokens, now)

        while len(self._buckets) > self.max_entries:
            self._buckets.popitem(last=False)
        return allowed


@dataclass
class IPFilter:
    """IP allow list / block list with CIDR support.

    When the allow list is non-empty only matching clients are served;
    otherwise every client not on the block list is.
    """
    allowed: List[Network] = field(default_factory=list)
    blocked: List[Network] = field(default_factory=list)

    @classmethod
    def from_strings(cls, allow: Iterable[str] = (), block: Iterable[str] = ()) -> "IPFilter":
        """Build a filter from addresses or CIDR ranges.

        Raises:
            ValueError: If an entry is not a valid address or network
        """
        ip_filter = cls()
        for entry in allow:
            ip_filter.allowed.append(_parse_network(entry))
        for entry in block:
            ip_filter.blocked.append(_parse_network(entry))
        return ip_filter

    def is_allowed(self, ip: str) -> bool:
        """Check if IP is allowed. Unparseable addresses are always blocked."""
        try:
            address = ip_address(ip)
        except ValueError:
            return False

        if self.allowed:
            return any(address in network for network in self.allowed)
        return not any(address in network for network in self.blocked)


def _parse_network(entry: str) -> Network:
    try:
        return ip_network(entry.strip(), strict=False)
    except ValueError as e:
        raise ValueError(f"Invalid IP address or CIDR range: {entry}") from e
