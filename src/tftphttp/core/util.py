from __future__ import annotations
import math
import re
from typing import Tuple

from .model import InvalidConfiguration

_DURATION_UNITS = {
    "ns": 1e-9, "us": 1e-6, "µs": 1e-6, "ms": 1e-3,
    "s": 1.0, "m": 60.0, "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str | int | float) -> float:
    """Return seconds for a number or a duration string such as "5s", "1m30s", "250ms"."""
    if isinstance(value, (int, float)):
        return _finite(float(value), value)
    text = value.strip()
    try:
        seconds = float(text)
    except ValueError:
        seconds = None
    if seconds is not None:
        return _finite(seconds, value)
    pos = 0
    total = 0.0
    for m in _DURATION_PART.finditer(text):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if pos == 0 or pos != len(text):
        raise InvalidConfiguration(f"invalid duration: {value!r}")
    return _finite(total, value)


def _finite(seconds: float, value) -> float:
    if not math.isfinite(seconds):
        raise InvalidConfiguration(f"invalid duration: {value!r}")
    return seconds


def parse_bind_address(value: str) -> Tuple[str, int]:
    """Split "host:port", ":port" or "[v6]:port" into a (host, port) pair.

    An empty host means all IPv4 interfaces.
    """
    host, sep, port_str = value.rpartition(":")
    if not sep:
        raise InvalidConfiguration(f"invalid bind address {value!r}: missing port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise InvalidConfiguration(f"invalid bind address {value!r}: IPv6 hosts need brackets")
    try:
        port = int(port_str)
    except ValueError:
        raise InvalidConfiguration(f"invalid bind address {value!r}: bad port")
    if not 0 <= port <= 65535:
        raise InvalidConfiguration(f"invalid bind address {value!r}: port out of range")
    return host or "0.0.0.0", port
