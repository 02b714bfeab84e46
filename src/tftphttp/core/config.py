"""Startup configuration: base URL validation and the immutable Config value."""

from __future__ import annotations
from urllib.parse import urlsplit, urlunsplit

from .model import Config, InvalidConfiguration
from .util import parse_bind_address, parse_duration

DEFAULT_BASE_URL = "http://127.0.0.1/tftp"
DEFAULT_APPEND_PATH = True
DEFAULT_TIMEOUT = 5.0
DEFAULT_BIND_ADDRESS = ":69"
DEFAULT_HTTP_TIMEOUT = 60.0


def resolve_base_url(raw: str, append_path: bool) -> str:
    """Validate `raw` as an absolute URL and normalize it.

    With `append_path` the result always ends in exactly one "/" so that a
    filename appended later starts a new path segment.
    """
    try:
        parts = urlsplit(raw.strip())
        parts.port  # raises ValueError on a non-numeric or out-of-range port
    except ValueError as e:
        raise InvalidConfiguration(f"invalid base URL: {e}")
    if not parts.scheme:
        raise InvalidConfiguration("invalid base URL: No scheme found.")
    if not parts.hostname:
        raise InvalidConfiguration("invalid base URL: No host found.")

    base = urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))
    if append_path and not base.endswith("/"):
        return base + "/"
    return base


def resolve(
    raw_base_url: str = DEFAULT_BASE_URL,
    append_path: bool = DEFAULT_APPEND_PATH,
    *,
    timeout: str | float = DEFAULT_TIMEOUT,
    username: str = "",
    password: str = "",
    bind_address: str = DEFAULT_BIND_ADDRESS,
    http_timeout: str | float | None = DEFAULT_HTTP_TIMEOUT,
) -> Config:
    """Build the process-wide Config; raises InvalidConfiguration on any bad option."""
    timeout_s = parse_duration(timeout)
    if timeout_s <= 0:
        raise InvalidConfiguration(f"timeout must be positive, got {timeout!r}")

    http_timeout_s = None
    if http_timeout is not None:
        http_timeout_s = parse_duration(http_timeout)
        if http_timeout_s <= 0:
            http_timeout_s = None       # zero disables the HTTP timeout

    return Config(
        base_url=resolve_base_url(raw_base_url, append_path),
        append_path=append_path,
        timeout=timeout_s,
        auth=(username, password) if username else None,
        bind_address=parse_bind_address(bind_address),
        http_timeout=http_timeout_s,
    )
