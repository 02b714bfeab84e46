"""RFC 2347 option negotiation for read requests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from .constants import DEFAULT_BLKSIZE, MAX_BLKSIZE, MAX_TIMEOUT, MIN_BLKSIZE, MIN_TIMEOUT


@dataclass(slots=True)
class Negotiated:
    blksize: int = DEFAULT_BLKSIZE
    timeout: Optional[float] = None       # client-requested retransmit timeout
    tsize_requested: bool = False
    acked: Dict[str, str] | None = None   # options echoed in the OACK (without tsize)

    @property
    def needs_oack(self) -> bool:
        return bool(self.acked) or self.tsize_requested


def _int_option(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None


def negotiate(requested: Dict[str, str]) -> Negotiated:
    """Pick the options we honour; unknown or out-of-range ones are left out of the OACK."""
    result = Negotiated(acked={})

    blksize = _int_option(requested.get("blksize", ""))
    if blksize is not None and blksize >= MIN_BLKSIZE:
        result.blksize = min(blksize, MAX_BLKSIZE)
        result.acked["blksize"] = str(result.blksize)

    timeout = _int_option(requested.get("timeout", ""))
    if timeout is not None and MIN_TIMEOUT <= timeout <= MAX_TIMEOUT:
        result.timeout = float(timeout)
        result.acked["timeout"] = str(timeout)

    # the client sends tsize=0 and expects the real size back (RFC 2349)
    if "tsize" in requested:
        result.tsize_requested = True

    return result
