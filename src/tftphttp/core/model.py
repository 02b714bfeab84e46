from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import NamedTuple


class PeerAddress(NamedTuple):
    ip: str
    port: int

    def __str__(self) -> str:
        return f"{self.ip}:{self.port}"


@dataclass(frozen=True, slots=True)
class Config:
    base_url: str
    append_path: bool
    timeout: float                      # seconds, enforced by the TFTP engine
    auth: tuple[str, str] | None        # None unless a username was given
    bind_address: tuple[str, int]
    http_timeout: float | None


class OutcomeKind(enum.Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    FAILURE = "failure"


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    kind: OutcomeKind
    status: int
    content_length: int | None         # None when the origin did not declare one


class InvalidConfiguration(ValueError):
    """Raised when the base URL or another startup option is unusable."""
    pass


class TransferError(RuntimeError):
    """Base class for failures local to a single read request."""

    def __init__(self, message: str, *, filename: str | None = None, peer: PeerAddress | None = None):
        super().__init__(message)
        self.filename = filename
        self.peer = peer


class TransportFailure(TransferError):
    """Raised when the HTTP request could not be dispatched."""


class FileNotFound(TransferError):
    """Raised when the origin reports that the resource does not exist."""


class OriginError(TransferError):
    """Raised when the origin answers with an unexpected status."""

    def __init__(self, message: str, status: int, **kw):
        super().__init__(message, **kw)
        self.status = status


class StreamFailure(TransferError):
    """Raised when the body could not be read or delivered to the sink."""
