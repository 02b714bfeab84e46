"""Base protocols shared by the HTTP fetchers and the transfer engine."""

from typing import Protocol, runtime_checkable


BODY_CHUNK_SIZE = 64 * 1024  # 64 KB read from the origin at a time


@runtime_checkable
class ByteSource(Protocol):
    """Protocol for blocking byte streams."""

    def read(self, n: int) -> bytes:
        """Return up to `n` bytes; b"" once the stream is exhausted.
        Transport failures surface as IOError.
        """
        ...


@runtime_checkable
class AsyncByteSource(Protocol):
    """Protocol for asynchronous byte streams."""

    async def read(self, n: int) -> bytes:
        ...


@runtime_checkable
class TransferSink(Protocol):
    """Where the bridge delivers the file: an optional size hint, then the bytes."""

    def declare_size(self, size: int) -> None:
        """Best-effort hint, only honoured before `write_from` starts."""
        ...

    def write_from(self, source: ByteSource) -> int:
        """Consume `source` until exhausted, return the number of bytes sent."""
        ...


@runtime_checkable
class AsyncTransferSink(Protocol):
    """Asynchronous counterpart of TransferSink."""

    def declare_size(self, size: int) -> None:
        ...

    async def write_from(self, source: AsyncByteSource) -> int:
        ...
