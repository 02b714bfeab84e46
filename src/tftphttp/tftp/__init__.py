"""A read-only TFTP server.

Things to note:
- only read requests (RRQ) are served. Write requests (WRQ) are refused
  with an access violation.
- netascii requests are served byte for byte, without newline conversion.
  mail mode is refused.
- supports the blksize (RFC 2348), tsize and timeout (RFC 2349) options.
- uses zero-based wraparound when a transfer takes more than 65535 blocks.
- each transfer runs on its own thread and its own socket; retransmission
  uses a fixed timeout, not an adaptive one.
"""

from .packet import PacketError, ReadRequest
from .server import OutgoingTransfer, TFTPServer, TransferAborted, TransferTimeout

__all__ = [
    "OutgoingTransfer", "PacketError", "ReadRequest", "TFTPServer",
    "TransferAborted", "TransferTimeout",
]
