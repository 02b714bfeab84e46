"""tftp-http-proxy - serve TFTP read requests from an HTTP origin."""

import functools

from .core.model import (                                            # re-export
    Config, FileNotFound, InvalidConfiguration, OriginError, PeerAddress,
    StreamFailure, TransferError, TransportFailure,
)
from .core.config import resolve
from .core.bridge import handle, handle_async
from .tftp import TFTPServer

__all__ = [
    "Config", "FileNotFound", "InvalidConfiguration", "OriginError", "PeerAddress",
    "StreamFailure", "TransferError", "TransportFailure",
    "resolve", "handle", "handle_async", "serve", "TFTPServer",
]


def serve(config: Config, ready=None) -> None:
    """Run a TFTP server for `config` on the calling thread until interrupted."""
    server = TFTPServer(functools.partial(handle, config=config), timeout=config.timeout)
    server.serve_forever(config.bind_address, ready=ready)
