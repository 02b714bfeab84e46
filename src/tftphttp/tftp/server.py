from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Callable, Optional, Tuple

from ..core.model import FileNotFound, PeerAddress, TransferError
from ..io.base import ByteSource
from .constants import (
    ACK, DEFAULT_RETRIES, DEFAULT_TIMEOUT_S, ERR_ACCESS_VIOLATION, ERR_FILE_NOT_FOUND,
    ERR_ILLEGAL_OPERATION, ERR_UNDEFINED, ERR_UNKNOWN_TID, ERROR, MAX_DATAGRAM, WRQ,
)
from .options import negotiate
from .packet import (
    PacketError, ReadRequest, data_packet, error_packet, oack_packet, opcode_of,
    parse_ack, parse_error, parse_request,
)

logger = logging.getLogger(__name__)

Handler = Callable[[str, PeerAddress, "OutgoingTransfer"], None]

_POLL_INTERVAL = 0.5


class TransferTimeout(TimeoutError):
    """Raised when the client stopped acknowledging."""


class TransferAborted(OSError):
    """Raised when the client cancels the transfer with an ERROR packet."""


class OutgoingTransfer:
    """Sends one file to one client over its own socket (its TID).

    Implements TransferSink: the size hint must arrive before `write_from`,
    because tsize can only be announced in the OACK that precedes DATA 1.
    """

    def __init__(self, sock: socket.socket, peer: PeerAddress, request: ReadRequest,
                 *, timeout: float = DEFAULT_TIMEOUT_S, retries: int = DEFAULT_RETRIES):
        self.sock = sock
        self.peer = peer
        self.filename = request.filename
        self.options = negotiate(request.options)
        self.timeout = self.options.timeout or timeout
        self.retries = retries
        self.size: Optional[int] = None
        self.bytes_sent = 0
        self.retransmits = 0
        self._started = False

    def declare_size(self, size: int) -> None:
        if not self._started:
            self.size = size

    def write_from(self, source: ByteSource) -> int:
        if self._started:
            raise RuntimeError("transfer already started")
        self._started = True
        blksize = self.options.blksize

        if self.options.needs_oack:
            oack = dict(self.options.acked or {})
            if self.options.tsize_requested and self.size is not None:
                oack["tsize"] = str(self.size)
            # with nothing to acknowledge the client gets DATA 1 straight away
            if oack:
                self._send_and_wait(oack_packet(oack), 0)

        block = 1
        while True:
            payload = self._read_block(source, blksize)
            self._send_and_wait(data_packet(block, payload), block)
            self.bytes_sent += len(payload)
            if len(payload) < blksize:
                break
            block = (block + 1) & 0xFFFF     # zero-based wraparound after 65535
        return self.bytes_sent

    def send_error(self, code: int, message: str) -> None:
        try:
            self.sock.sendto(error_packet(code, message), self.peer)
        except OSError as e:
            logger.debug("could not send error to %s: %s", self.peer, e)

    # ------------------------------------------------------------------ #
    @staticmethod
    def _read_block(source: ByteSource, blksize: int) -> bytes:
        buf = bytearray()
        while len(buf) < blksize:
            chunk = source.read(blksize - len(buf))
            if not chunk:
                break
            buf.extend(chunk)
        return bytes(buf)

    def _send_and_wait(self, packet: bytes, block: int) -> None:
        """Send `packet` until `block` is acknowledged or the retries run out."""
        attempts = 0
        self.sock.sendto(packet, self.peer)
        deadline = time.monotonic() + self.timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                attempts += 1
                if attempts > self.retries:
                    raise TransferTimeout(f"no ACK for block {block} from {self.peer}")
                self.retransmits += 1
                logger.debug("retransmitting block %d to %s", block, self.peer)
                self.sock.sendto(packet, self.peer)
                deadline = time.monotonic() + self.timeout
                continue

            self.sock.settimeout(remaining)
            try:
                raw, addr = self.sock.recvfrom(MAX_DATAGRAM)
            except socket.timeout:
                continue

            if tuple(addr[:2]) != tuple(self.peer):
                self.sock.sendto(error_packet(ERR_UNKNOWN_TID, "Unknown transfer ID"), addr)
                continue
            try:
                op = opcode_of(raw)
                if op == ERROR:
                    code, message = parse_error(raw)
                    raise TransferAborted(f"client sent error {code}: {message}")
                if op == ACK and parse_ack(raw) == block & 0xFFFF:
                    return
            except PacketError as e:
                logger.debug("ignoring malformed packet from %s: %s", self.peer, e)
            # anything else, including duplicate ACKs, is ignored


class TFTPServer:
    """Read-only TFTP server running `handler` once per read request.

    Every request gets its own thread and its own ephemeral socket, so a slow
    origin only delays the client that asked for it.
    """

    def __init__(self, handler: Handler, *, timeout: float = DEFAULT_TIMEOUT_S,
                 retries: int = DEFAULT_RETRIES):
        self.handler = handler
        self.timeout = timeout
        self.retries = retries
        self.server_address: Optional[Tuple[str, int]] = None
        self._sock: Optional[socket.socket] = None
        self._stop = threading.Event()

    def serve_forever(self, address: Tuple[str, int], ready: Callable[[], None] | None = None) -> None:
        """Bind `address`, call `ready` once bound, and serve until `shutdown`."""
        sock = socket.socket(_family(address[0]), socket.SOCK_DGRAM)
        try:
            sock.bind(address)
        except OSError:
            sock.close()
            raise
        self._sock = sock
        self.server_address = sock.getsockname()[:2]
        self._stop.clear()
        if ready is not None:
            ready()

        sock.settimeout(_POLL_INTERVAL)
        try:
            while not self._stop.is_set():
                try:
                    raw, addr = sock.recvfrom(MAX_DATAGRAM)
                except socket.timeout:
                    continue
                self._dispatch(raw, addr)
        finally:
            sock.close()
            self._sock = None

    def shutdown(self) -> None:
        self._stop.set()

    # ------------------------------------------------------------------ #
    def _dispatch(self, raw: bytes, addr) -> None:
        try:
            request = parse_request(raw)
        except PacketError as e:
            logger.debug("ignoring packet from %s: %s", addr, e)
            self._sock.sendto(error_packet(ERR_ILLEGAL_OPERATION, "Illegal TFTP operation"), addr)
            return

        if request.opcode == WRQ:
            logger.info("Refusing write request (%s) from %s", request.filename, addr[0])
            self._sock.sendto(error_packet(ERR_ACCESS_VIOLATION, "Write not supported"), addr)
            return
        if request.mode not in ("octet", "netascii"):
            self._sock.sendto(error_packet(ERR_ILLEGAL_OPERATION, f"Unsupported mode {request.mode}"), addr)
            return

        t = threading.Thread(
            target=self._serve_transfer,
            args=(request, PeerAddress(addr[0], addr[1])),
            name=f"tftp-{addr[0]}:{addr[1]}",
            daemon=True,
        )
        t.start()

    def _serve_transfer(self, request: ReadRequest, peer: PeerAddress) -> None:
        host = self.server_address[0]
        sock = socket.socket(_family(host), socket.SOCK_DGRAM)
        try:
            sock.bind((host, 0))
            transfer = OutgoingTransfer(sock, peer, request, timeout=self.timeout, retries=self.retries)
            try:
                self.handler(request.filename, peer, transfer)
            except FileNotFound:
                transfer.send_error(ERR_FILE_NOT_FOUND, "File not found")
            except TransferError as e:
                if isinstance(e.__cause__ or e.__context__, TransferAborted):
                    # errors are never answered with errors (RFC 1350)
                    logger.info("Transfer of %s aborted by %s", request.filename, peer)
                else:
                    transfer.send_error(ERR_UNDEFINED, str(e))
            except Exception:
                logger.exception("handler crashed on %s from %s", request.filename, peer)
                transfer.send_error(ERR_UNDEFINED, "Internal error")
        finally:
            sock.close()


def _family(host: str) -> int:
    return socket.AF_INET6 if ":" in host else socket.AF_INET
