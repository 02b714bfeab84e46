from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Dict

from .constants import ACK, DATA, ERROR, OACK, RRQ, WRQ

_OPCODE = struct.Struct("!H")
_BLOCK = struct.Struct("!HH")     # opcode, block number / error code


class PacketError(ValueError):
    """Raised for datagrams that are not valid TFTP packets."""


@dataclass(frozen=True, slots=True)
class ReadRequest:
    opcode: int                   # RRQ or WRQ
    filename: str
    mode: str                     # lower-cased
    options: Dict[str, str] = field(default_factory=dict)   # names lower-cased


def opcode_of(raw: bytes) -> int:
    if len(raw) < _OPCODE.size:
        raise PacketError("datagram too small to carry an opcode")
    return _OPCODE.unpack_from(raw)[0]


def _split_strings(body: bytes) -> list[str]:
    if not body.endswith(b"\x00"):
        raise PacketError("request is not NUL terminated")
    # latin-1 keeps every byte of the filename as sent
    return [s.decode("latin-1") for s in body[:-1].split(b"\x00")]


def parse_request(raw: bytes) -> ReadRequest:
    op = opcode_of(raw)
    if op not in (RRQ, WRQ):
        raise PacketError(f"not a request packet: opcode {op}")
    fields = _split_strings(raw[_OPCODE.size:])
    if len(fields) < 2 or not fields[0]:
        raise PacketError("request without filename or mode")
    filename, mode, *rest = fields
    if len(rest) % 2:
        raise PacketError("option without value")
    options = {rest[i].lower(): rest[i + 1] for i in range(0, len(rest), 2)}
    return ReadRequest(op, filename, mode.lower(), options)


def parse_ack(raw: bytes) -> int:
    """Return the acknowledged block number."""
    if len(raw) < _BLOCK.size:
        raise PacketError("truncated ACK")
    op, block = _BLOCK.unpack_from(raw)
    if op != ACK:
        raise PacketError(f"not an ACK: opcode {op}")
    return block


def parse_error(raw: bytes) -> tuple[int, str]:
    if len(raw) < _BLOCK.size:
        raise PacketError("truncated ERROR")
    op, code = _BLOCK.unpack_from(raw)
    if op != ERROR:
        raise PacketError(f"not an ERROR: opcode {op}")
    message = raw[_BLOCK.size:].split(b"\x00", 1)[0].decode("latin-1")
    return code, message


def request_packet(filename: str, mode: str = "octet", options: Dict[str, str] | None = None,
                   opcode: int = RRQ) -> bytes:
    parts = [filename, mode]
    for name, value in (options or {}).items():
        parts += [name, str(value)]
    return _OPCODE.pack(opcode) + b"".join(p.encode("latin-1") + b"\x00" for p in parts)


def data_packet(block: int, payload: bytes) -> bytes:
    return _BLOCK.pack(DATA, block & 0xFFFF) + payload


def parse_data(raw: bytes) -> tuple[int, bytes]:
    if len(raw) < _BLOCK.size:
        raise PacketError("truncated DATA")
    op, block = _BLOCK.unpack_from(raw)
    if op != DATA:
        raise PacketError(f"not a DATA packet: opcode {op}")
    return block, raw[_BLOCK.size:]


def ack_packet(block: int) -> bytes:
    return _BLOCK.pack(ACK, block & 0xFFFF)


def error_packet(code: int, message: str) -> bytes:
    return _BLOCK.pack(ERROR, code) + message.encode("latin-1", "replace") + b"\x00"


def oack_packet(options: Dict[str, str]) -> bytes:
    body = b"".join(k.encode("ascii") + b"\x00" + str(v).encode("ascii") + b"\x00"
                    for k, v in options.items())
    return _OPCODE.pack(OACK) + body


def parse_oack(raw: bytes) -> Dict[str, str]:
    if opcode_of(raw) != OACK:
        raise PacketError("not an OACK")
    body = raw[_OPCODE.size:]
    if not body:
        return {}
    fields = _split_strings(body)
    if len(fields) % 2:
        raise PacketError("option without value")
    return {fields[i].lower(): fields[i + 1] for i in range(0, len(fields), 2)}
