"""Per-request translation of a TFTP read request into an HTTP GET.

One call of `handle` (or `handle_async`) serves one read request: it derives
the URL and headers from the filename and the peer, fetches the body, and
pushes it into the sink handed over by the transfer engine. Nothing here is
shared between calls except the read-only Config and the pooled HTTP client,
so any number of requests may be in flight at once.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Dict, Optional

import httpx
import requests

from .model import (
    Config, FetchOutcome, FileNotFound, OriginError, OutcomeKind, PeerAddress,
    StreamFailure, TransportFailure,
)
from ..io.base import AsyncTransferSink, TransferSink
from ..io.http_async import open_fetch_async
from ..io.http_sync import open_fetch

logger = logging.getLogger(__name__)

HEADER_IP = "X-TFTP-IP"
HEADER_PORT = "X-TFTP-Port"
HEADER_FILE = "X-TFTP-File"


def compose_target(config: Config, filename: str) -> str:
    """Return the URL fetched for `filename`.

    The base URL already ends in "/" when append_path is set, and leading
    slashes are stripped from the filename so it cannot replace the base path.
    """
    if not config.append_path:
        return config.base_url
    return config.base_url + filename.lstrip("/")


def _header_bytes(value: str) -> bytes:
    # TFTP filenames arrive latin-1 decoded, so this gives back the bytes as sent
    try:
        return value.encode("latin-1")
    except UnicodeEncodeError:
        return value.encode("utf-8")


def build_headers(filename: str, peer: PeerAddress) -> Dict[str, str | bytes]:
    return {
        HEADER_IP: peer.ip,
        HEADER_PORT: str(peer.port),
        HEADER_FILE: _header_bytes(filename),
        # keep Content-Length equal to the bytes the client will receive
        "Accept-Encoding": "identity",
    }


def classify(status: int, content_length: Optional[int]) -> FetchOutcome:
    if status == 200:
        kind = OutcomeKind.SUCCESS
    elif status == 404:
        kind = OutcomeKind.NOT_FOUND
    else:
        kind = OutcomeKind.FAILURE
    if content_length is not None and content_length < 0:
        content_length = None
    return FetchOutcome(kind, status, content_length)


def _check_outcome(fetch, filename: str, peer: PeerAddress) -> FetchOutcome:
    outcome = classify(fetch.status_code, fetch.content_length)
    if outcome.kind is OutcomeKind.NOT_FOUND:
        logger.info("http FileNotFound response for %s from %s: %s", filename, peer, fetch.status)
        raise FileNotFound("File not found", filename=filename, peer=peer)
    if outcome.kind is OutcomeKind.FAILURE:
        logger.error("http request for %s from %s returned status %s", filename, peer, fetch.status)
        raise OriginError(f"HTTP request error: {fetch.status}", outcome.status,
                          filename=filename, peer=peer)
    return outcome


def handle(
    filename: str,
    peer: PeerAddress,
    sink: TransferSink,
    config: Config,
    *,
    session: Optional[requests.Session] = None,
) -> None:
    """Serve one read request by streaming the origin's response into `sink`.

    Raises TransportFailure, FileNotFound, OriginError or StreamFailure.
    """
    logger.info("New TFTP request (%s) from %s", filename, peer.ip)
    url = compose_target(config, filename)
    logger.debug("URI: %s", url)

    try:
        fetch = open_fetch(url, headers=build_headers(filename, peer), auth=config.auth,
                           timeout=config.http_timeout, session=session)
    except requests.RequestException as e:
        logger.error("http request for %s from %s failed: %s", filename, peer, e)
        raise TransportFailure(f"HTTP request failed: {e}", filename=filename, peer=peer)

    with fetch:
        outcome = _check_outcome(fetch, filename, peer)
        if outcome.content_length is not None:
            sink.declare_size(outcome.content_length)
        try:
            sent = sink.write_from(fetch.body)
        except OSError as e:
            logger.error("transfer of %s to %s failed: %s", filename, peer, e)
            raise StreamFailure(f"transfer failed: {e}", filename=filename, peer=peer)

    logger.info("Sent %s (%d bytes) to %s", filename, sent, peer)


async def handle_async(
    filename: str,
    peer: PeerAddress,
    sink: AsyncTransferSink,
    config: Config,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> None:
    """Asynchronous variant of `handle` for engines running on asyncio."""
    logger.info("New TFTP request (%s) from %s", filename, peer.ip)
    url = compose_target(config, filename)
    logger.debug("URI: %s", url)

    try:
        async with open_fetch_async(url, headers=build_headers(filename, peer), auth=config.auth,
                                    timeout=config.http_timeout, client=client) as fetch:
            outcome = _check_outcome(fetch, filename, peer)
            if outcome.content_length is not None:
                sink.declare_size(outcome.content_length)
            try:
                sent = await sink.write_from(fetch.body)
            except OSError as e:
                logger.error("transfer of %s to %s failed: %s", filename, peer, e)
                raise StreamFailure(f"transfer failed: {e}", filename=filename, peer=peer)
            except asyncio.CancelledError:
                logger.warning("transfer of %s to %s cancelled", filename, peer)
                raise
    except httpx.RequestError as e:
        logger.error("http request for %s from %s failed: %s", filename, peer, e)
        raise TransportFailure(f"HTTP request failed: {e}", filename=filename, peer=peer)

    logger.info("Sent %s (%d bytes) to %s", filename, sent, peer)
