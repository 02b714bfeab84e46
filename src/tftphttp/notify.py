"""Readiness notification for systemd (sd_notify protocol)."""

from __future__ import annotations

import logging
import os
import socket

logger = logging.getLogger(__name__)


def sd_notify(state: str, unset_environment: bool = False) -> bool:
    """Send `state` to the service manager.

    Returns False when no manager is listening ($NOTIFY_SOCKET unset), True
    once the datagram is sent. Raises OSError when sending fails.
    """
    addr = os.environ.get("NOTIFY_SOCKET")
    if unset_environment:
        os.environ.pop("NOTIFY_SOCKET", None)
    if not addr:
        return False
    if addr[0] == "@":
        addr = "\0" + addr[1:]       # abstract namespace
    elif addr[0] != "/":
        raise OSError(f"unsupported NOTIFY_SOCKET address: {addr!r}")

    with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM | socket.SOCK_CLOEXEC) as sock:
        sock.connect(addr)
        sock.sendall(state.encode())
    return True


def notify_ready() -> bool:
    """Tell the supervisor we are serving. Never raises; failures are logged."""
    try:
        sent = sd_notify("READY=1\n", unset_environment=True)
    except OSError as e:
        logger.warning("Unable to send systemd daemon successful start message: %s", e)
        return False
    if sent:
        logger.debug("Systemd was notified.")
    else:
        logger.debug("Systemd notifications are not supported.")
    return sent
