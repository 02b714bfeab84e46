"""Blocking HTTP fetches using requests."""

import logging
from typing import Mapping, Optional, Tuple, Union

import requests

from .base import BODY_CHUNK_SIZE

logger = logging.getLogger(__name__)


# Module-level session for connection pooling
_session: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    """Get or create the global requests session."""
    global _session
    if _session is None:
        _session = requests.Session()
    return _session


def close_global_session():
    """Close the global requests session. Call this at application shutdown."""
    global _session
    if _session is not None:
        _session.close()
        _session = None


def parse_content_length(value: Optional[str]) -> Optional[int]:
    """Return the declared length, or None when missing, malformed or negative."""
    if value is None:
        return None
    try:
        length = int(value.strip())
    except ValueError:
        return None
    return length if length >= 0 else None


class ResponseBody:
    """ByteSource over a streamed requests response."""

    def __init__(self, response: requests.Response, chunk_size: int = BODY_CHUNK_SIZE):
        self._chunks = response.iter_content(chunk_size=chunk_size)
        self._buf = bytearray()
        self._eof = False
        self.bytes_read = 0

    def read(self, n: int) -> bytes:
        """Return up to `n` bytes, blocking until that many are buffered or EOF."""
        while len(self._buf) < n and not self._eof:
            try:
                chunk = next(self._chunks)
            except StopIteration:
                self._eof = True
                break
            except requests.RequestException as e:
                raise IOError(f"reading HTTP body failed: {e}")
            self._buf.extend(chunk)
        data = bytes(self._buf[:n])
        del self._buf[:n]
        self.bytes_read += len(data)
        return data


class HTTPFetch:
    """A dispatched GET whose body has not been read yet.

    Use as a context manager so the underlying connection goes back to the
    pool (or is discarded) whatever happens while streaming.
    """

    def __init__(self, response: requests.Response):
        self._response = response
        self.status_code = response.status_code
        self.reason = response.reason
        self.content_length = parse_content_length(response.headers.get("content-length"))
        self.body = ResponseBody(response)

    @property
    def status(self) -> str:
        return f"{self.status_code} {self.reason}"

    def close(self):
        self._response.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def open_fetch(
    url: str,
    *,
    headers: Mapping[str, Union[str, bytes]],
    auth: Optional[Tuple[str, str]] = None,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> HTTPFetch:
    """Dispatch a GET and return once the status line and headers are in.

    Raises requests.RequestException when the request cannot be completed.
    Redirects are followed by requests.
    """
    session = session or _get_session()
    logger.debug("GET %s", url)
    response = session.get(url, headers=dict(headers), auth=auth, timeout=timeout, stream=True)
    return HTTPFetch(response)
