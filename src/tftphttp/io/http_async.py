"""Asynchronous HTTP fetches using httpx."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping, Optional, Tuple, Union

import httpx

from .base import BODY_CHUNK_SIZE
from .http_sync import parse_content_length

logger = logging.getLogger(__name__)


# Global async client
_client: Optional[httpx.AsyncClient] = None


def _get_client() -> httpx.AsyncClient:
    """Get or create the global httpx AsyncClient."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=60.0, follow_redirects=True)
    return _client


class AsyncResponseBody:
    """AsyncByteSource over a streamed httpx response."""

    def __init__(self, response: httpx.Response, chunk_size: int = BODY_CHUNK_SIZE):
        self._chunks = response.aiter_raw(chunk_size)
        self._buf = bytearray()
        self._eof = False
        self.bytes_read = 0

    async def read(self, n: int) -> bytes:
        while len(self._buf) < n and not self._eof:
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._eof = True
                break
            except httpx.HTTPError as e:
                raise IOError(f"reading HTTP body failed: {e}")
            self._buf.extend(chunk)
        data = bytes(self._buf[:n])
        del self._buf[:n]
        self.bytes_read += len(data)
        return data


class AsyncHTTPFetch:
    """Async counterpart of http_sync.HTTPFetch."""

    def __init__(self, response: httpx.Response):
        self.status_code = response.status_code
        self.reason = response.reason_phrase
        self.content_length = parse_content_length(response.headers.get("content-length"))
        self.body = AsyncResponseBody(response)

    @property
    def status(self) -> str:
        return f"{self.status_code} {self.reason}"


@asynccontextmanager
async def open_fetch_async(
    url: str,
    *,
    headers: Mapping[str, Union[str, bytes]],
    auth: Optional[Tuple[str, str]] = None,
    timeout: Optional[float] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> AsyncIterator[AsyncHTTPFetch]:
    """Dispatch a GET and yield once the headers are in; the response is closed on exit.

    Raises httpx.RequestError when the request cannot be completed.
    """
    client = client or _get_client()
    logger.debug("GET %s", url)
    async with client.stream(
        "GET", url, headers=dict(headers), auth=auth, timeout=timeout
    ) as response:
        yield AsyncHTTPFetch(response)


async def close_global_client():
    """Close the global httpx client. Call this at application shutdown."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
