"""Tests for the asynchronous request bridge."""

import asyncio

import httpx
import pytest
import pytest_asyncio
from werkzeug import Request, Response

from tftphttp.core.bridge import handle_async
from tftphttp.core.config import resolve
from tftphttp.core.model import (
    FileNotFound, OriginError, PeerAddress, StreamFailure, TransportFailure,
)

PEER = PeerAddress("198.51.100.1", 4000)


class AsyncRecordingSink:
    """AsyncTransferSink that remembers the order of calls."""

    def __init__(self, read_size: int = 100, fail_after: int | None = None, block_after: int | None = None):
        self.events = []
        self.read_size = read_size
        self.fail_after = fail_after
        self.block_after = block_after

    def declare_size(self, size: int) -> None:
        self.events.append(("size", size))

    async def write_from(self, source) -> int:
        total = 0
        while True:
            chunk = await source.read(self.read_size)
            if not chunk:
                break
            self.events.append(("data", chunk))
            total += len(chunk)
            if self.fail_after is not None and total >= self.fail_after:
                raise ConnectionResetError("peer went away")
            if self.block_after is not None and total >= self.block_after:
                await asyncio.sleep(3600)
        return total

    @property
    def data(self) -> bytes:
        return b"".join(v for k, v in self.events if k == "data")


@pytest_asyncio.fixture
async def client():
    async with httpx.AsyncClient() as c:
        yield c


class TestHandleAsync:
    """Async bridge against a local origin."""

    @pytest.mark.asyncio
    async def test_streams_body_after_size(self, httpserver, client):
        body = b"0123456789" * 100
        httpserver.expect_request("/tftp/boot.img").respond_with_data(body)
        config = resolve(httpserver.url_for("/tftp"), True)
        sink = AsyncRecordingSink()

        await handle_async("boot.img", PEER, sink, config, client=client)

        assert sink.events[0] == ("size", 1000)
        assert sink.data == body

    @pytest.mark.asyncio
    async def test_metadata_and_auth(self, httpserver, client):
        seen = {}

        def handler(request: Request) -> Response:
            seen["headers"] = dict(request.headers)
            seen["auth"] = request.authorization
            return Response(b"payload")

        httpserver.expect_request("/tftp/x/y").respond_with_handler(handler)
        config = resolve(httpserver.url_for("/tftp"), True, username="alice", password="s3cret")

        await handle_async("//x/y", PEER, AsyncRecordingSink(), config, client=client)

        assert seen["headers"]["X-Tftp-Ip"] == "198.51.100.1"
        assert seen["headers"]["X-Tftp-Port"] == "4000"
        assert seen["headers"]["X-Tftp-File"] == "//x/y"
        assert seen["auth"].username == "alice"
        assert seen["auth"].password == "s3cret"

    @pytest.mark.asyncio
    async def test_non_ascii_filename(self, httpserver, client):
        seen = {}

        def handler(request: Request) -> Response:
            seen["path"] = request.path
            seen["file"] = request.headers["X-TFTP-File"]
            return Response(b"cfg")

        httpserver.expect_request("/tftp/caf\xe9.cfg").respond_with_handler(handler)
        config = resolve(httpserver.url_for("/tftp"), True)
        sink = AsyncRecordingSink()

        await handle_async("caf\xe9.cfg", PEER, sink, config, client=client)

        assert sink.data == b"cfg"
        assert seen["path"] == "/tftp/caf\xe9.cfg"
        assert seen["file"] == "caf\xe9.cfg"

    @pytest.mark.asyncio
    async def test_truncated_body_is_stream_failure(self, truncating_origin, client):
        config = resolve(truncating_origin, True, http_timeout="5s")
        sink = AsyncRecordingSink()

        with pytest.raises(StreamFailure) as exc_info:
            await handle_async("short.bin", PEER, sink, config, client=client)

        assert exc_info.value.peer == PEER
        assert sink.events[0] == ("size", 1000)

    @pytest.mark.asyncio
    async def test_not_found(self, httpserver, client):
        httpserver.expect_request("/tftp/missing").respond_with_data(b"", status=404)
        config = resolve(httpserver.url_for("/tftp"), True)
        sink = AsyncRecordingSink()

        with pytest.raises(FileNotFound):
            await handle_async("missing", PEER, sink, config, client=client)
        assert sink.events == []

    @pytest.mark.asyncio
    async def test_origin_error(self, httpserver, client):
        httpserver.expect_request("/tftp/boom").respond_with_data(b"", status=502)
        config = resolve(httpserver.url_for("/tftp"), True)

        with pytest.raises(OriginError) as exc_info:
            await handle_async("boom", PEER, AsyncRecordingSink(), config, client=client)
        assert exc_info.value.status == 502

    @pytest.mark.asyncio
    async def test_transport_failure(self, client):
        config = resolve("http://127.0.0.1:9/tftp", True, http_timeout="2s")
        with pytest.raises(TransportFailure):
            await handle_async("f", PEER, AsyncRecordingSink(), config, client=client)

    @pytest.mark.asyncio
    async def test_sink_failure(self, httpserver, client):
        httpserver.expect_request("/tftp/big").respond_with_data(b"x" * 1000)
        config = resolve(httpserver.url_for("/tftp"), True)

        with pytest.raises(StreamFailure):
            await handle_async("big", PEER, AsyncRecordingSink(fail_after=100), config, client=client)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, httpserver, client, monkeypatch):
        from tftphttp.io import http_async

        responses = []
        original_init = http_async.AsyncHTTPFetch.__init__

        def tracking_init(self, response):
            responses.append(response)
            original_init(self, response)

        monkeypatch.setattr(http_async.AsyncHTTPFetch, "__init__", tracking_init)
        httpserver.expect_request("/tftp/slow").respond_with_data(b"x" * 1000)
        config = resolve(httpserver.url_for("/tftp"), True)
        sink = AsyncRecordingSink(block_after=100)

        task = asyncio.ensure_future(handle_async("slow", PEER, sink, config, client=client))
        while not sink.events[1:]:
            await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert sink.data == b"x" * 100
        assert len(responses) == 1
        assert responses[0].is_closed
