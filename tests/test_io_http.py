"""Tests for HTTP I/O."""

import pytest
from pytest_httpserver import HTTPServer
from werkzeug import Request, Response

from tftphttp.io.base import AsyncByteSource, ByteSource
from tftphttp.io.http_async import AsyncHTTPFetch, open_fetch_async
from tftphttp.io.http_sync import HTTPFetch, open_fetch, parse_content_length


@pytest.mark.parametrize("value, expected", [
    ("1024", 1024),
    (" 0 ", 0),
    ("-1", None),
    ("abc", None),
    (None, None),
])
def test_parse_content_length(value, expected):
    assert parse_content_length(value) == expected


class TestHTTPFetch:
    """Test the blocking fetcher."""

    def setup_method(self):
        """Set up test HTTP server."""
        self.test_data = b"0123456789" * 100  # 1000 bytes
        self.server = HTTPServer(host="127.0.0.1", port=0)
        self.server.expect_request("/data").respond_with_data(self.test_data)
        self.server.expect_request("/chunked").respond_with_handler(self._handle_chunked)
        self.server.expect_request("/gone").respond_with_data(b"", status=410)
        self.server.start()
        self.base_url = f"http://127.0.0.1:{self.server.port}"

    def teardown_method(self):
        """Clean up test HTTP server."""
        self.server.stop()

    def _handle_chunked(self, request: Request) -> Response:
        """Body without Content-Length."""
        def gen():
            for _ in range(10):
                yield b"0123456789"
        return Response(gen(), status=200)

    def test_status_and_length(self):
        with open_fetch(f"{self.base_url}/data", headers={}) as fetch:
            assert isinstance(fetch, HTTPFetch)
            assert fetch.status_code == 200
            assert fetch.content_length == 1000
            assert isinstance(fetch.body, ByteSource)

    def test_read_exact_windows(self):
        with open_fetch(f"{self.base_url}/data", headers={}) as fetch:
            assert fetch.body.read(10) == b"0123456789"
            assert fetch.body.read(5) == b"01234"
            rest = fetch.body.read(10_000)
            assert len(rest) == 985
            assert fetch.body.read(10) == b""
            assert fetch.body.bytes_read == 1000

    def test_unknown_length(self):
        with open_fetch(f"{self.base_url}/chunked", headers={}) as fetch:
            assert fetch.content_length is None
            assert fetch.body.read(1000) == b"0123456789" * 10

    def test_error_status_is_not_raised(self):
        with open_fetch(f"{self.base_url}/gone", headers={}) as fetch:
            assert fetch.status_code == 410
            assert fetch.status.startswith("410")


class TestAsyncHTTPFetch:
    """Test the asynchronous fetcher."""

    def setup_method(self):
        """Set up test HTTP server."""
        self.test_data = b"abcdefghij" * 50  # 500 bytes
        self.server = HTTPServer(host="127.0.0.1", port=0)
        self.server.expect_request("/data").respond_with_data(self.test_data)
        self.server.start()
        self.base_url = f"http://127.0.0.1:{self.server.port}"

    def teardown_method(self):
        """Clean up test HTTP server."""
        self.server.stop()

    @pytest.mark.asyncio
    async def test_status_length_and_body(self):
        import httpx

        async with httpx.AsyncClient() as client:
            async with open_fetch_async(f"{self.base_url}/data", headers={}, client=client) as fetch:
                assert isinstance(fetch, AsyncHTTPFetch)
                assert isinstance(fetch.body, AsyncByteSource)
                assert fetch.status_code == 200
                assert fetch.content_length == 500
                assert await fetch.body.read(10) == b"abcdefghij"
                assert len(await fetch.body.read(1000)) == 490
                assert await fetch.body.read(1) == b""
