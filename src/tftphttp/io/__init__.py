"""I/O layer for tftp-http-proxy - HTTP fetches and the sink/source protocols."""

# Re-export these for import convenience
from .base import ByteSource, AsyncByteSource, TransferSink, AsyncTransferSink
from .http_sync import HTTPFetch, open_fetch, close_global_session
from .http_async import AsyncHTTPFetch, open_fetch_async, close_global_client
