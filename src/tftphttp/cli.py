"""CLI implementation for tftp-http-proxy."""

import enum
import functools
import logging

import typer

from . import serve
from .core.config import (
    DEFAULT_APPEND_PATH, DEFAULT_BASE_URL, DEFAULT_BIND_ADDRESS, resolve,
)
from .core.model import InvalidConfiguration
from .io.http_sync import close_global_session
from .notify import notify_ready

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, help="Serve TFTP read requests from an HTTP server.")


class LogLevel(str, enum.Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _on_ready(bind_address: str):
    logger.info("Listening TFTP requests on: %s", bind_address)
    notify_ready()


@app.command()
def main(
    http_base_url: str = typer.Option(DEFAULT_BASE_URL, "--http-base-url",
                                      envvar="TFTP_HTTP_BASE_URL", help="HTTP base URL"),
    http_append_path: bool = typer.Option(DEFAULT_APPEND_PATH, "--http-append-path/--no-http-append-path",
                                          envvar="TFTP_HTTP_APPEND_PATH",
                                          help="Append TFTP filename to URL"),
    tftp_timeout: str = typer.Option("5s", "--tftp-timeout", envvar="TFTP_TIMEOUT",
                                     help="TFTP timeout, e.g. 5s or 500ms"),
    tftp_bind_address: str = typer.Option(DEFAULT_BIND_ADDRESS, "--tftp-bind-address",
                                          envvar="TFTP_BIND_ADDRESS", help="TFTP addr to bind to"),
    http_auth_user: str = typer.Option("", "--http-auth-user", envvar="TFTP_HTTP_AUTH_USER",
                                       help="HTTP auth user"),
    http_auth_pass: str = typer.Option("", "--http-auth-pass", envvar="TFTP_HTTP_AUTH_PASS",
                                       help="HTTP auth password"),
    http_timeout: str = typer.Option("60s", "--http-timeout", envvar="TFTP_HTTP_TIMEOUT",
                                     help="HTTP request timeout, 0 disables it"),
    log_level: LogLevel = typer.Option(LogLevel.INFO, "--log-level", envvar="TFTP_LOG_LEVEL",
                                       case_sensitive=False, help="Logging level"),
):
    """Proxy TFTP read requests to HTTP GET requests."""
    logging.basicConfig(level=log_level.value, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        config = resolve(
            http_base_url,
            http_append_path,
            timeout=tftp_timeout,
            username=http_auth_user,
            password=http_auth_pass,
            bind_address=tftp_bind_address,
            http_timeout=http_timeout,
        )
    except InvalidConfiguration as e:
        logger.critical("FATAL: %s", e)
        raise typer.Exit(code=2)

    try:
        serve(config, ready=functools.partial(_on_ready, tftp_bind_address))
    except KeyboardInterrupt:
        logger.info("Shutting down")
    except OSError as e:
        logger.critical("FATAL: tftp server: %s", e)
        raise typer.Exit(code=1)
    finally:
        close_global_session()


if __name__ == "__main__":
    app()
