import socket
import threading

import pytest


@pytest.fixture
def truncating_origin():
    """HTTP origin that declares 1000 bytes, sends 10 and hangs up.

    Yields the base URL; every connection gets the same short answer.
    """
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen()
    listener.settimeout(0.2)
    stop = threading.Event()

    def serve():
        while not stop.is_set():
            try:
                conn, _ = listener.accept()
            except socket.timeout:
                continue
            with conn:
                conn.settimeout(5)
                request = b""
                while b"\r\n\r\n" not in request:
                    chunk = conn.recv(4096)
                    if not chunk:
                        break
                    request += chunk
                conn.sendall(b"HTTP/1.1 200 OK\r\nContent-Length: 1000\r\n\r\n" + b"0123456789")

    t = threading.Thread(target=serve, daemon=True)
    t.start()
    host, port = listener.getsockname()
    yield f"http://{host}:{port}/tftp"
    stop.set()
    t.join(5)
    listener.close()
