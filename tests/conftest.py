"""
pytest configuration and fixtures.
"""

import http.client
import socket
import threading
import time
from typing import Generator

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from servitsy import HTTPServer, server_options

# Smallest valid PNG: signature and IHDR are enough for sniffing
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n"
    b"\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
    b"\x00\x00\x00\nIDATx\x9cc\x00\x01\x00\x00\x05\x00\x01\r\n-\xb4"
    b"\x00\x00\x00\x00IEND\xaeB`\x82"
)


def make_tree(root: Path, files: dict) -> Path:
    """Create files from a {relative path: str or bytes} mapping."""
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """Small site with an index, a dotfile, .well-known, a page and an image."""
    return make_tree(tmp_path / "site", {
        "index.html": "hi",
        ".env": "secret",
        ".well-known/security.txt": "ok",
        "section/page.html": "p",
        "image.png": PNG_BYTES,
    })


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: HTTPServer, port: int):
        self.server = server
        self.port = port
        self._thread: threading.Thread = None

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        # Wait for server to be ready
        for _ in range(50):  # 5 seconds max
            try:
                with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                    s.connect(('127.0.0.1', self.port))
                    return
            except ConnectionRefusedError:
                time.sleep(0.1)

        raise RuntimeError("Server failed to start")

    def request(self, method: str, path: str, headers: dict = None):
        """Send one request; returns (response, body bytes)."""
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=5)
        try:
            conn.request(method, path, headers=headers or {})
            response = conn.getresponse()
            body = response.read()
            return response, body
        finally:
            conn.close()

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def start_server(free_port: int):
    """Factory: start a server for a root with extra options."""
    servers = []

    def start(root: Path, **options) -> TestServer:
        values = {"root": str(root), "host": "127.0.0.1", "ports": [free_port]}
        values.update(options)
        server = HTTPServer(server_options(values))
        test_srv = TestServer(server, free_port)
        test_srv.start()
        servers.append(test_srv)
        return test_srv

    yield start

    for test_srv in servers:
        test_srv.stop()


@pytest.fixture
def test_server(site: Path, start_server) -> Generator[TestServer, None, None]:
    """A server for the `site` fixture with default options."""
    yield start_server(site)
