"""
Unit tests for port acquisition and shutdown.
"""

import socket
import threading

import pytest

from servitsy.config import ServerOptions
from servitsy.core.socket_server import (
    HostNotFoundError,
    PortsInUseError,
    SocketServer,
)


@pytest.fixture
def occupied_port():
    """A port held by a listening socket for the duration of the test."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock.getsockname()[1]
    sock.close()


def make_server(ports, host="127.0.0.1") -> SocketServer:
    return SocketServer(ServerOptions(host=host, ports=list(ports)))


class TestBind:
    """Tests for SocketServer.bind()."""

    def test_bind_first_port(self, free_port: int):
        """Test that the first free candidate is used."""
        server = make_server([free_port])
        try:
            assert server.bind() == ("127.0.0.1", free_port)
            assert server.address == ("127.0.0.1", free_port)
        finally:
            server.close()

    def test_fallback(self, occupied_port: int, free_port: int):
        """Test that an occupied port is skipped."""
        server = make_server([occupied_port, free_port])
        try:
            assert server.bind()[1] == free_port
        finally:
            server.close()

    def test_bind_twice(self, free_port: int):
        """Test that a second bind() returns the same address."""
        server = make_server([free_port])
        try:
            assert server.bind() == server.bind()
        finally:
            server.close()

    def test_all_ports_in_use(self, occupied_port: int):
        """Test the error when no candidate is free."""
        server = make_server([occupied_port, occupied_port])
        with pytest.raises(PortsInUseError) as exc_info:
            server.bind()
        assert str(exc_info.value) == f"port already in use: {occupied_port}"
        assert exc_info.value.ports == [occupied_port]

    def test_ports_in_use_message(self):
        """Test singular and plural messages."""
        assert str(PortsInUseError([8080])) == "port already in use: 8080"
        assert str(PortsInUseError([8080, 8081])) == "ports already in use: 8080, 8081"

    def test_host_not_found(self):
        """Test an unresolvable host."""
        server = make_server([8080], host="host.that.does.not.exist.invalid")
        with pytest.raises(HostNotFoundError) as exc_info:
            server.bind()
        assert str(exc_info.value) == "host not found: 'host.that.does.not.exist.invalid'"


class TestShutdown:
    """Tests for the accept loop and shutdown()."""

    def test_shutdown_stops_accept_loop(self, free_port: int):
        """Test that start() returns after shutdown() and calls the hook once."""
        calls = []
        server = SocketServer(
            ServerOptions(host="127.0.0.1", ports=[free_port]),
            on_shutdown=lambda: calls.append(1),
        )
        connections = []
        accepted = threading.Event()

        def handle(conn):
            connections.append(conn)
            accepted.set()

        server.bind()
        thread = threading.Thread(target=server.start, args=(handle,), daemon=True)
        thread.start()

        client = socket.create_connection(("127.0.0.1", free_port), timeout=5)
        try:
            assert accepted.wait(5)
            assert server.active_connections == 1

            server.shutdown()
            server.shutdown()
            thread.join(5)

            assert not thread.is_alive()
            assert calls == [1]
            assert server.wait_for_shutdown(0) is True
            assert server.active_connections == 0
        finally:
            client.close()

    def test_forget(self, free_port: int):
        """Test that finished connections are no longer tracked."""
        server = make_server([free_port])
        accepted = threading.Event()

        def handle(conn):
            server.forget(conn)
            conn.close()
            accepted.set()

        server.bind()
        thread = threading.Thread(target=server.start, args=(handle,), daemon=True)
        thread.start()
        client = socket.create_connection(("127.0.0.1", free_port), timeout=5)
        try:
            assert accepted.wait(5)
            assert server.active_connections == 0
        finally:
            client.close()
            server.shutdown()
            thread.join(5)
