"""
=============================================================================
LISTENING SOCKET AND PORT ACQUISITION
=============================================================================

This module owns the listening socket: it finds a port to bind, accepts
connections, and shuts everything down on SIGINT/SIGTERM.

=============================================================================
PORT ACQUISITION LOOP
=============================================================================

A dev server should "just start", even when 8080 is taken by another
project. So instead of one port we get an ordered list of candidates:

    ports = [8080, 8081, 8082, ... 8089]

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         bind() state machine                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   getaddrinfo(host) ──── gaierror ────► HostNotFoundError           │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─► next port ──── none left ───────► PortsInUseError             │
    │   │     │                                "ports already in use:     │
    │   │     ▼                                 8080, 8081, ..."          │
    │   │   socket() + bind()                                              │
    │   │     │                                                            │
    │   │     ├── EADDRINUSE ── close socket ──┐                           │
    │   │     │                                │                           │
    │   └─────┼────────────────────────────────┘                           │
    │         │                                                            │
    │         ├── any other OSError ──────────► raised as is               │
    │         │                                                            │
    │         ▼                                                            │
    │      listen()  → bound, announce address                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

SO_REUSEADDR is set (outside Windows) so a restarted server can bind while
old sockets sit in TIME_WAIT. SO_REUSEPORT is NOT set: it would let two
servers share a port, and the EADDRINUSE we rely on would never happen.

=============================================================================
DUAL-STACK BINDING
=============================================================================

The default host is "::", the IPv6 unspecified address. With IPV6_V6ONLY
turned off, that one socket also accepts IPv4 clients (as ::ffff:a.b.c.d),
so http://localhost:8080 works whichever address family the browser picks.

=============================================================================
SHUTDOWN
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (kill, docker stop) both call shutdown():

    shutdown()                 (idempotent, concurrent calls coalesce)
        ├── stop the accept loop
        ├── abort every active connection (workers wake up and exit)
        └── set the shutdown event

Active requests are NOT drained: a static file server has nothing to
lose by cutting a download short.

=============================================================================
"""

import errno
import os
import socket
import signal
import logging
import threading
from typing import Callable, List, Optional, Set, Tuple

from ..config import ServerOptions
from .connection import Connection


logger = logging.getLogger(__name__)


class ServerBindError(Exception):
    """Raised when the server cannot start listening."""


class PortsInUseError(ServerBindError):
    """Every candidate port was already in use."""

    def __init__(self, ports: List[int]):
        self.ports = list(ports)
        label = "ports" if len(self.ports) > 1 else "port"
        super().__init__(f"{label} already in use: {', '.join(str(p) for p in self.ports)}")


class HostNotFoundError(ServerBindError):
    """The configured host name could not be resolved."""

    def __init__(self, host: str):
        self.host = host
        super().__init__(f"host not found: '{host}'")


class SocketServer:
    """
    TCP listener with port fallback and signal-driven shutdown.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(options)
        server.bind()                       # raises ServerBindError
        server.start(handle_connection)     # blocks until shutdown
    """

    def __init__(
        self,
        options: ServerOptions,
        on_shutdown: Optional[Callable[[], None]] = None,
    ):
        self.options = options
        self._on_shutdown = on_shutdown

        self._socket: Optional[socket.socket] = None
        self._address: Optional[Tuple[str, int]] = None

        self._running = False
        self._shutting_down = False
        self._shutdown_event = threading.Event()
        self._lock = threading.Lock()

        self._connections: Set[Connection] = set()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """The (ip, port) actually bound, or None before bind()."""
        return self._address

    @property
    def active_connections(self) -> int:
        with self._lock:
            return len(self._connections)

    # =========================================================================
    # BINDING
    # =========================================================================

    def _resolve_host(self) -> Tuple[int, tuple]:
        """Resolve the configured host to an address family and sockaddr."""
        host = self.options.host
        try:
            infos = socket.getaddrinfo(
                host, 0, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
            )
        except socket.gaierror as e:
            logger.debug(f"Could not resolve {host!r}: {e}")
            raise HostNotFoundError(host) from e
        family, _, _, _, sockaddr = infos[0]
        return family, sockaddr

    def _create_socket(self, family: int) -> socket.socket:
        sock = socket.socket(family, socket.SOCK_STREAM)

        if os.name != "nt":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        if family == socket.AF_INET6 and hasattr(socket, "IPV6_V6ONLY"):
            try:
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
            except OSError:
                pass

        # accept() wakes up every second to check the running flag
        sock.settimeout(1.0)
        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Bind the first available port from options.ports and start listening.

        Returns:
            The bound (ip, port) address.

        Raises:
            HostNotFoundError: The host does not resolve.
            PortsInUseError: Every candidate port is in use.
            OSError: Any other bind failure (e.g. permission denied).
        """
        if self._socket is not None:
            return self._address

        family, sockaddr = self._resolve_host()
        ports = list(dict.fromkeys(self.options.ports))

        for port in ports:
            sock = self._create_socket(family)
            try:
                sock.bind((sockaddr[0], port) + tuple(sockaddr[2:]))
                sock.listen(self.options.backlog)
            except OSError as e:
                sock.close()
                if e.errno == errno.EADDRINUSE:
                    logger.debug(f"Port {port} in use, trying the next one")
                    continue
                logger.error(f"Failed to bind to {self.options.host}:{port}: {e}")
                raise

            bound = sock.getsockname()
            self._socket = sock
            self._address = (bound[0], bound[1])
            logger.info(f"Server listening on {bound[0]}:{bound[1]}")
            return self._address

        raise PortsInUseError(ports)

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _setup_signals(self):
        """Install SIGINT/SIGTERM (and SIGBREAK on Windows) handlers."""
        # signal.signal() only works in the main thread
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        signals = [signal.SIGINT, signal.SIGTERM]
        if hasattr(signal, "SIGBREAK"):
            signals.append(signal.SIGBREAK)
        for sig in signals:
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # ACCEPT LOOP
    # =========================================================================

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until shutdown() is called.

        Binds first if bind() was not called yet.
        """
        self.bind()

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.options.buffer_size,
                timeout=self.options.timeout,
                keep_alive_timeout=self.options.keep_alive_timeout,
                max_request_size=self.options.max_request_size,
            )
            with self._lock:
                if self._shutting_down:
                    conn.abort()
                    break
                self._connections.add(conn)

            connection_handler(conn)

    def forget(self, conn: Connection):
        """Stop tracking a connection once its handler is done with it."""
        with self._lock:
            self._connections.discard(conn)

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def shutdown(self):
        """
        Stop accepting and abort all active connections.

        Safe to call more than once and from any thread.
        """
        with self._lock:
            if self._shutting_down:
                return
            self._shutting_down = True
            connections = list(self._connections)
            self._connections.clear()

        if self._on_shutdown:
            self._on_shutdown()

        self._running = False
        for conn in connections:
            conn.abort()
        logger.info(f"Aborted {len(connections)} active connection(s)")
        self._shutdown_event.set()

    def _cleanup(self):
        self._restore_signals()
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
        logger.info("Socket server stopped")

    def close(self):
        """Release the listening socket without running the accept loop."""
        self._running = False
        self._cleanup()

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for shutdown() to be called.

        Returns:
            True if shutdown happened, False on timeout.
        """
        return self._shutdown_event.wait(timeout)
