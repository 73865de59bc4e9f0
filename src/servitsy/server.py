"""
=============================================================================
FILE SERVER
=============================================================================

The orchestrator: ties the socket layer, the worker pool, the request
handler and the middleware together.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        SERVITSY ARCHITECTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        │ (Orchestrator)  │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │  ThreadPool  │    │ FileResolver │        │
    │    │ (port loop)  │    │ (workers)    │    │ (URL → file) │        │
    │    └──────┬───────┘    └──────┬───────┘    └──────────────┘        │
    │           ▼                   ▼                                     │
    │    ┌──────────────┐    ┌─────────────────────────────────┐         │
    │    │  Connection  │    │ CORS → Compression → Handler    │         │
    │    └──────────────┘    └─────────────────────────────────┘         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
CONNECTION LOOP (one worker thread per connection)
=============================================================================

    read_request() ── None (peer closed / idle) ─────────► close
         │        └── TimeoutError ────► 408 ────────────► close
         │        └── too large ───────► 413 ────────────► close
         ▼
    parse ── HTTPParseError ──► 400 / 413 / 505 ─────────► close
         ▼
    RequestHandler + middleware ──► HTTPResponse
         ▼
    send head, stream body ──► release file ──► log line
         │
         ├── keep-alive ──► next request
         └── close ──────► close

=============================================================================
"""

import logging
import os
import socket
import sys
from typing import Optional, Tuple

from .config import ServerOptions
from .constants import HOSTS_LOCAL, HOSTS_UNSPECIFIED
from .core import Connection, SocketServer, ThreadPool
from .handler import RequestHandler
from .http import HTTPParseError, HTTPRequest, HTTPResponse, HTTPStatus, RequestParser, error_response
from .logger import color, get_console_logger
from .middleware import CompressionMiddleware, CORSMiddleware, Middleware, MiddlewarePipeline
from .resolver import FileResolver
from .utils import is_private_ipv4


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Static file server.

    Example:
        options = server_options({"root": "./public", "cors": True})
        server = HTTPServer(options)
        server.run()     # blocks until SIGINT/SIGTERM or shutdown()
    """

    def __init__(self, options: ServerOptions):
        self.options = options
        self.options.validate()

        # ─────────────────────────────────────────────────────────────────
        # CORE COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._socket_server = SocketServer(options, on_shutdown=self._on_shutdown)
        self._thread_pool = ThreadPool(
            min_workers=options.min_workers,
            max_workers=options.max_workers,
            queue_size=options.queue_size,
        )
        self._parser = RequestParser(max_request_size=options.max_request_size)

        # ─────────────────────────────────────────────────────────────────
        # FILE SERVING
        # ─────────────────────────────────────────────────────────────────

        self._resolver = FileResolver(options)
        self._middleware = MiddlewarePipeline().use(
            CORSMiddleware(options),
            CompressionMiddleware(options),
        )

        self._console = get_console_logger()
        self._running = False

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware after the built-in CORS and compression."""
        self._middleware.add(middleware)
        return self

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def bind(self) -> Tuple[str, int]:
        """
        Acquire a port from options.ports.

        Raises:
            ServerBindError: No port could be bound, or the host is unknown.
        """
        return self._socket_server.bind()

    def run(self):
        """Bind, print the header and serve until shutdown (blocking)."""
        address = self.bind()
        self._running = True
        self._thread_pool.start()

        self._console.info(header_info(self.options, address))

        try:
            self._socket_server.start(self._handle_connection)
        finally:
            self._stop()

    def shutdown(self):
        """Stop serving; run() returns soon after. Safe from any thread."""
        self._socket_server.shutdown()

    def _on_shutdown(self):
        self._running = False
        self._console.info("\nGracefully shutting down...")

    def _stop(self):
        self._running = False
        # Connections were aborted, nothing left to drain
        self._thread_pool.shutdown(wait=False)
        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def handle(self, request: HTTPRequest) -> Tuple[HTTPResponse, RequestHandler]:
        """Run a request through the middleware and the file handler."""
        handler = RequestHandler(self._resolver, self.options)
        response = self._middleware.wrap(handler.process)(request)
        return response, handler

    def _handle_connection(self, conn: Connection):
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            block=False,
        )
        if not submitted:
            logger.warning(f"[{conn.id}] Worker queue full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()
            self._socket_server.forget(conn)

    def _process_connection(self, conn: Connection):
        try:
            with conn:
                while self._running:
                    try:
                        raw_request = conn.read_request()
                    except TimeoutError:
                        self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                        break
                    except ValueError as e:
                        self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                        break
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        self._send_error(conn, e.status_code, str(e))
                        break

                    if not self._respond(conn, request):
                        break
                    conn.set_keep_alive()
        except Exception as e:
            logger.exception(f"[{conn.id}] Connection error: {e}")
        finally:
            self._socket_server.forget(conn)

    def _respond(self, conn: Connection, request: HTTPRequest) -> bool:
        """
        Send the response for one request.

        Returns:
            True if the connection can take another request.
        """
        response, handler = self.handle(request)

        keep_alive = request.is_keep_alive and not response.must_close
        if keep_alive:
            response.set_header("Connection", "keep-alive")
            response.set_header("Keep-Alive", f"timeout={int(self.options.keep_alive_timeout)}")
        else:
            response.set_header("Connection", "close")

        try:
            sent = conn.send_stream(
                response.head_bytes(self.options.server_name),
                response.iter_body(),
            )
        finally:
            response.close()
            handler.finish()

        self._console.info(handler.data().to_text())
        return sent and keep_alive

    def _send_error(self, conn: Connection, status: int, message: str):
        """Error response for failures before a request reaches the handler."""
        response = error_response(status, message)
        conn.send_response(response.to_bytes(self.options.server_name))


# =============================================================================
# STARTUP HEADER
# =============================================================================

def header_info(options: ServerOptions, address: Tuple[str, int]) -> str:
    """
    Lines printed once the server listens.

          serving  ~/projects/site
            local  http://localhost:8080
          network  http://192.168.1.20:8080
    """
    ip, port = address
    local, network = display_hosts(options.host, ip)

    rows = [("serving", display_root(options.root))]
    rows.append(("local", url_for(local, port)))
    if network:
        rows.append(("network", url_for(network, port)))

    width = max(len(label) for label, _ in rows)
    lines = []
    for label, value in rows:
        header = color.style(label.rjust(width), "bold")
        if value.startswith("http"):
            value = color.style(value, "underline")
        lines.append(f"  {header}  {value}")
    return "\n" + "\n".join(lines) + "\n"


def display_hosts(configured_host: str, address_ip: str) -> Tuple[str, Optional[str]]:
    """
    Host names worth showing for the configured and the bound address.

    Returns:
        (local, network): network is a private IPv4 address, and only
        shown for wildcard hosts.
    """
    is_wildcard = configured_host in HOSTS_UNSPECIFIED
    if not is_wildcard and configured_host not in HOSTS_LOCAL:
        return configured_host, None

    if address_ip in HOSTS_UNSPECIFIED or address_ip in HOSTS_LOCAL:
        local = "localhost"
    else:
        local = address_ip
    network = network_address() if is_wildcard else None
    return local, network


def network_address() -> Optional[str]:
    """First private IPv4 address of this machine, if any."""
    try:
        _, _, addresses = socket.gethostbyname_ex(socket.gethostname())
    except OSError as e:
        logger.debug(f"Could not list local addresses: {e}")
        return None
    return next((ip for ip in addresses if is_private_ipv4(ip)), None)


def display_root(root: str) -> str:
    """Root path with the home directory shown as "~"."""
    if sys.platform == "win32":
        return root
    home = os.path.expanduser("~")
    prefix = home.rstrip(os.sep) + os.sep
    if home and home != os.sep and root.startswith(prefix):
        return "~" + os.sep + root[len(prefix):]
    return root


def url_for(host: str, port: int) -> str:
    if ":" in host:
        host = f"[{host}]"
    return f"http://{host}:{port}"
