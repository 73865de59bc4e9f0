"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

One accepted client socket, wrapped with buffered request reads and
streamed response writes.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

recv() returns whatever the kernel has, not one request at a time:

    Client sends:   "GET / HTTP/1.1\\r\\nHost: x\\r\\n\\r\\n"

    Server may get: recv() → "GET / HT"
                    recv() → "TP/1.1\\r\\nHost: x\\r\\n\\r\\n"

So we buffer until the header terminator (\\r\\n\\r\\n) shows up, then read
exactly Content-Length more bytes. Anything left over stays in the buffer
for the next request on the same connection (pipelining).

=============================================================================
STREAMED WRITES
=============================================================================

Static files can be large, so a response body is sent chunk by chunk:

    ┌────────────┐   head bytes   ┌──────────────┐
    │  response  │ ─────────────► │              │
    │            │   chunk 1      │    client    │
    │  (file or  │ ─────────────► │    socket    │
    │   gzip     │   chunk 2      │              │
    │   stream)  │ ─────────────► │              │
    └────────────┘      ...       └──────────────┘

The first failed write (peer gone) stops the stream; the caller then closes
the file handle and drops the connection.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
     │         │                          │                      │
     │         ▼                          ▼                      │
     └─────► CLOSING ◄──────────────── (abort) ◄─────────────────┘
                │
                ▼
              CLOSED

=============================================================================
"""

import socket
import time
import logging
import threading
from enum import Enum
from dataclasses import dataclass, field
from typing import Iterable, Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    """
    A client connection.

    Attributes:
        socket: The client socket.
        address: Client address tuple (IPv6 addresses carry 4 items).
        id: Short identifier used in log messages.
        state: Current connection state.
        requests_handled: Number of requests read on this connection.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        Returns:
            The request bytes (head and body), or None when the client closed
            the connection or a keep-alive wait timed out.

        Raises:
            TimeoutError: If the first request never arrives in time.
            ValueError: If the request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            if body_start + content_length > self.max_request_size:
                raise ValueError(f"Request too large: {body_start + content_length} bytes")

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break
                self._buffer += chunk

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.state = ConnectionState.PROCESSING
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if not self.is_closed:
                try:
                    self.socket.settimeout(self.timeout)
                except OSError:
                    pass

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""
        except OSError as e:
            # Socket shut down underneath us by abort()
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return b""
            raise e

    def _parse_content_length(self, headers: bytes) -> int:
        """Find Content-Length in raw header bytes, 0 if missing or invalid."""
        header_str = headers.decode("latin-1").lower()
        for line in header_str.split("\r\n")[1:]:
            if line.startswith("content-length:"):
                try:
                    return max(0, int(line.split(":", 1)[1].strip()))
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send bytes to the client.

        Returns:
            True if the data was sent, False if the peer is gone.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except (ConnectionResetError, BrokenPipeError, OSError) as e:
            logger.debug(f"[{self.id}] Send failed: {e}")
            return False

    def send_stream(self, head: bytes, chunks: Iterable[bytes]) -> bool:
        """
        Send the response head, then each body chunk as it is produced.

        Stops at the first failed write.

        Returns:
            True if everything was sent.
        """
        if not self.send_response(head):
            return False
        for chunk in chunks:
            if chunk and not self.send_response(chunk):
                return False
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

        shutdown(SHUT_WR) sends FIN, a short drain reads whatever the client
        still had in flight, then the descriptor is released.
        """
        with self._lock:
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return
            self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        self._release()
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def abort(self):
        """
        Terminate the connection immediately.

        Used on server shutdown: a worker blocked in recv() or sendall()
        on this socket wakes up with an error and finishes its task.
        """
        with self._lock:
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return
            self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._release()
        logger.debug(f"[{self.id}] Connection aborted")

    def _release(self):
        try:
            self.socket.close()
        except OSError:
            pass
        self.state = ConnectionState.CLOSED

    def set_keep_alive(self):
        """Mark the connection as ready for the next request."""
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
