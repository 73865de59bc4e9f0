"""
=============================================================================
HTTP RESPONSE
=============================================================================

Response container and serialization, including streamed file bodies.

=============================================================================
BODY KINDS
=============================================================================

    ┌──────────────────┬────────────────────────┬─────────────────────────┐
    │  Body            │  Example               │  Framing                │
    ├──────────────────┼────────────────────────┼─────────────────────────┤
    │  bytes           │  error page, listing   │  Content-Length         │
    │  FileStream      │  served file           │  Content-Length (stat)  │
    │  GzipStream      │  gzipped text file     │  chunked (HTTP/1.1)     │
    │                  │                        │  close-delimited (1.0)  │
    └──────────────────┴────────────────────────┴─────────────────────────┘

A streamed body of unknown length cannot use Content-Length. HTTP/1.1
clients get Transfer-Encoding: chunked:

    1f4\\r\\n                 ← chunk size in hex
    <500 bytes>\\r\\n
    0\\r\\n                   ← last chunk
    \\r\\n

HTTP/1.0 clients get the raw bytes and the connection is closed after
the last one (must_close is then True).

=============================================================================
HEAD AND OPTIONS
=============================================================================

send_body=False keeps every header (Content-Length included, so HEAD
reports the size a GET would send) but nothing is written after the
blank line.

=============================================================================
"""

import zlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import BinaryIO, Dict, Iterable, Iterator, Optional, Union

from .status_codes import HTTPStatus, reason_phrase


class FileStream:
    """
    Iterates over an open binary file in fixed-size chunks.

    Owns the handle: it is closed when iteration ends or on close().
    """

    def __init__(self, handle: BinaryIO, chunk_size: int = 64 * 1024):
        self.handle = handle
        self.chunk_size = chunk_size

    def __iter__(self) -> Iterator[bytes]:
        try:
            while True:
                chunk = self.handle.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.close()

    def close(self):
        if not self.handle.closed:
            self.handle.close()


class GzipStream:
    """Gzip-compresses another stream chunk by chunk."""

    def __init__(self, source: Iterable[bytes], level: int = 6):
        self.source = source
        self.level = level

    def __iter__(self) -> Iterator[bytes]:
        # wbits=31 selects the gzip container (16 + max window size)
        compressor = zlib.compressobj(self.level, zlib.DEFLATED, 31)
        try:
            for chunk in self.source:
                data = compressor.compress(chunk)
                if data:
                    yield data
            yield compressor.flush()
        finally:
            self.close()

    def close(self):
        close = getattr(self.source, "close", None)
        if close is not None:
            close()


BodyStream = Union[FileStream, GzipStream]


@dataclass
class HTTPResponse:
    """
    An HTTP response on its way to the client.

    Header names keep the case they were set with; lookups ignore case.

    Attributes:
        status: Status code.
        headers: Header names and values.
        body: In-memory body.
        stream: Streamed body; wins over `body` when set.
        version: Protocol version of the status line, taken from the request.
        send_body: False for HEAD and OPTIONS.
        is_text: The body is text (gzip candidate).
        stat_size: Size of the served file, if any.
        cors: Whether CORS headers may be added.
    """

    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    stream: Optional[BodyStream] = None
    version: str = "HTTP/1.1"
    send_body: bool = True
    is_text: bool = False
    stat_size: Optional[int] = None
    cors: bool = True

    # ─────────────────────────────────────────────────────────────────────
    # HEADERS
    # ─────────────────────────────────────────────────────────────────────

    def _find_key(self, name: str) -> Optional[str]:
        lower = name.lower()
        for key in self.headers:
            if key.lower() == lower:
                return key
        return None

    def set_header(self, name: str, value) -> "HTTPResponse":
        """Set a header, replacing any value set under another case."""
        key = self._find_key(name)
        if key is not None:
            del self.headers[key]
        self.headers[name] = str(value)
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        key = self._find_key(name)
        return self.headers[key] if key is not None else default

    def has_header(self, name: str) -> bool:
        return self._find_key(name) is not None

    def remove_header(self, name: str) -> "HTTPResponse":
        key = self._find_key(name)
        if key is not None:
            del self.headers[key]
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        self.stream = None
        return self

    # ─────────────────────────────────────────────────────────────────────
    # FRAMING
    # ─────────────────────────────────────────────────────────────────────

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {reason_phrase(int(self.status))}"

    @property
    def is_chunked(self) -> bool:
        """Streamed body of unknown length sent to an HTTP/1.1 client."""
        return (
            self.send_body
            and self.stream is not None
            and not self.has_header("Content-Length")
            and self.version == "HTTP/1.1"
        )

    @property
    def must_close(self) -> bool:
        """The end of the body is signalled by closing the connection."""
        return (
            self.send_body
            and self.stream is not None
            and not self.has_header("Content-Length")
            and self.version != "HTTP/1.1"
        )

    def head_bytes(self, server_name: str = "servitsy") -> bytes:
        """
        Serialize the status line and headers.

        Date and Server are added when missing, and Content-Length for
        in-memory bodies that are sent. A HEAD response keeps whatever
        Content-Length the handler set, or none when the size is unknown.
        """
        headers = dict(self.headers)
        if (
            self.send_body
            and self.stream is None
            and self._find_key("Content-Length") is None
            and self.status not in (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED)
        ):
            headers["Content-Length"] = str(len(self.body))
        if self.is_chunked:
            headers["Transfer-Encoding"] = "chunked"
        elif self.must_close:
            headers["Connection"] = "close"
            for key in [k for k in headers if k != "Connection" and k.lower() == "connection"]:
                del headers[key]
        if self._find_key("Date") is None:
            headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if self._find_key("Server") is None and server_name:
            headers["Server"] = server_name

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1", errors="replace")

    def iter_body(self) -> Iterator[bytes]:
        """Body bytes as they should go on the wire."""
        if not self.send_body:
            self.close()
            return
        if self.stream is None:
            if self.body:
                yield self.body
            return
        if not self.is_chunked:
            yield from self.stream
            return
        for chunk in self.stream:
            if chunk:
                yield f"{len(chunk):x}\r\n".encode("ascii") + chunk + b"\r\n"
        yield b"0\r\n\r\n"

    def to_bytes(self, server_name: str = "servitsy") -> bytes:
        """Serialize the whole response, reading any stream to the end."""
        return self.head_bytes(server_name) + b"".join(self.iter_body())

    def close(self):
        """Release the file behind a streamed body."""
        if self.stream is not None:
            self.stream.close()


class ResponseBuilder:
    """
    Fluent builder for small in-memory responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.SERVICE_UNAVAILABLE)
            .text("Server busy")
            .header("Connection", "close")
            .build())
    """

    def __init__(self, version: str = "HTTP/1.1"):
        self._status: int = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._version = version

    def status(self, status: int) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = "text/plain; charset=UTF-8"
        return self

    def html(self, html: str) -> "ResponseBuilder":
        self._body = html.encode("utf-8")
        self._headers["Content-Type"] = "text/html; charset=UTF-8"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
            version=self._version,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), always in GMT.

        Wed, 01 Jan 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def error_response(status: int, message: str = "", version: str = "HTTP/1.1") -> HTTPResponse:
    """
    Plain-text response for errors raised before a request reaches the
    handler (parse errors, timeouts, full worker queue).
    """
    text = message or f"{int(status)} {reason_phrase(int(status))}"
    return (ResponseBuilder(version)
        .status(status)
        .text(text + "\n")
        .header("Connection", "close")
        .build())
