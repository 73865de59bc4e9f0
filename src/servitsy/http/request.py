"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes read by a Connection into an HTTPRequest.

=============================================================================
HTTP REQUEST FORMAT (RFC 7230)
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /docs/intro?v=2 HTTP/1.1\\r\\n            ← request line         │
    │  Host: localhost:8080\\r\\n                    ← headers              │
    │  Accept-Encoding: gzip, br\\r\\n                                      │
    │  \\r\\n                                        ← end of headers       │
    │  (body, Content-Length bytes)                                       │
    └─────────────────────────────────────────────────────────────────────┘

The request-target is kept RAW (still percent-encoded). Deciding whether
a URL path is acceptable is the request handler's job, because it needs
the encoded form to spot tricks like "%2F" or "%2E%2E".

Any uppercase token is accepted as a method. A file server answers
unknown methods with 405 and an Allow header, which it can only do if
the parser lets them through.

    ┌──────────────────────────────┬──────────────────────────────────┐
    │  Problem                     │  HTTPParseError status           │
    ├──────────────────────────────┼──────────────────────────────────┤
    │  garbled request line        │  400                             │
    │  HTTP/2.0, HTTP/0.9 ...      │  505                             │
    │  over max_request_size       │  413                             │
    └──────────────────────────────┴──────────────────────────────────┘

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Attributes:
        status_code: HTTP status to answer with.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method: Request method, uppercase.
        target: Raw request-target ("/a%20b?x=1", "*", or an absolute URL).
        version: "HTTP/1.1" or "HTTP/1.0".
        headers: Header values keyed by lowercase name; repeated headers
                 are joined with ", ".
        body: Request body bytes.
        client_address: Peer address.
    """

    method: str
    target: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple = ("", 0)

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def has_header(self, name: str) -> bool:
        return name.lower() in self.headers

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps the connection unless "Connection: close";
        HTTP/1.0 closes it unless "Connection: keep-alive".
        """
        tokens = [t.strip().lower() for t in self.headers.get("connection", "").split(",")]
        if self.version == "HTTP/1.1":
            return "close" not in tokens
        return "keep-alive" in tokens

    @property
    def accept_encoding(self) -> List[str]:
        """Content codings offered by the client, lowercase, without q-values."""
        value = self.headers.get("accept-encoding", "")
        names = (item.split(";")[0].strip().lower() for item in value.split(","))
        return [name for name in names if name]


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

    Usage:
        parser = RequestParser(max_request_size=options.max_request_size)
        request = parser.parse(data, conn.address)
    """

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:\s]+):[ \t]*(.*)$")
    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: tuple = ("", 0)) -> HTTPRequest:
        """
        Parse one complete request.

        Raises:
            HTTPParseError: If the request is malformed or unsupported.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Header bytes outside ASCII are mapped 1:1 (RFC 7230 obs-text)
        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        # Tolerate empty lines before the request line (RFC 7230 3.5)
        while lines and not lines[0]:
            lines.pop(0)
        if not lines:
            raise HTTPParseError("Empty request")

        method, target, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", "0"))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")

        return HTTPRequest(
            method=method,
            target=target,
            version=version,
            headers=headers,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()
        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)
        return method, target, version

    def _parse_headers(self, lines: List[str]) -> Dict[str, str]:
        """
        Parse "Name: value" lines.

        Names are lowercased, repeated headers are comma-joined, obsolete
        line folding is unfolded, malformed lines are skipped.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple = ("", 0),
    max_size: int = 10 * 1024 * 1024,
) -> HTTPRequest:
    """Parse a request with a one-off RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
