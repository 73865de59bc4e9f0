"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Bytes in, bytes out. Nothing here knows about files.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST (request.py)                                                │
    │   b"GET /docs/ HTTP/1.1\\r\\n..."  →  HTTPRequest(target="/docs/")   │
    │   • any uppercase method, HTTP/1.0 and HTTP/1.1                     │
    │   • lowercase header names, repeated headers comma-joined           │
    │   • raw (still encoded) request-target                              │
    └─────────────────────────────────────────────────────────────────────┘

    ┌─────────────────────────────────────────────────────────────────────┐
    │ RESPONSE (response.py)                                              │
    │   HTTPResponse  →  head bytes + body chunks                         │
    │   • in-memory or streamed bodies (FileStream, GzipStream)           │
    │   • chunked framing for streams of unknown length                   │
    └─────────────────────────────────────────────────────────────────────┘

    ┌─────────────────────────────────────────────────────────────────────┐
    │ STATUS CODES (status_codes.py)                                      │
    │   HTTPStatus.NOT_FOUND == 404, .phrase == "Not Found"               │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPParseError, HTTPRequest, RequestParser, parse_request
from .response import (
    FileStream,
    GzipStream,
    HTTPResponse,
    ResponseBuilder,
    error_response,
    format_http_date,
)
from .status_codes import HTTPStatus, reason_phrase

__all__ = [
    # Requests
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Responses
    "HTTPResponse",
    "ResponseBuilder",
    "FileStream",
    "GzipStream",
    "error_response",
    "format_http_date",

    # Status codes
    "HTTPStatus",
    "reason_phrase",
]
