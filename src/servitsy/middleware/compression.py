"""
=============================================================================
COMPRESSION MIDDLEWARE
=============================================================================

Gzips text responses for clients that accept it.

=============================================================================
THE GATE
=============================================================================

    options.gzip ──► is_text ──► size ≤ 50 MB ──► "gzip" in Accept-Encoding
         │              │             │                      │
         no             no            no                     no
         └──────────────┴─────────────┴──────────────────────┴──► as is

Binary files (PNG, ZIP, fonts...) are already compressed, so only files
classified as text qualify. Files over the size ceiling are streamed raw
so a huge log file does not pin a worker on CPU.

=============================================================================
WHAT CHANGES
=============================================================================

    ┌──────────────────────┬────────────────────────────────────────────┐
    │  Body                │  Result                                    │
    ├──────────────────────┼────────────────────────────────────────────┤
    │  streamed file       │  GzipStream, Content-Length removed,       │
    │                      │  Content-Encoding: gzip (sent chunked)     │
    │  error page/listing  │  same as a file: GzipStream, no length     │
    │  HEAD                │  Content-Length removed (size unknown)     │
    └──────────────────────┴────────────────────────────────────────────┘

Every compressed response gets "Vary: Accept-Encoding" so caches keep
the plain and gzipped versions apart.

=============================================================================
"""

import logging

from .base import Middleware, NextHandler
from ..config import ServerOptions
from ..constants import MAX_COMPRESS_SIZE
from ..http.request import HTTPRequest
from ..http.response import GzipStream, HTTPResponse


logger = logging.getLogger(__name__)


def accepts_gzip(request: HTTPRequest) -> bool:
    """Check for a "gzip" token in Accept-Encoding (q-values ignored)."""
    return "gzip" in request.accept_encoding


def can_compress(request: HTTPRequest, response: HTTPResponse) -> bool:
    if not response.is_text:
        return False
    if (response.stat_size or 0) > MAX_COMPRESS_SIZE:
        return False
    return accepts_gzip(request)


class CompressionMiddleware(Middleware):
    """
    Gzip text responses.

    Args:
        options: Server options; nothing is compressed when options.gzip
                 is False.
        level: zlib compression level (1 fastest, 9 smallest).
    """

    def __init__(self, options: ServerOptions, level: int = 6):
        self.enabled = bool(options.gzip)
        self.level = level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        response = next(request)

        if not self.enabled or request.method == "OPTIONS":
            return response
        if not can_compress(request, response):
            return response

        if response.stream is not None:
            response.stream = GzipStream(response.stream, level=self.level)
            response.remove_header("Content-Length")
            response.set_header("Content-Encoding", "gzip")
        elif not response.send_body:
            # HEAD: the compressed size is not known without compressing
            response.remove_header("Content-Length")
        else:
            # Generated pages are framed like files: no length, chunked
            logger.debug(f"Compressing {len(response.body)} byte page")
            response.stream = GzipStream([response.body], level=self.level)
            response.body = b""
            response.remove_header("Content-Length")
            response.set_header("Content-Encoding", "gzip")

        self._add_vary(response)
        return response

    def _add_vary(self, response: HTTPResponse):
        vary = response.get_header("Vary", "")
        if "accept-encoding" not in vary.lower():
            response.set_header("Vary", f"{vary}, Accept-Encoding".lstrip(", "))
