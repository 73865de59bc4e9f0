"""
=============================================================================
REQUEST HANDLER
=============================================================================

Turns one HTTPRequest into one HTTPResponse: method check, URL
validation, file lookup, then a file, a directory listing, or an error
page. CORS and gzip are added afterwards by the middleware.

=============================================================================
DISPATCH
=============================================================================

    method not GET/HEAD/OPTIONS/POST ───────────► 405 error page
    OPTIONS * ──────────────────────────────────► 204, Allow
    bad URL path (//, %2F, %2E%2E, ...) ────────► 400 error page
            │
            ▼
    resolver.find(decoded path)
            │
            ├── 200 + file ─────────► serve file (streamed)
            ├── 200 + directory ────► listing page
            └── otherwise ──────────► error page with the resolver's status

=============================================================================
SERVING A FILE
=============================================================================

    open(rb) ── EBUSY ───────────────► 403
       │    └─ other OSError ────────► 500
       ▼
    sniff content type, fstat size
       │
       ├── OPTIONS ─► 204, Content-Length: 0       (handle closed)
       ├── HEAD ────► headers + Content-Length     (handle closed)
       └── GET/POST ► Content-Length + FileStream  (stream owns handle)

The file handle is released on every path: either here, or by the
FileStream once the body is sent or the connection drops.

=============================================================================
"""

import errno
import logging
import os
import re
import time
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Optional
from urllib.parse import unquote, urlsplit

from .config import ServerOptions
from .constants import HEADERS_BLOCKLIST, SUPPORTED_METHODS
from .content_type import TypeResult, get_content_type, type_for_file_path
from .fs_utils import FSKind, FSLocation, get_local_path, is_subpath
from .headers import HeaderRule, file_headers, header_case
from .http.request import HTTPRequest
from .http.response import FileStream, HTTPResponse
from .http.status_codes import HTTPStatus
from .logger import RequestLog
from .pages import dir_list_page, error_page
from .resolver import FileResolver
from .utils import trim_slash


logger = logging.getLogger(__name__)

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


# =============================================================================
# URL PATHS
# =============================================================================

def url_path_from_target(target: str) -> Optional[str]:
    """
    Raw (still encoded) path of a request-target.

        "/docs/a%20b?v=1"              → "/docs/a%20b"
        "http://localhost:8080/x#top"  → "/x"
        "*"                            → "*"

    Returns None when an absolute-form target cannot be parsed.
    """
    target = target.strip()
    if re.match(r"^[A-Za-z][A-Za-z\d+\-.]*://", target):
        try:
            return urlsplit(target).path or "/"
        except ValueError:
            return None
    for sep in ("?", "#"):
        index = target.find(sep)
        if index != -1:
            target = target[:index]
    return target


def _decode_segment(segment: str) -> Optional[str]:
    if _BAD_ESCAPE.search(segment):
        return None
    try:
        return unquote(segment, errors="strict")
    except UnicodeDecodeError:
        return None


def is_valid_url_path(url_path: str) -> bool:
    """
    Check a raw URL path before it is decoded and joined to the root.

    Rejects empty segments ("//"), dot segments in any encoding,
    segments hiding a slash or backslash ("%2F", "%5C"), stray "?" or
    "#", and malformed percent escapes.
    """
    if url_path == "/":
        return True
    if not url_path.startswith("/") or "//" in url_path:
        return False
    for segment in trim_slash(url_path).split("/"):
        decoded = _decode_segment(segment)
        if decoded is None:
            return False
        if decoded in (".", ".."):
            return False
        if "?" in segment or "#" in segment:
            return False
        if "/" in decoded or "\\" in decoded:
            return False
    return True


# =============================================================================
# FILE OPENING
# =============================================================================

@dataclass
class OpenedFile:
    """
    Outcome of opening a file for serving.

    Either `handle` is set (status 200), or `status` and `error` say why
    the file cannot be served.
    """
    handle: Optional[BinaryIO] = None
    content_type: Optional[TypeResult] = None
    size: Optional[int] = None
    status: int = HTTPStatus.OK
    error: Optional[str] = None


def open_file(root: str, file_path: str) -> OpenedFile:
    """Open a file inside root, classify its content and read its size."""
    if not is_subpath(root, file_path):
        return OpenedFile(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            error=f"File '{file_path}' is not contained in root: '{root}'",
        )
    try:
        handle = open(file_path, "rb")
    except OSError as e:
        # Files locked by another process (mostly Windows)
        status = HTTPStatus.FORBIDDEN if e.errno == errno.EBUSY else HTTPStatus.INTERNAL_SERVER_ERROR
        return OpenedFile(status=status, error=str(e))

    try:
        content_type = get_content_type(path=file_path, handle=handle)
        size = os.fstat(handle.fileno()).st_size
        handle.seek(0)
    except OSError as e:
        handle.close()
        return OpenedFile(status=HTTPStatus.INTERNAL_SERVER_ERROR, error=str(e))

    return OpenedFile(handle=handle, content_type=content_type, size=size)


# =============================================================================
# HANDLER
# =============================================================================

class RequestHandler:
    """
    Handles a single request.

    One instance per request; it keeps what the log line needs (status,
    resolved file, error, timing).

        handler = RequestHandler(resolver, options)
        response = pipeline.wrap(handler.process)(request)
        ... send ...
        console_log(handler.data().to_text())
    """

    def __init__(self, resolver: FileResolver, options: ServerOptions):
        self.resolver = resolver
        self.options = options
        self.root = resolver.root

        self.start = time.time()
        self.close: Optional[float] = None
        self.method = ""
        self.target = ""
        self.version = "HTTP/1.1"
        self.url_path: Optional[str] = None
        self.status: int = HTTPStatus.OK
        self.error: Optional[str] = None
        self._file: Optional[FSLocation] = None

    @property
    def file(self) -> Optional[FSLocation]:
        """The resolved entry, with symlinks followed."""
        return self._file.real if self._file is not None else None

    @property
    def local_path(self) -> Optional[str]:
        if self.file is None:
            return None
        return get_local_path(self.root, self.file.file_path)

    def process(self, request: HTTPRequest) -> HTTPResponse:
        """Build the response for a request. Never raises."""
        self.method = request.method
        self.target = request.target
        self.version = request.version
        self.url_path = url_path_from_target(request.target)
        try:
            return self._dispatch(request)
        except Exception as e:
            logger.exception(f"Error handling {self.method} {self.target}")
            self.status = HTTPStatus.INTERNAL_SERVER_ERROR
            self.error = str(e) or e.__class__.__name__
            return self._send_error_page()

    def _dispatch(self, request: HTTPRequest) -> HTTPResponse:
        if self.method not in SUPPORTED_METHODS:
            self.status = HTTPStatus.METHOD_NOT_ALLOWED
            self.error = f"HTTP method {self.method} is not supported"
            return self._send_error_page()

        if self.method == "OPTIONS" and request.target == "*":
            self.status = HTTPStatus.NO_CONTENT
            response = self._response()
            self._set_headers(response, "*")
            self._header(response, "content-length", "0")
            return response

        if self.url_path is None:
            self.status = HTTPStatus.BAD_REQUEST
            self.error = "Invalid request"
            return self._send_error_page()

        if not is_valid_url_path(self.url_path):
            self.status = HTTPStatus.BAD_REQUEST
            self.error = f"Invalid URL path: '{self.url_path}'"
            return self._send_error_page()

        result = self.resolver.find(unquote(self.url_path))
        self._file = result.file
        self.status = result.status

        if self.status == HTTPStatus.OK and self.file is not None:
            if self.file.kind == FSKind.FILE:
                return self._send_file(self.file.file_path)
            if self.file.kind == FSKind.DIR and self.options.dir_list:
                return self._send_list_page(self.file.file_path)

        return self._send_error_page()

    # ─────────────────────────────────────────────────────────────────────
    # RESPONSES
    # ─────────────────────────────────────────────────────────────────────

    def _send_file(self, file_path: str) -> HTTPResponse:
        opened = open_file(self.root, file_path)
        if opened.handle is None:
            self.status = opened.status
            self.error = opened.error
            return self._send_error_page()

        if self.method == "OPTIONS":
            self.status = HTTPStatus.NO_CONTENT
        response = self._response()
        self._set_headers(response, file_path, content_type=str(opened.content_type))
        response.is_text = opened.content_type.is_text
        response.stat_size = opened.size

        if self.method == "OPTIONS":
            opened.handle.close()
            self._header(response, "content-length", "0")
            return response

        self._header(response, "content-length", str(opened.size))
        if self.method == "HEAD":
            opened.handle.close()
        else:
            response.stream = FileStream(opened.handle, chunk_size=max(self.options.buffer_size, 64 * 1024))
        return response

    def _send_list_page(self, dir_path: str) -> HTTPResponse:
        if self.method == "OPTIONS":
            self.status = HTTPStatus.NO_CONTENT
        response = self._response()
        self._set_headers(response, "index.html", cors=False, rules=[])

        if self.method == "OPTIONS":
            self._header(response, "content-length", "0")
            return response

        body = dir_list_page(
            root=self.root,
            url_path=self.url_path or "",
            file_path=dir_path,
            items=self.resolver.index(dir_path),
            ext=self.options.ext,
        )
        return self._with_body(response, body)

    def _send_error_page(self) -> HTTPResponse:
        response = self._response()
        self._set_headers(response, "error.html", rules=[])

        if self.method == "OPTIONS":
            self._header(response, "content-length", "0")
            return response

        body = error_page(self.status, self.url_path if self.url_path is not None else self.target)
        return self._with_body(response, body)

    def _response(self) -> HTTPResponse:
        return HTTPResponse(
            status=self.status,
            version=self.version,
            send_body=self.method not in ("HEAD", "OPTIONS"),
        )

    def _with_body(self, response: HTTPResponse, body: str) -> HTTPResponse:
        response.set_body(body)
        response.is_text = True
        self._header(response, "content-length", str(len(response.body)))
        return response

    # ─────────────────────────────────────────────────────────────────────
    # HEADERS
    # ─────────────────────────────────────────────────────────────────────

    def _header(self, response: HTTPResponse, name: str, value: str):
        response.set_header(header_case(name), value)

    def _set_headers(
        self,
        response: HTTPResponse,
        file_path: str,
        content_type: Optional[str] = None,
        cors: bool = True,
        rules: Optional[Iterable[HeaderRule]] = None,
    ):
        """
        Set every header except Content-Length and the ones the
        middleware owns (CORS values, Content-Encoding, Vary).
        """
        is_options = self.method == "OPTIONS"
        if is_options or self.status == HTTPStatus.METHOD_NOT_ALLOWED:
            self._header(response, "allow", ", ".join(SUPPORTED_METHODS))

        if not is_options:
            if content_type is None:
                content_type = str(type_for_file_path(file_path))
            self._header(response, "content-type", content_type)

        response.cors = cors

        rules = self.options.headers if rules is None else list(rules)
        local_path = get_local_path(self.root, file_path)
        if local_path is not None and rules:
            # User headers keep their case
            for name, value in file_headers(local_path, rules, HEADERS_BLOCKLIST):
                response.set_header(name, value)

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    def finish(self):
        """Mark the response as fully sent (or abandoned)."""
        if self.close is None:
            self.close = time.time()

    def data(self) -> RequestLog:
        """Summary of the request for the console log line."""
        return RequestLog(
            status=int(self.status),
            method=self.method,
            url_path=self.url_path if self.url_path is not None else self.target,
            local_path=self.local_path,
            start=self.start,
            close=self.close,
            error=self.error,
        )
