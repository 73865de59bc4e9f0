"""
=============================================================================
CORS MIDDLEWARE
=============================================================================

Adds Access-Control-* headers when the server runs with --cors.

=============================================================================
WHAT GETS SENT
=============================================================================

Nothing happens unless the request carries an Origin header (browsers
only send it for cross-origin requests).

    Simple request:
        GET /data.json                 Access-Control-Allow-Origin: <origin>
        Origin: http://localhost:3000

    Preflight (OPTIONS + Origin + Access-Control-Request-Method):
        OPTIONS /data.json             Access-Control-Allow-Origin: <origin>
        Origin: ...                    Access-Control-Allow-Methods: GET, HEAD,
        Access-Control-Request-Method:                       OPTIONS, POST
          POST                         Access-Control-Allow-Headers: X-Token
        Access-Control-Request-Headers: Access-Control-Max-Age: 60
          X-Token

The origin is echoed rather than "*": a local dev server has nothing to
protect, and echoing keeps credentialed requests working.

Directory listings opt out (response.cors is False), so a page from
another origin cannot enumerate the served tree.

=============================================================================
"""

from .base import Middleware, NextHandler
from ..config import ServerOptions
from ..constants import SUPPORTED_METHODS
from ..headers import parse_header_names
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


PREFLIGHT_MAX_AGE = 60


def is_preflight(request: HTTPRequest) -> bool:
    return (
        request.method == "OPTIONS"
        and request.has_header("origin")
        and request.has_header("access-control-request-method")
    )


class CORSMiddleware(Middleware):
    """
    Echoes the request Origin for cross-origin requests.

    Args:
        options: Server options; headers are only added when options.cors
                 is True.
    """

    def __init__(self, options: ServerOptions):
        self.enabled = bool(options.cors)

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        response = next(request)

        origin = request.get_header("origin")
        if not self.enabled or not response.cors or not origin:
            return response

        response.set_header("Access-Control-Allow-Origin", origin)

        if is_preflight(request):
            response.set_header("Access-Control-Allow-Methods", ", ".join(SUPPORTED_METHODS))
            allow_headers = parse_header_names(request.get_header("access-control-request-headers"))
            if allow_headers:
                response.set_header("Access-Control-Allow-Headers", ", ".join(allow_headers))
            response.set_header("Access-Control-Max-Age", str(PREFLIGHT_MAX_AGE))

        return response
