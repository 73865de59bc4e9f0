"""
=============================================================================
MIDDLEWARE INTERFACE
=============================================================================

A middleware wraps the request handler: it may look at the request, must
call `next(request)` to get the response, and may then change it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   Request ──►  CORS  ──►  Compression  ──►  RequestHandler.process  │
    │                 │              │                      │             │
    │   Response ◄── add  ◄──── gzip body ◄──── status, headers, body     │
    │               Access-Control-*                                      │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

The pipeline wraps in reverse order, so the first middleware added is the
outermost one and sees the final response last.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# Signature of the next middleware, or of the handler at the end of the chain
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

        class ServerTiming(Middleware):
            def __call__(self, request, next):
                response = next(request)
                response.set_header("X-Served-By", "servitsy")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process a request.

        Args:
            request: The incoming request.
            next: The rest of the chain; call it to get the response.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

        pipeline = MiddlewarePipeline().use(CORSMiddleware(options),
                                            CompressionMiddleware(options))
        response = pipeline.wrap(handler.process)(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append middleware; the first added runs outermost."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain for one handler.

        [A, B] + handler  →  A(B(handler))
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(self, middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
