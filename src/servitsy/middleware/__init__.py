"""
=============================================================================
MIDDLEWARE
=============================================================================

Response post-processing that sits between the request handler and the
socket:

    ┌─────────────────┐
    │ CORSMiddleware  │ ──► Access-Control-* for requests with an Origin
    └────────┬────────┘
             ▼
    ┌─────────────────────────┐
    │ CompressionMiddleware   │ ──► gzip for text responses
    └────────┬────────────────┘
             ▼
    ┌─────────────────────────┐
    │ RequestHandler.process  │ ──► status, headers, body
    └─────────────────────────┘

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .compression import CompressionMiddleware
from .cors import CORSMiddleware

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "CORSMiddleware",
    "CompressionMiddleware",
]
