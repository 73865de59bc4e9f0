"""
=============================================================================
SERVITSY - Small Local HTTP Server for Static Files
=============================================================================

Serves a directory over HTTP for local development, from raw sockets up.

    $ servitsy ./public --port 3000 --cors

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        WHAT IT DOES                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. PORT ACQUISITION                                               │
    │      - first free port out of a candidate list (8080-8089)          │
    │                                                                      │
    │   2. URL → FILE RESOLUTION                                          │
    │      - index files (/docs/ → /docs/index.html)                      │
    │      - clean URLs (/about → /about.html)                            │
    │      - exclude patterns (dotfiles hidden, .well-known allowed)      │
    │      - symlinks followed only when they stay in the root            │
    │                                                                      │
    │   3. RESPONSES                                                      │
    │      - content type from name and first bytes                       │
    │      - gzip for text, CORS on request, custom header rules          │
    │      - directory listings and error pages                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    servitsy/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (servitsy / python -m servitsy)
    ├── server.py            # HTTPServer orchestrator
    ├── config.py            # ServerOptions dataclass
    ├── options.py           # option validation
    ├── args.py              # command-line parsing
    ├── resolver.py          # URL path → file system entry
    ├── handler.py           # request → response
    ├── pages.py             # error and directory listing pages
    ├── core/                # sockets, connections, worker threads
    ├── http/                # request parsing, response framing
    └── middleware/          # CORS, gzip

=============================================================================
"""

from importlib import metadata

from .config import ServerOptions
from .core import HostNotFoundError, PortsInUseError, ServerBindError
from .options import OptionsError, server_options
from .server import HTTPServer

try:
    __version__ = metadata.version("servitsy")
except metadata.PackageNotFoundError:
    # Running from a source checkout that was never installed
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "HTTPServer",
    "ServerOptions",
    "server_options",
    "OptionsError",
    "ServerBindError",
    "PortsInUseError",
    "HostNotFoundError",
]
