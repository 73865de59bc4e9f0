"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing under the file server:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ SOCKET SERVER                                                       │
    │  • walks the candidate port list until one binds                    │
    │  • runs the accept() loop in the main thread                        │
    │  • SIGINT/SIGTERM → shutdown, aborting active connections           │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ new connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ THREAD POOL                                                         │
    │  • one task per connection                                          │
    │  • bounded queue, grows up to max_workers under load                │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ worker runs the connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ CONNECTION                                                          │
    │  • buffered request reads, keep-alive                               │
    │  • streamed body writes, forced abort on shutdown                   │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import (
    HostNotFoundError,
    PortsInUseError,
    ServerBindError,
    SocketServer,
)
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "ServerBindError",
    "PortsInUseError",
    "HostNotFoundError",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
