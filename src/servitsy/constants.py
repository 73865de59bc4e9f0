"""
=============================================================================
SHARED CONSTANTS
=============================================================================

Values used across the resolver, the request handler and the CLI.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        DEFAULT OPTIONS                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   host        ::                (all interfaces, IPv4 + IPv6)        │
    │   ports       8080 ... 8089     (next one tried when in use)         │
    │   gzip        on                (text files only)                    │
    │   cors        off                                                    │
    │   dir_list    on                                                     │
    │   dir_file    index.html                                             │
    │   ext         .html             (/about → /about.html)               │
    │   exclude     .*  !.well-known  (dotfiles hidden, except one)        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from typing import Dict, List

SUPPORTED_METHODS: List[str] = ["GET", "HEAD", "OPTIONS", "POST"]

# Text files above this size are streamed raw instead of gzipped
MAX_COMPRESS_SIZE = 50_000_000

PORTS_CONFIG: Dict[str, int] = {
    "initial": 8080,
    "count": 10,
    "max_count": 100,
}

HOSTS_LOCAL: List[str] = ["localhost", "127.0.0.1", "::1"]
HOSTS_UNSPECIFIED: List[str] = ["0.0.0.0", "::"]

DEFAULT_HOST = "::"
DEFAULT_PORTS: List[int] = list(
    range(PORTS_CONFIG["initial"], PORTS_CONFIG["initial"] + PORTS_CONFIG["count"])
)
DEFAULT_DIR_FILE: List[str] = ["index.html"]
DEFAULT_EXT: List[str] = [".html"]
DEFAULT_EXCLUDE: List[str] = [".*", "!.well-known"]

# Header names that user header rules may never set
HEADERS_BLOCKLIST: List[str] = ["content-encoding", "content-length"]
