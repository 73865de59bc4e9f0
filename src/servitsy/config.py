"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Everything the server reads at startup, in one dataclass. Built once,
never mutated while serving.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── servitsy ./public --port 3000 --cors                       │
    │                                                                      │
    │   2. Environment variables (runtime knobs only)                     │
    │      └── SERVITSY_LOG_LEVEL=DEBUG servitsy                          │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Two groups of fields live here:

    SERVING OPTIONS     what gets served and how
                        root, host, ports, headers, cors, gzip,
                        dir_list, dir_file, ext, exclude

    RUNTIME KNOBS       how the socket layer behaves
                        backlog, buffer_size, timeout, keep_alive_timeout,
                        max_request_size, min_workers, max_workers,
                        queue_size, log_level, server_name

=============================================================================
"""

import os
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .constants import (
    DEFAULT_DIR_FILE,
    DEFAULT_EXCLUDE,
    DEFAULT_EXT,
    DEFAULT_HOST,
    DEFAULT_PORTS,
)
from .headers import HeaderRule


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerOptions:
    """
    Configuration for the file server.

    Development defaults: all interfaces, first free port in 8080-8089,
    gzip on, directory listings on, dotfiles hidden.

        ServerOptions(root="/srv/site", ports=[3000], cors=True)
    """

    # ─────────────────────────────────────────────────────────────────────
    # SERVING OPTIONS
    # ─────────────────────────────────────────────────────────────────────

    root: str = field(default_factory=os.getcwd)
    """Absolute path of the directory being served."""

    host: str = DEFAULT_HOST
    """
    Address to bind to.
    - "::" - all interfaces, IPv4 and IPv6 (default)
    - "localhost" / "127.0.0.1" - this machine only
    """

    ports: List[int] = field(default_factory=lambda: list(DEFAULT_PORTS))
    """Candidate ports, tried in order until one is free."""

    headers: List[HeaderRule] = field(default_factory=list)
    """Custom header rules applied to served files."""

    cors: bool = False
    """Send Access-Control-* headers to requests with an Origin."""

    gzip: bool = True
    """Compress text responses when the client accepts gzip."""

    dir_list: bool = True
    """Render an HTML listing for directories without an index file."""

    dir_file: List[str] = field(default_factory=lambda: list(DEFAULT_DIR_FILE))
    """Index file names tried when a URL maps to a directory."""

    ext: List[str] = field(default_factory=lambda: list(DEFAULT_EXT))
    """Extensions tried when a URL maps to nothing (/about → /about.html)."""

    exclude: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    """Path segment patterns that are never served."""

    # ─────────────────────────────────────────────────────────────────────
    # RUNTIME KNOBS
    # ─────────────────────────────────────────────────────────────────────

    backlog: int = 128
    """Maximum number of queued connections in listen()."""

    buffer_size: int = 8192
    """Bytes per recv() call, and per file read when streaming."""

    timeout: Optional[float] = 30.0
    """Socket timeout in seconds for the first request on a connection."""

    keep_alive_timeout: float = 5.0
    """Idle time after which a keep-alive connection is closed."""

    max_request_size: int = 10 * 1024 * 1024
    """Maximum request size (head and body) in bytes."""

    min_workers: int = 4
    """Worker threads started with the server."""

    max_workers: int = 32
    """Upper bound for worker threads."""

    queue_size: int = 100
    """Connections waiting for a worker before new ones get a 503."""

    log_level: str = "WARNING"
    """
    Level of the diagnostic logger (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    Request lines and the startup header are always printed.
    """

    server_name: str = "servitsy"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls, on_error: Optional[Callable[[str], None]] = None, **overrides) -> "ServerOptions":
        """
        Create options with runtime knobs read from the environment.

            SERVITSY_LOG_LEVEL  logging level (default: WARNING)
            SERVITSY_WORKERS    max worker threads (default: 32)
            SERVITSY_TIMEOUT    socket timeout in seconds (default: 30)

        Keyword arguments win over environment values. A value that is not
        a number is skipped and reported to on_error.

        Raises:
            OptionsError: When a value is not a number and no on_error
                          callback is given.
        """
        errors = []
        values = {}
        log_level = os.getenv("SERVITSY_LOG_LEVEL")
        if log_level:
            values["log_level"] = log_level.strip().upper()
        for name, key, convert in (
            ("SERVITSY_WORKERS", "max_workers", int),
            ("SERVITSY_TIMEOUT", "timeout", float),
        ):
            raw = os.getenv(name)
            if not raw:
                continue
            try:
                values[key] = convert(raw.strip())
            except ValueError:
                errors.append(f"invalid {name} value: '{raw}'")

        if errors:
            if on_error is None:
                from .options import OptionsError

                raise OptionsError(errors)
            for msg in errors:
                on_error(msg)

        values.update(overrides)
        return cls(**values)

    def validate(self) -> None:
        """
        Validate every field, failing fast at startup.

        Raises:
            OptionsError: With one message per invalid value.
        """
        from .options import OptionsError, OptionsValidator
        from .utils import ErrorList

        on_error = ErrorList()
        validator = OptionsValidator(on_error)

        validator.ports(self.ports)
        validator.host(self.host)
        validator.cors(self.cors)
        validator.gzip(self.gzip)
        validator.dir_list(self.dir_list)
        validator.headers(self.headers)
        validator.dir_file(self.dir_file)
        validator.ext(self.ext)
        validator.exclude(self.exclude)

        if not os.path.isabs(self.root):
            on_error(f"root must be an absolute path: '{self.root}'")
        if self.min_workers < 1:
            on_error("min_workers must be >= 1")
        if self.max_workers < self.min_workers:
            on_error("max_workers must be >= min_workers")
        if self.buffer_size < 1024:
            on_error("buffer_size must be >= 1024")
        if self.timeout is not None and self.timeout <= 0:
            on_error("timeout must be > 0")
        if self.log_level.upper() not in LOG_LEVELS:
            on_error(f"invalid log level: '{self.log_level}'")

        if on_error:
            raise OptionsError(on_error.items)


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. ServerOptions holds the serving options and the runtime knobs
# 2. from_env() reads SERVITSY_* variables for the runtime knobs
# 3. validate() collects every problem and raises OptionsError once
#
# The CLI builds ServerOptions through options.server_options(), which
# drops invalid values instead of raising so all errors are reported.
# =============================================================================
