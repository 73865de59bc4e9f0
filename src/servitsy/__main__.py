"""
=============================================================================
SERVITSY CLI ENTRY POINT
=============================================================================

    # Serve the current directory on the first free port in 8080-8089
    servitsy

    # Another directory, a fixed port
    servitsy ./public -p 3000

    # CORS, custom headers, no directory listings
    servitsy --cors --header '*.wasm {"Cross-Origin-Embedder-Policy": "require-corp"}' --no-dir-list

    # Same thing without the console script
    python -m servitsy --help

=============================================================================
EXIT CODES
=============================================================================

    0   clean shutdown (Ctrl+C, SIGTERM), --help, --version
    1   invalid options, unreadable root, no port available

=============================================================================
"""

import sys
from typing import List, Optional

from . import __version__
from .args import CLIArgs, help_page
from .config import ServerOptions
from .core import ServerBindError
from .fs_utils import check_dir_access
from .logger import error_lines, setup_logging
from .options import OptionsError, server_options
from .server import HTTPServer
from .utils import ErrorList


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI; returns the exit code."""
    args = CLIArgs(sys.argv[1:] if argv is None else argv)

    if args.help:
        print("\n" + help_page() + "\n")
        return 0
    if args.version:
        print(__version__)
        return 0

    # ─────────────────────────────────────────────────────────────────────
    # OPTIONS
    # ─────────────────────────────────────────────────────────────────────

    on_error = ErrorList()
    base = ServerOptions.from_env(on_error=on_error)
    options = server_options(args.options(on_error), on_error, base=base)
    check_dir_access(options.root, on_error)
    if not on_error:
        # Runtime knobs from the environment are only checked here
        try:
            options.validate()
        except OptionsError as e:
            for msg in e.errors:
                on_error(msg)

    if on_error:
        print(error_lines(*on_error.items), file=sys.stderr)
        print(error_lines("Try 'servitsy --help' for more information."), file=sys.stderr)
        return 1

    # ─────────────────────────────────────────────────────────────────────
    # RUN SERVER
    # ─────────────────────────────────────────────────────────────────────

    setup_logging(options.log_level)
    try:
        HTTPServer(options).run()
    except ServerBindError as e:
        print(error_lines(str(e)), file=sys.stderr)
        return 1
    except OSError as e:
        print(error_lines(str(e)), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
