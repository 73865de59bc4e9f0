"""
=============================================================================
CONSOLE OUTPUT AND LOGGING
=============================================================================

Two separate channels:

    ┌──────────────────────┬──────────────────────────────────────────────┐
    │  Logger              │  Used for                                    │
    ├──────────────────────┼──────────────────────────────────────────────┤
    │  servitsy.console    │  startup header, one line per request        │
    │                      │  plain "%(message)s" on stdout, always shown │
    │  servitsy.<module>   │  diagnostics (bind attempts, socket errors)  │
    │                      │  root handler, level from --log-level/env    │
    └──────────────────────┴──────────────────────────────────────────────┘

=============================================================================
REQUEST LINE
=============================================================================

    14:02:07 200 — GET /docs[/index.html] (3ms)
    ──────── ─── ─ ─── ───── ──────────── ─────
       │      │  │  │    │        │         └── duration, dim
       │      │  │  │    │        └── part of the file path the URL
       │      │  │  │    │            did not spell out, gray
       │      │  │  │    └── URL path, cyan
       │      │  │  └── method, cyan
       │      │  └── separator, dim
       │      └── status, green for 2xx, red otherwise
       └── local time of the request start, dim

    14:02:09 404 — GET /missing (1ms)
    <error message, red, only for non-2xx>

=============================================================================
"""

import logging
import math
import os
import platform
import re
import sys
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .utils import fwd_slash, trim_slash


CONSOLE_LOGGER = "servitsy.console"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# ANSI SGR (open, close) codes
STYLES = {
    "bold": (1, 22),
    "dim": (2, 22),
    "underline": (4, 24),
    "red": (31, 39),
    "green": (32, 39),
    "cyan": (36, 39),
    "gray": (90, 39),
    "magentaBright": (95, 39),
}


# =============================================================================
# COLORS
# =============================================================================

class ColorUtils:
    """
    Wraps text in ANSI color codes, or passes it through when disabled.

        c = ColorUtils(True)
        c.style("404", "red")                    → "\\x1b[31m404\\x1b[39m"
        c.style("title", "bold underline")
        c.sequence(["[", "x", "]"], "dim,,dim")  → dim brackets, plain x
    """

    def __init__(self, enabled: Optional[bool] = None):
        self.enabled = enabled if isinstance(enabled, bool) else True

    def style(self, text: str, fmt: str = "") -> str:
        if not self.enabled:
            return text
        return style_text(fmt.split(), text)

    def sequence(self, parts: Sequence[str], fmt: str = "") -> str:
        """Style each part with the matching comma-separated format."""
        if not fmt or not self.enabled:
            return "".join(parts)
        formats = fmt.split(",")
        return "".join(
            self.style(part, formats[i]) if i < len(formats) and formats[i] else part
            for i, part in enumerate(parts)
        )

    def brackets(self, text: str, fmt: str = "dim,,dim", chars: Tuple[str, str] = ("[", "]")) -> str:
        return self.sequence([chars[0], text, chars[1]], fmt)


def style_text(formats: Sequence[str], text: str) -> str:
    """Apply named styles; unknown names are ignored."""
    before = ""
    after = ""
    for name in formats:
        codes = STYLES.get(name.strip())
        if codes is None:
            continue
        before = f"{before}\x1b[{codes[0]}m"
        after = f"\x1b[{codes[1]}m{after}"
    return f"{before}{text}{after}"


def supports_color() -> bool:
    """
    Guess whether the terminal renders ANSI colors.

    NO_COLOR disables colors unless FORCE_COLOR is "true" or a digit.
    """
    if os.environ.get("NO_COLOR"):
        force = os.environ.get("FORCE_COLOR", "")
        return force == "true" or bool(re.match(r"^\d$", force))

    # Windows 10 build 10586 is the first with 256-color support
    if sys.platform == "win32":
        parts = platform.version().split(".")
        try:
            major, build = int(parts[0]), int(parts[2])
        except (IndexError, ValueError):
            return False
        return major >= 10 and build >= 10_586

    term = os.environ.get("TERM", "")
    colorterm = os.environ.get("COLORTERM", "")
    return colorterm == "truecolor" or term in ("xterm-256color", "xterm-16color", "xterm-color")


color = ColorUtils(supports_color())


# =============================================================================
# REQUEST LOG LINE
# =============================================================================

@dataclass
class RequestLog:
    """
    What the console line needs to know about a finished request.

    Attributes:
        status: Response status.
        method: Request method.
        url_path: Raw URL path (or the request-target when there is none).
        local_path: Served file relative to the root, if any.
        start: Request start, epoch seconds.
        close: Response end, epoch seconds.
        error: Error message for non-2xx responses.
    """
    status: int
    method: str
    url_path: str
    local_path: Optional[str] = None
    start: Optional[float] = None
    close: Optional[float] = None
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300

    @property
    def duration_ms(self) -> Optional[int]:
        if self.start is None or self.close is None:
            return None
        return math.ceil((self.close - self.start) * 1000)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "method": self.method,
            "url_path": self.url_path,
            "local_path": self.local_path,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }

    def to_text(self, colors: Optional[ColorUtils] = None) -> str:
        c = colors or color

        timestamp = time.strftime("%H:%M:%S", time.localtime(self.start)) if self.start else None
        duration = self.duration_ms

        display_path = c.style(self.url_path, "cyan")
        if self.is_success and self.local_path is not None:
            url_path = self.url_path
            base_path = trim_slash(url_path, start=False, end=True) if len(url_path) > 1 else url_path
            suffix = path_suffix(base_path, "/" + fwd_slash(self.local_path))
            if suffix:
                display_path = c.style(base_path, "cyan") + c.brackets(suffix, "dim,gray,dim")
                if len(url_path) > 1 and url_path.endswith("/"):
                    display_path += c.style("/", "cyan")

        parts = [
            timestamp and c.style(timestamp, "dim"),
            c.style(str(self.status), "green" if self.is_success else "red"),
            c.style("—", "dim"),
            c.style(self.method, "cyan"),
            display_path,
            duration is not None and c.style(f"({duration}ms)", "dim"),
        ]
        line = " ".join(part for part in parts if isinstance(part, str) and part)

        if not self.is_success and self.error:
            return f"{line}\n{c.style(str(self.error), 'red')}"
        return line


def path_suffix(base_path: str, full_path: str) -> Optional[str]:
    """
    What full_path adds to base_path, or None if it does not extend it.

        path_suffix("/docs", "/docs/index.html")  → "/index.html"
    """
    if base_path == full_path:
        return ""
    if full_path.startswith(base_path):
        return full_path[len(base_path):]
    return None


# =============================================================================
# SETUP
# =============================================================================

def get_console_logger() -> logging.Logger:
    """
    Logger for user-facing output: plain messages on stdout.

    Configured once; never propagates to the root logger.
    """
    console = logging.getLogger(CONSOLE_LOGGER)
    if not console.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        console.addHandler(handler)
        console.setLevel(logging.INFO)
        console.propagate = False
    return console


def setup_logging(log_level: str = "WARNING"):
    """Configure diagnostic logging for the servitsy package."""
    level = getattr(logging, log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    logging.getLogger("servitsy").setLevel(level)
    get_console_logger()


def error_lines(*errors: str) -> str:
    """CLI error messages, one "servitsy: ..." line each."""
    return "\n".join(f"servitsy: {error}" for error in errors)
