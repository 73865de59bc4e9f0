"""
=============================================================================
COMMAND-LINE ARGUMENTS
=============================================================================

    servitsy [directory] [options]

Turns argv into a partial options dict for server_options(). Nothing
here exits the process: bad values and unknown flags are reported
through `on_error` so the CLI can list every problem at once.

=============================================================================
VALUE SYNTAX
=============================================================================

    ┌──────────────────────────┬────────────────────────────────────────┐
    │  Input                   │  Result                                │
    ├──────────────────────────┼────────────────────────────────────────┤
    │  -p 3000                 │  ports [3000]                          │
    │  -p 3000+                │  ports [3000 ... 3009]                 │
    │  -p 3000-3005            │  ports [3000 ... 3005]                 │
    │  --ext html,htm --ext md │  ext [".html", ".htm", ".md"]          │
    │  --no-ext --ext html     │  ext []            (negation wins)     │
    │  --header 'X-A: 1'       │  {"headers": {"X-A": "1"}}             │
    │  --header '*.js {"X-A":1}'│ {"include": ["*.js"],                 │
    │                          │   "headers": {"X-A": "1"}}             │
    └──────────────────────────┴────────────────────────────────────────┘

argparse is set up with add_help=False (-h is --host) and
allow_abbrev=False (--hos is an unknown option, not --host).

=============================================================================
"""

import argparse
import json
import re
from typing import Callable, Dict, List, Optional, Sequence

from .constants import DEFAULT_DIR_FILE, DEFAULT_EXCLUDE, DEFAULT_EXT, PORTS_CONFIG
from .headers import HeaderRule
from .logger import color
from .utils import clamp, int_range


OnError = Optional[Callable[[str], None]]

_PORT = re.compile(r"^(\d+)(\+|-\d+)?$")
_SHORT_EQUAL = re.compile(r"^-[a-z]=", re.IGNORECASE)
_SHORT_COMBO = re.compile(r"^-[a-z\d]{2,}", re.IGNORECASE)


class ArgsError(Exception):
    """argparse could not make sense of the arguments."""


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        raise ArgsError(message)


# Order is the order of the help page
CLI_OPTIONS = [
    {"names": ["--help"], "help": "Display this message"},
    {"names": ["--version"], "help": "Display current version"},
    {"names": ["-h", "--host"], "help": "Bind to a specific host", "default": "localhost + network"},
    {"names": ["-p", "--port"], "help": "Bind to a specific port or ports", "default": f"{PORTS_CONFIG['initial']}+"},
    {"names": ["--header"], "help": "Add custom HTTP header(s) to responses"},
    {"names": ["--cors"], "help": "Send CORS HTTP headers in responses"},
    {"names": ["--gzip"], "help": "Use gzip compression for text files", "default": "true"},
    {"names": ["--ext"], "help": "Extension(s) used to resolve URLs", "default": ", ".join(DEFAULT_EXT)},
    {"names": ["--dir-file"], "help": "Directory index file(s)", "default": ", ".join(DEFAULT_DIR_FILE)},
    {"names": ["--dir-list"], "help": "Allow listing directory contents", "default": "true"},
    {"names": ["--exclude"], "help": "Block access to folders and files by pattern", "default": ", ".join(DEFAULT_EXCLUDE)},
]

BOOL_OPTIONS = ("cors", "gzip", "dir-list")
LIST_OPTIONS = ("ext", "dir-file", "exclude")


def _build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog="servitsy", add_help=False, allow_abbrev=False)
    parser.add_argument("root", nargs="?")
    parser.add_argument("--help", action="store_true")
    parser.add_argument("--version", action="store_true")
    parser.add_argument("-h", "--host")
    parser.add_argument("-p", "--port", dest="port")
    parser.add_argument("--header", dest="header", action="append")
    for name in BOOL_OPTIONS:
        parser.add_argument(f"--{name}", action="store_const", const=True, default=None)
        parser.add_argument(f"--no-{name}", action="store_true")
    for name in LIST_OPTIONS:
        parser.add_argument(f"--{name}", action="append")
        parser.add_argument(f"--no-{name}", action="store_true")
    return parser


def known_option_names() -> List[str]:
    names = ["--help", "--version", "-h", "--host", "-p", "--port", "--header"]
    for name in BOOL_OPTIONS + LIST_OPTIONS:
        names += [f"--{name}", f"--no-{name}"]
    return names


class CLIArgs:
    """
    Parsed command-line arguments.

        args = CLIArgs(sys.argv[1:])
        if args.help: ...
        options = args.options(on_error)   # {"ports": [...], "cors": True, ...}
    """

    def __init__(self, argv: Sequence[str]):
        self.argv = list(argv)
        self.errors: List[str] = []
        self._parser = _build_parser()
        try:
            self._values, self._extra = self._parser.parse_known_args(clean_args(self.argv))
        except ArgsError as e:
            self.errors.append(str(e))
            self._values, self._extra = self._parser.parse_known_args([]), []

    @property
    def help(self) -> bool:
        return "--help" in self.argv

    @property
    def version(self) -> bool:
        return "--version" in self.argv

    def _get(self, name: str):
        return getattr(self._values, name.replace("-", "_"), None)

    def _negated(self, name: str) -> bool:
        return self._get(f"no-{name}") is True

    def bool(self, name: str) -> Optional[bool]:
        if self._negated(name):
            return False
        value = self._get(name)
        return value if isinstance(value, bool) else None

    def str(self, name: str) -> Optional[str]:
        value = self._get(name)
        return value.strip() if isinstance(value, str) else None

    def list(self, name: str) -> Optional[List[str]]:
        if self._negated(name):
            return []
        value = self._get(name)
        return list(value) if isinstance(value, list) else None

    def split_list(self, name: str) -> Optional[List[str]]:
        value = self.list(name)
        return split_option_value(value) if value is not None else None

    def unknown(self) -> List[str]:
        """Option-like arguments that are not known flags, in order."""
        known = known_option_names()
        result: List[str] = []
        for arg in self.argv:
            if not option_like(arg):
                continue
            name = arg[: arg.index("=")].strip() if "=" in arg else arg.strip()
            if name not in known and name not in result:
                result.append(name)
        return result

    def options(self, on_error: OnError = None) -> Dict[str, object]:
        """
        Options given on the command line, keyed by ServerOptions field.

        Absent options are left out; invalid ones are reported and left out.
        """
        def invalid(opt_name: str, value: str):
            if on_error:
                on_error(f"invalid {opt_name} value: '{value}'")

        options: Dict[str, object] = {
            "root": self._values.root,
            "host": self.str("host"),
            "cors": self.bool("cors"),
            "gzip": self.bool("gzip"),
            "dir_file": self.split_list("dir-file"),
            "dir_list": self.bool("dir-list"),
            "exclude": self.split_list("exclude"),
        }

        port = self.str("port")
        if port is not None:
            ports = parse_port(port)
            if ports is not None:
                options["ports"] = ports
            else:
                invalid("--port", port)

        rules = []
        for value in self.list("header") or []:
            if not value.strip():
                continue
            rule = parse_headers(value)
            if rule is None:
                invalid("--header", value)
            else:
                rules.append(rule)
        if rules:
            options["headers"] = rules

        ext = self.split_list("ext")
        if ext is not None:
            options["ext"] = [normalize_ext(item) for item in ext]

        if on_error:
            for message in self.errors:
                on_error(message)
            for name in self.unknown():
                on_error(f"unknown option '{name}'")

        return {key: value for key, value in options.items() if value is not None}


def clean_args(argv: Sequence[str]) -> List[str]:
    """
    Split "-p=8080" into "-p", "8080" and drop "-abc" style combos.

    There are no single-letter boolean flags, so a combo is a typo.
    """
    clean: List[str] = []
    for arg in argv:
        if arg.startswith("-") and not arg.startswith("--"):
            if _SHORT_EQUAL.match(arg):
                clean.extend(arg.split("=", 1))
                continue
            if _SHORT_COMBO.match(arg):
                continue
        clean.append(arg)
    return clean


def option_like(arg: str) -> bool:
    arg = arg.strip()
    return arg.startswith("-") and not re.search(r"\s", arg)


def normalize_ext(value: str) -> str:
    if value and not value.startswith("."):
        return f".{value}"
    return value


def parse_port(value: str) -> Optional[List[int]]:
    """
    Parse a port spec.

        parse_port("8080")       → [8080]
        parse_port("8080+")      → [8080, 8081, ..., 8089]
        parse_port("8080-8082")  → [8080, 8081, 8082]
        parse_port("http")       → None

    Ranges are capped at 100 ports. Port numbers are not range-checked
    here; that is the validator's job.
    """
    match = _PORT.match(value)
    if not match:
        return None
    start = int(match.group(1))
    end = match.group(2) or ""
    if end == "+":
        return int_range(start, start + PORTS_CONFIG["count"] - 1, PORTS_CONFIG["max_count"])
    if end.startswith("-"):
        return int_range(start, int(end[1:]), PORTS_CONFIG["max_count"])
    return [start]


def _json_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (str, int, float)):
        return str(value).strip()
    return ""


def _header_rule(include: Optional[str], headers: Dict[str, str]) -> HeaderRule:
    if include and include != "*":
        return HeaderRule(headers=headers, include=[item.strip() for item in include.split(",")])
    return HeaderRule(headers=headers)


def parse_headers(value: str) -> Optional[HeaderRule]:
    """
    Parse a --header value into a HeaderRule.

        "X-Frame-Options: DENY"
        "*.md,*.txt Content-Type: text/plain; charset=UTF-8"
        '*.wasm {"Cross-Origin-Embedder-Policy": "require-corp"}'

    Header names and values are not validated here. Returns None when
    nothing usable can be extracted.
    """
    value = value.strip()
    colon = value.find(":")
    bracket = value.find("{")

    if bracket >= 0 and colon > bracket and value.endswith("}"):
        include = value[:bracket].strip()
        try:
            data = json.loads(value[bracket:])
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        headers = {}
        for key, item in data.items():
            key = key.strip()
            text = _json_value(item)
            if key and text:
                headers[key] = text
        return _header_rule(include, headers) if headers else None

    if colon > 0:
        key = value[:colon].strip()
        text = value[colon + 1:].strip()
        if key and text:
            header = key.split()[-1]
            include = key[: len(key) - len(header)].strip() if header != key else None
            return _header_rule(include, {header: text})

    return None


def split_option_value(values: Sequence[str]) -> List[str]:
    """
    Split comma-separated values, trimming and de-duplicating.

        split_option_value(["a,b", " b , c,,"])  → ["a", "b", "c"]
    """
    result: List[str] = []
    for value in values:
        for item in value.split(","):
            item = item.strip()
            if item and item not in result:
                result.append(item)
    return result


def help_page() -> str:
    """The --help text."""
    indent = "  "
    col_gap = " " * 4

    def section(heading: str = "", lines: Sequence[str] = ()) -> str:
        parts = []
        if heading:
            parts.append(indent + color.style(heading, "bold"))
        if lines:
            parts.append("\n".join(indent * 2 + line for line in lines))
        return "\n\n".join(parts)

    def option_lines() -> List[str]:
        max_len = max(len(", ".join(opt["names"])) for opt in CLI_OPTIONS)
        first_width = clamp(max_len, 14, 20)
        lines = []
        for opt in CLI_OPTIONS:
            header = ", ".join(opt["names"]).ljust(first_width)
            first = f"{header}{col_gap}{opt['help']}"
            default = opt.get("default")
            if not default:
                lines.append(first)
                continue
            second_raw = f"(default: '{default}')"
            second = color.style(second_raw, "gray")
            if len(first) + len(second_raw) < 80:
                lines.append(f"{first} {second}")
            else:
                lines.append(first)
                lines.append(" " * (len(header) + len(col_gap)) + second)
        return lines

    prompt = color.style("$", "bold dim")
    name = color.style("servitsy", "magentaBright")
    return "\n\n".join([
        section(f"{color.style('servitsy', 'magentaBright bold')} — Local HTTP server for static files"),
        section("USAGE", [
            f"{prompt} {name} --help",
            f"{prompt} {name} {color.brackets('directory')} {color.brackets('options')}",
        ]),
        section("OPTIONS", option_lines()),
    ])
