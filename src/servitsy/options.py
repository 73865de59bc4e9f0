"""
Option validation.

Every user-facing option goes through OptionsValidator before the server
starts. Invalid values are reported through an `on_error` callback and
dropped, so one run reports every problem at once:

    servitsy: invalid port number: '99999'
    servitsy: invalid ext value: 'htm l'
    servitsy: Try 'servitsy --help' for more information.
"""

import dataclasses
import json
import math
import os
import re
from typing import Any, Callable, List, Optional

from .config import ServerOptions
from .constants import PORTS_CONFIG
from .headers import HeaderRule


OnError = Optional[Callable[[str], None]]

_EXT = re.compile(r"^\.[\w\-]+(\.[\w\-]+){0,4}$")
_HEADER_NAME = re.compile(r"^[a-z\d\-_]+$", re.IGNORECASE)
_DOMAIN_LIKE = re.compile(r"^([a-z\d\-]+)(\.[a-z\d\-]+)*$", re.IGNORECASE)
_IP_LIKE = re.compile(r"^([\d\.]+|[a-f\d\:]+)$", re.IGNORECASE)
_PATTERN_FORBIDDEN = re.compile(r"[\\/:]")


class OptionsError(Exception):
    """One or more option values are invalid."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        lines = "\n".join(f"    {msg}" for msg in self.errors)
        super().__init__(f"Invalid option(s):\n{lines}")


class OptionsValidator:
    """
    Checks option values one by one.

    Each method returns the accepted value, or None when the input is
    absent or invalid (the default is then kept).
    """

    def __init__(self, on_error: OnError = None):
        self.on_error = on_error

    def _error(self, msg: str):
        if self.on_error:
            self.on_error(msg)

    def _bool(self, name: str, value: Any) -> Optional[bool]:
        if value is None:
            return None
        if isinstance(value, bool):
            return value
        self._error(f"invalid {name} value: '{value}'")
        return None

    def _list(self, value: Any, check: Callable[[Any], bool]) -> Optional[list]:
        if not isinstance(value, (list, tuple)):
            return None
        if len(value) == 0:
            return []
        accepted = [item for item in value if check(item)]
        return accepted or None

    def _pattern_check(self, label: str) -> Callable[[Any], bool]:
        def check(item: Any) -> bool:
            ok = is_valid_pattern(item)
            if not ok:
                self._error(f"invalid {label}: '{item}'")
            return ok
        return check

    def cors(self, value: Any = None) -> Optional[bool]:
        return self._bool("cors", value)

    def gzip(self, value: Any = None) -> Optional[bool]:
        return self._bool("gzip", value)

    def dir_list(self, value: Any = None) -> Optional[bool]:
        return self._bool("dir_list", value)

    def dir_file(self, value: Any = None) -> Optional[List[str]]:
        return self._list(value, self._pattern_check("dir_file value"))

    def exclude(self, value: Any = None) -> Optional[List[str]]:
        return self._list(value, self._pattern_check("exclude pattern"))

    def ext(self, value: Any = None) -> Optional[List[str]]:
        def check(item: Any) -> bool:
            ok = is_valid_ext(item)
            if not ok:
                self._error(f"invalid ext value: '{item}'")
            return ok
        return self._list(value, check)

    def headers(self, value: Any = None) -> Optional[List[HeaderRule]]:
        def check(rule: Any) -> bool:
            ok = is_valid_header_rule(rule)
            if not ok:
                data = rule.to_dict() if isinstance(rule, HeaderRule) else rule
                self._error(f"invalid header value: {json.dumps(data, default=str)}")
            return ok
        return self._list(value, check)

    def host(self, value: Any = None) -> Optional[str]:
        if not isinstance(value, str):
            return None
        if is_valid_host(value):
            return value
        self._error(f"invalid host value: '{value}'")
        return None

    def ports(self, value: Any = None) -> Optional[List[int]]:
        if not isinstance(value, (list, tuple)) or len(value) == 0:
            return None
        ports = list(value)[: PORTS_CONFIG["max_count"]]
        for port in ports:
            if not is_valid_port(port):
                self._error(f"invalid port number: '{port}'")
                return None
        return ports

    def root(self, value: Any = None) -> str:
        path = value if isinstance(value, str) else ""
        return path if os.path.isabs(path) else os.path.abspath(path)


def is_valid_ext(value: Any) -> bool:
    return isinstance(value, str) and bool(_EXT.match(value))


def is_valid_header(name: Any) -> bool:
    return isinstance(name, str) and bool(_HEADER_NAME.match(name))


def is_valid_header_value(value: Any) -> bool:
    if isinstance(value, (str, bool)):
        return True
    return isinstance(value, (int, float)) and math.isfinite(value)


def is_valid_header_rule(rule: Any) -> bool:
    if not isinstance(rule, HeaderRule):
        return False
    if rule.include is not None:
        if not isinstance(rule.include, list) or not all(isinstance(p, str) for p in rule.include):
            return False
    if not isinstance(rule.headers, dict) or not rule.headers:
        return False
    return all(
        is_valid_header(name) and is_valid_header_value(value)
        for name, value in rule.headers.items()
    )


def is_valid_host(value: Any) -> bool:
    """
    Loose check that a host looks like a domain name or an IP address.

    Catches obvious typos; the real check is getaddrinfo() at bind time.
    """
    if not isinstance(value, str) or not value:
        return False
    return bool(_DOMAIN_LIKE.match(value) or _IP_LIKE.match(value))


def is_valid_pattern(value: Any) -> bool:
    return isinstance(value, str) and len(value) > 0 and not _PATTERN_FORBIDDEN.search(value)


def is_valid_port(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 65_535


def server_options(
    options: dict,
    on_error: OnError = None,
    base: Optional[ServerOptions] = None,
) -> ServerOptions:
    """
    Build ServerOptions from user input, keeping defaults for anything
    absent or invalid.

    Args:
        options: Partial options keyed by ServerOptions field names.
        on_error: Receives one message per invalid value.
        base: Options providing defaults and runtime knobs
              (ServerOptions.from_env() in the CLI).
    """
    validator = OptionsValidator(on_error)

    checked = {
        "ports": validator.ports(options.get("ports")),
        "gzip": validator.gzip(options.get("gzip")),
        "host": validator.host(options.get("host")),
        "cors": validator.cors(options.get("cors")),
        "headers": validator.headers(options.get("headers")),
        "dir_file": validator.dir_file(options.get("dir_file")),
        "dir_list": validator.dir_list(options.get("dir_list")),
        "ext": validator.ext(options.get("ext")),
        "exclude": validator.exclude(options.get("exclude")),
    }
    values = {key: value for key, value in checked.items() if value is not None}
    values["root"] = validator.root(options.get("root"))

    if base is None:
        base = ServerOptions()
    return dataclasses.replace(base, **values)
