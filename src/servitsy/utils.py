"""
Small helpers shared by the resolver, the pages and the CLI.
"""

import re
from typing import List


def clamp(value: int, min_value: int, max_value: int) -> int:
    """Constrain value to the [min_value, max_value] range."""
    if not isinstance(value, (int, float)):
        value = min_value
    return min(max_value, max(min_value, value))


def escape_html(text: str, context: str = "text") -> str:
    """
    Escape text for insertion in HTML.

    Args:
        text: Raw text.
        context: "text" for element content, "attr" for attribute values
                 (quotes are escaped too).
    """
    if not isinstance(text, str):
        return ""
    result = text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    if context == "attr":
        result = result.replace('"', "&quot;").replace("'", "&apos;")
    return result


def fwd_slash(path: str = "") -> str:
    """Turn backslashes into slashes and collapse repeated slashes."""
    return re.sub(r"/{2,}", "/", path.replace("\\", "/"))


def trim_slash(path: str = "", start: bool = True, end: bool = True) -> str:
    """Remove one leading and/or one trailing slash or backslash."""
    if start:
        path = re.sub(r"^[/\\]", "", path)
    if end:
        path = re.sub(r"[/\\]$", "", path)
    return path


def int_range(start: int, end: int, limit: int = 1_000) -> List[int]:
    """
    Inclusive range of integers, ascending or descending.

        int_range(1, 3)        → [1, 2, 3]
        int_range(3, 1)        → [3, 2, 1]
        int_range(1, 500, 10)  → [1, 2, ..., 10]
    """
    for name, value in (("start", start), ("end", end), ("limit", limit)):
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValueError(f"Invalid {name} param: {value}")
    length = min(abs(end - start) + 1, abs(limit))
    step = 1 if start < end else -1
    return [start + i * step for i in range(length)]


def is_private_ipv4(address: str = "") -> bool:
    """Check for addresses in 10/8, 172.16/12 and 192.168/16."""
    if not address:
        return False
    parts = address.split(".")
    if len(parts) != 4:
        return False
    try:
        octets = [int(part) for part in parts]
    except ValueError:
        return False
    if any(not 0 <= octet <= 255 for octet in octets):
        return False
    return (
        octets[0] == 10
        or (octets[0] == 172 and 16 <= octets[1] < 32)
        or (octets[0] == 192 and octets[1] == 168)
    )


class ErrorList:
    """
    Collects validation messages so they can be reported together.

    Callable, so it can be handed to validators as an ``on_error`` hook:

        on_error = ErrorList()
        validator = OptionsValidator(on_error)
        ...
        if on_error.items:
            print("\\n".join(on_error.items))
    """

    def __init__(self):
        self.items: List[str] = []

    def __call__(self, message: str = "") -> None:
        self.items.append(message)

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)
