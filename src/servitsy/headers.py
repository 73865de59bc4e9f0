"""
Custom response header rules.

A rule is a set of headers plus optional include patterns:

    --header 'Cache-Control: no-store'            → every file
    --header '*.wasm,*.mjs Cross-Origin-Embedder-Policy: require-corp'
                                                  → files with a segment
                                                    matching *.wasm or *.mjs

Rules are applied in declaration order. Content-Length and
Content-Encoding are owned by the server and can never be set by a rule.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .path_matcher import PathMatcher


_HEADER_CASE = re.compile(r"((^|\b|_)[a-z])")
_HEADER_NAME = re.compile(r"^[A-Za-z\d\-_]+$")


@dataclass
class HeaderRule:
    """
    Headers to add to responses whose local path matches `include`.

    Attributes:
        headers: Header names and values, sent verbatim.
        include: Path patterns; None means the rule applies to every file.
    """

    headers: Dict[str, str] = field(default_factory=dict)
    include: Optional[List[str]] = None

    def matches(self, local_path: str) -> bool:
        if self.include is None:
            return True
        return PathMatcher(self.include, case_sensitive=True).test(local_path)

    def to_dict(self) -> dict:
        data: dict = {"headers": dict(self.headers)}
        if self.include is not None:
            data["include"] = list(self.include)
        return data


def file_headers(
    local_path: str,
    rules: Iterable[HeaderRule],
    block_list: Iterable[str] = (),
) -> List[Tuple[str, str]]:
    """
    Collect (name, value) pairs from every rule matching local_path.

    Names in block_list (lowercase) are skipped. Duplicates are kept.
    """
    blocked = {name.lower() for name in block_list}
    result: List[Tuple[str, str]] = []
    for rule in rules:
        if not rule.matches(local_path):
            continue
        for name, value in rule.headers.items():
            if name.lower() in blocked:
                continue
            result.append((name, str(value)))
    return result


def header_case(name: str) -> str:
    """
    Train-Case a header name.

        header_case("content-type")                  → "Content-Type"
        header_case("access-control-allow-origin")   → "Access-Control-Allow-Origin"
    """
    return _HEADER_CASE.sub(lambda m: m.group(0).upper(), name)


def parse_header_names(value: Optional[str] = "") -> List[str]:
    """Split a comma-separated header list, keeping only valid names."""
    if not value:
        return []
    names = (item.strip() for item in value.split(","))
    return [name for name in names if _HEADER_NAME.match(name)]
