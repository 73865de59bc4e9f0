"""
Stylesheet and SVG icons embedded in the generated HTML pages.

The files live in the `assets/` package data directory and are read once
per process; every later call returns the cached string.
"""

from functools import lru_cache
from importlib import resources


FAVICON_ERROR = "favicon-error.svg"
FAVICON_LIST = "favicon-list.svg"
ICONS = "icons.svg"
STYLES = "styles.css"


@lru_cache(maxsize=None)
def read_asset(name: str) -> str:
    """Text of a file in the assets directory."""
    return resources.files(__package__).joinpath("assets", name).read_text(encoding="utf-8")


def favicon_error() -> str:
    return read_asset(FAVICON_ERROR)


def favicon_list() -> str:
    return read_asset(FAVICON_LIST)


def icons() -> str:
    return read_asset(ICONS)


def styles() -> str:
    return read_asset(STYLES)
