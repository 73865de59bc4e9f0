"""
=============================================================================
HTML PAGES
=============================================================================

The two pages the server generates itself.

    ┌────────────────────────────────────────────────────────────────────┐
    │  Index of site/docs                         ← breadcrumbs          │
    │                                                                    │
    │  📁 ../        📁 api/        📄 intro      📄 setup               │
    │                                   └── "intro.html" minus ".html"   │
    └────────────────────────────────────────────────────────────────────┘

    ┌────────────────────────────────────────────────────────────────────┐
    │  404: Not found                                                    │
    │  Could not find /docs/missing                                      │
    └────────────────────────────────────────────────────────────────────┘

Both embed the stylesheet, the icon sprite and a base64 SVG favicon, so
they render without any further request to the server.

=============================================================================
"""

import base64
import math
import os
import re
from typing import List, Optional
from urllib.parse import quote, unquote

from . import assets
from .fs_utils import FSKind, FSLocation
from .utils import clamp, escape_html, trim_slash


# Characters left alone by JavaScript's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"
_NEWLINES = re.compile("[\n\x0b\x0c\r\u2028]")


def html_template(
    body: str,
    title: Optional[str] = None,
    base: Optional[str] = None,
    icon: Optional[str] = None,
) -> str:
    """
    Wrap a page body in the shared document shell.

    Args:
        body: Inner HTML of <body>, after the icon sprite.
        title: Page title (escaped here).
        base: Value of <base href>.
        icon: "list" or "error" favicon.
    """
    favicon = {"list": assets.favicon_list, "error": assets.favicon_error}.get(icon or "")
    title_tag = f"<title>{html(title)}</title>" if title else ""
    base_tag = f'<base href="{attr(base)}">' if base else ""
    icon_tag = ""
    if favicon is not None:
        data = base64.b64encode(favicon().encode("utf-8")).decode("ascii")
        icon_tag = f'<link rel="icon" type="image/svg+xml" href="data:image/svg+xml;base64,{data}">'

    return (
        "<!doctype html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '<meta charset="UTF-8">\n'
        f"{title_tag}\n"
        f"{base_tag}\n"
        '<meta name="viewport" content="width=device-width">\n'
        f"{icon_tag}\n"
        f"<style>{assets.styles()}</style>\n"
        "</head>\n"
        "<body>\n"
        f"{assets.icons()}\n"
        f"{body}\n"
        "</body>\n"
        "</html>\n"
    )


def error_page(status: int, url_path: str) -> str:
    """Error page for a status code, naming the (decoded) URL path."""
    display_path = decode_path_segments(url_path)
    path_html = f'<code class="filepath">{html(nl2sp(display_path))}</code>'

    def page(title: str = "", desc: str = "") -> str:
        body = f"<h1>{html(title)}</h1>\n<p>{desc}</p>\n"
        return html_template(body, title=title, icon="error")

    if status == 400:
        return page("400: Bad request", f"Invalid request for {path_html}")
    if status == 403:
        return page("403: Forbidden", f"Could not access {path_html}")
    if status == 404:
        return page("404: Not found", f"Could not find {path_html}")
    if status == 405:
        return page("405: Method not allowed")
    if status == 500:
        return page("500: Error", f"Could not serve {path_html}")
    return page("Error", "Something went wrong")


def dir_list_page(
    root: str,
    url_path: str,
    file_path: str,
    items: List[FSLocation],
    ext: List[str],
) -> str:
    """
    Directory listing: directories first, then files, with a parent
    entry everywhere but the root.

    Args:
        root: Served root directory (its name starts the breadcrumbs).
        url_path: Raw URL path of the request.
        file_path: Directory being listed.
        items: Entries from FileResolver.index(), already sorted.
        ext: Extensions dropped from file links.
    """
    root_name = os.path.basename(root.rstrip("/\\")) or root
    trimmed_url = trim_slash(url_path)
    base_url = f"/{trimmed_url}/" if trimmed_url else "/"

    display_path = decode_path_segments(f"{root_name}/{trimmed_url}" if trimmed_url else root_name)
    parent_path = os.path.dirname(file_path)

    entries = [item for item in items if is_dir_like(item)]
    entries += [item for item in items if not is_dir_like(item)]
    if trimmed_url:
        entries.insert(0, FSLocation(parent_path, FSKind.DIR))

    # At least 2 items per CSS column
    max_cols = clamp(math.ceil(len(entries) / 3), 1, 4)

    list_items = "\n".join(render_list_item(item, ext, parent_path) for item in entries)
    body = (
        "<h1>\n"
        f'\tIndex of <span class="bc">{render_breadcrumbs(display_path)}</span>\n'
        "</h1>\n"
        f'<ul class="files" style="--max-col-count:{max_cols}">\n'
        f"{list_items}\n"
        "</ul>"
    )
    return html_template(body, title=f"Index of {display_path}", base=base_url, icon="list")


def render_list_item(item: FSLocation, ext: List[str], parent_path: str) -> str:
    is_dir = is_dir_like(item)
    is_parent = is_dir and item.file_path == parent_path

    icon = "icon-dir" if is_dir else "icon-file"
    if item.kind == FSKind.LINK:
        icon += "-link"
    name = os.path.basename(item.file_path)
    suffix = ""
    label = ""
    href = quote(name, safe=_URI_COMPONENT_SAFE)

    if is_parent:
        name = ".."
        href = ".."
        label = "Parent directory"
    if is_dir:
        suffix = "/"
    else:
        # Clean URL: drop an extension the resolver would add back
        match = next((e for e in ext if item.file_path.endswith(e)), None)
        if match:
            href = href[: len(href) - len(match)]

    label_attrs = f' aria-label="{attr(label)}" title="{attr(label)}"' if label else ""
    suffix_html = f"<span>{html(suffix)}</span>" if suffix else ""
    return (
        '<li class="files-item">\n'
        f'<a class="files-link" href="{attr(href)}"{label_attrs}>'
        f'<svg class="files-icon" width="20" height="20"><use xlink:href="#{attr(icon)}"></use></svg>'
        f'<span class="files-name filepath">{html(nl2sp(name))}{suffix_html}</span>'
        "</a>"
        "\n</li>"
    )


def render_breadcrumbs(path: str) -> str:
    """Link each ancestor with a "../.." chain; the last part is plain text."""
    parts = [part for part in path.split("/") if part]
    crumbs = []
    for index, part in enumerate(parts):
        distance = len(parts) - index - 1
        if distance <= 0:
            crumbs.append(f'<span class="bc-current filepath">{html(nl2sp(part))}</span>')
        else:
            href = "/".join([".."] * distance)
            crumbs.append(f'<a class="bc-link filepath" href="{attr(href)}">{html(nl2sp(part))}</a>')
    return '<span class="bc-sep">/</span>'.join(crumbs)


def is_dir_like(item: FSLocation) -> bool:
    """A directory, or a link to one."""
    if item.kind == FSKind.DIR:
        return True
    return item.kind == FSKind.LINK and item.target is not None and item.target.kind == FSKind.DIR


def decode_path_segments(path: str) -> str:
    """
    Percent-decode each segment, keeping decoded slashes visible.

        "a%2Fb/c%20d"  →  "a\\/b/c d"
    """
    return "/".join(
        unquote(segment).replace("\\", "\\\\").replace("/", "\\/")
        for segment in path.split("/")
    )


def attr(text: str) -> str:
    return escape_html(text, "attr")


def html(text: str) -> str:
    return escape_html(text, "text")


def nl2sp(text: str) -> str:
    return _NEWLINES.sub(" ", text)
