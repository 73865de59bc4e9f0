"""
Unit tests for the generated HTML pages.
"""

import os

import pytest

from servitsy.fs_utils import FSKind, FSLocation
from servitsy.pages import (
    decode_path_segments,
    dir_list_page,
    error_page,
    html_template,
    render_breadcrumbs,
)


ROOT = os.path.join(os.sep, "srv", "site")


def loc(*parts: str, kind: FSKind = FSKind.FILE) -> FSLocation:
    return FSLocation(os.path.join(ROOT, *parts), kind)


class TestErrorPage:
    """Tests for error_page()."""

    @pytest.mark.parametrize("status,title", [
        (400, "400: Bad request"),
        (403, "403: Forbidden"),
        (404, "404: Not found"),
        (405, "405: Method not allowed"),
        (500, "500: Error"),
        (418, "Error"),
    ])
    def test_titles(self, status: int, title: str):
        """Test the title for each status."""
        page = error_page(status, "/x")
        assert f"<title>{title}</title>" in page
        assert f"<h1>{title}</h1>" in page

    def test_path_is_decoded_and_escaped(self):
        """Test the displayed path."""
        page = error_page(404, "/a%20b/%3Cscript%3E")
        assert '<code class="filepath">/a b/&lt;script&gt;</code>' in page
        assert "<script>" not in page

    def test_favicon(self):
        """Test that error pages embed their favicon."""
        assert "data:image/svg+xml;base64," in error_page(404, "/x")


class TestDirListPage:
    """Tests for dir_list_page()."""

    def render(self, url_path: str, dir_parts, items):
        return dir_list_page(
            root=ROOT,
            url_path=url_path,
            file_path=os.path.join(ROOT, *dir_parts),
            items=items,
            ext=[".html"],
        )

    def test_subdirectory(self):
        """Test a nested listing: parent entry, directories first, clean links."""
        page = self.render("/docs/", ["docs"], [
            loc("docs", "a b.html"),
            loc("docs", "api", kind=FSKind.DIR),
            loc("docs", "<x>.txt"),
        ])

        assert "<title>Index of site/docs</title>" in page
        assert '<base href="/docs/">' in page
        assert 'href=".." aria-label="Parent directory"' in page
        assert page.index('href=".."') < page.index('href="api"') < page.index('href="a%20b"')
        assert 'href="%3Cx%3E.txt"' in page
        assert "&lt;x&gt;.txt" in page
        assert '<span class="files-name filepath">api<span>/</span></span>' in page

    def test_root(self):
        """Test that the root listing has no parent entry."""
        page = self.render("/", [], [loc("index.txt")])
        assert "Parent directory" not in page
        assert '<base href="/">' in page
        assert "<title>Index of site</title>" in page

    def test_links(self):
        """Test the icons used for symlinks."""
        target = loc("real", kind=FSKind.DIR)
        link = FSLocation(os.path.join(ROOT, "linked"), FSKind.LINK, target)
        page = self.render("/", [], [link, loc("file.txt")])
        assert "#icon-dir-link" in page
        assert page.index('href="linked"') < page.index('href="file.txt"')


def test_breadcrumbs():
    """Test relative links to each ancestor."""
    assert render_breadcrumbs("site/docs/api") == (
        '<a class="bc-link filepath" href="../..">site</a>'
        '<span class="bc-sep">/</span>'
        '<a class="bc-link filepath" href="..">docs</a>'
        '<span class="bc-sep">/</span>'
        '<span class="bc-current filepath">api</span>'
    )


def test_decode_path_segments():
    """Test that encoded slashes stay visible."""
    assert decode_path_segments("a%2Fb/c%20d") == "a\\/b/c d"


def test_html_template():
    """Test the document shell."""
    page = html_template("<p>hi</p>", title="A & B", base="/x/")
    assert page.startswith("<!doctype html>")
    assert "<title>A &amp; B</title>" in page
    assert '<base href="/x/">' in page
    assert "<p>hi</p>" in page
    assert "data:image/svg+xml" not in page
