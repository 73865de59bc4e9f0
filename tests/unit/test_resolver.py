"""
Unit tests for URL path resolution and the file system helpers.
"""

import os
import sys
from pathlib import Path

import pytest

from servitsy.config import ServerOptions
from servitsy.fs_utils import (
    FSKind,
    FSLocation,
    check_dir_access,
    get_index,
    get_kind,
    get_local_path,
    is_subpath,
)
from servitsy.resolver import FileResolver
from servitsy.utils import ErrorList

from conftest import make_tree


needs_symlinks = pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
needs_permissions = pytest.mark.skipif(
    sys.platform == "win32" or not hasattr(os, "geteuid") or os.geteuid() == 0,
    reason="file modes are not enforced on Windows or for root",
)


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return make_tree(tmp_path / "root", {
        "index.html": "home",
        ".env": "secret",
        ".well-known/security.txt": "ok",
        "docs/index.html": "docs",
        "docs/intro.html": "intro",
        "docs/notes.md": "notes",
        "empty/.gitkeep": "",
        "section/page.html": "p",
    })


def make_resolver(root: Path, **overrides) -> FileResolver:
    return FileResolver(ServerOptions(root=str(root), **overrides))


class TestFileResolver:
    """Tests for FileResolver.find()."""

    def test_root_index(self, root: Path):
        """Test that "/" resolves to the root index file."""
        result = make_resolver(root).find("/")
        assert result.status == 200
        assert result.file == FSLocation(str(root / "index.html"), FSKind.FILE)

    def test_directory_index(self, root: Path):
        """Test index files for directories, with or without a slash."""
        resolver = make_resolver(root)
        for url_path in ("/docs", "/docs/"):
            result = resolver.find(url_path)
            assert result.status == 200
            assert result.file.file_path == str(root / "docs" / "index.html")

    def test_extension_fallback(self, root: Path):
        """Test that missing paths are retried with each configured extension."""
        result = make_resolver(root).find("/section/page")
        assert result.status == 200
        assert result.file.file_path == str(root / "section" / "page.html")

    def test_exact_file(self, root: Path):
        """Test that an existing file is served as is."""
        result = make_resolver(root).find("/docs/notes.md")
        assert result.status == 200
        assert result.file.kind == FSKind.FILE

    def test_missing(self, root: Path):
        """Test 404 for paths that do not exist."""
        result = make_resolver(root).find("/nope")
        assert result.status == 404
        assert result.file is None

    def test_excluded(self, root: Path):
        """Test that dotfiles are hidden and .well-known is not."""
        resolver = make_resolver(root)
        assert resolver.find("/.env").status == 404
        assert resolver.find("/.well-known/security.txt").status == 200

    def test_no_exclude(self, root: Path):
        """Test that an empty exclude list serves dotfiles."""
        assert make_resolver(root, exclude=[]).find("/.env").status == 200

    def test_directory_without_index(self, root: Path):
        """Test that a directory without an index file resolves to itself."""
        result = make_resolver(root).find("/empty")
        assert result.status == 200
        assert result.file == FSLocation(str(root / "empty"), FSKind.DIR)

    def test_directory_listing_disabled(self, root: Path):
        """Test 404 for directories when listings are off."""
        result = make_resolver(root, dir_list=False).find("/empty")
        assert result.status == 404

    def test_no_dir_file(self, root: Path):
        """Test that an empty dir_file list disables index files."""
        result = make_resolver(root, dir_file=[]).find("/docs")
        assert result.file.kind == FSKind.DIR

    def test_escaping_root(self, root: Path):
        """Test that ".." cannot leave the root."""
        resolver = make_resolver(root)
        assert resolver.find("/../../etc/passwd").status == 404
        assert resolver.resolve_path("/../../etc/passwd") is None

    def test_deterministic(self, root: Path):
        """Test that two lookups of the same path are equal."""
        resolver = make_resolver(root)
        assert resolver.find("/docs/intro") == resolver.find("/docs/intro")

    @needs_symlinks
    def test_symlink_inside_root(self, root: Path):
        """Test that links to files in the root are followed."""
        os.symlink(root / "docs" / "intro.html", root / "intro-link.html")
        result = make_resolver(root).find("/intro-link.html")
        assert result.status == 200
        assert result.file.kind == FSKind.LINK
        assert result.file.real.file_path == str(root / "docs" / "intro.html")

    @needs_symlinks
    def test_symlink_outside_root(self, root: Path, tmp_path: Path):
        """Test that links pointing outside the root are hidden."""
        outside = tmp_path / "outside.txt"
        outside.write_text("private")
        os.symlink(outside, root / "escape.txt")
        result = make_resolver(root).find("/escape.txt")
        assert result.status == 404
        assert result.file is None

    @needs_permissions
    def test_unreadable_file(self, root: Path):
        """Test 403 for a file without read permission."""
        target = root / "docs" / "intro.html"
        target.chmod(0o000)
        try:
            result = make_resolver(root).find("/docs/intro.html")
        finally:
            target.chmod(0o644)
        assert result.status == 403
        assert result.file.file_path == str(target)

    @needs_permissions
    def test_unsearchable_directory(self, root: Path):
        """Test 403 for a directory without execute permission."""
        target = root / "section"
        target.chmod(0o600)
        try:
            result = make_resolver(root).find("/section")
        finally:
            target.chmod(0o755)
        assert result.status == 403
        assert result.file.kind == FSKind.DIR

    def test_rejects_relative_root(self):
        """Test that the root must be absolute."""
        with pytest.raises(ValueError):
            FileResolver(ServerOptions(root="relative/path"))


class TestIndex:
    """Tests for FileResolver.index()."""

    def test_sorted_and_filtered(self, root: Path):
        """Test that listings are sorted and skip excluded entries."""
        items = make_resolver(root).index(str(root))
        names = [os.path.basename(item.file_path) for item in items]
        assert names == sorted(names)
        assert ".env" not in names
        assert ".well-known" in names
        assert "docs" in names

    def test_listing_disabled(self, root: Path):
        """Test that nothing is listed when listings are off."""
        assert make_resolver(root, dir_list=False).index(str(root)) == []

    def test_missing_directory(self, root: Path):
        """Test that listing errors give an empty list."""
        assert get_index(str(root / "missing")) == []


class TestFsUtils:
    """Tests for path helpers."""

    def test_is_subpath(self):
        """Test containment checks."""
        root = os.path.abspath("/srv/site")
        assert is_subpath(root, root) is True
        assert is_subpath(root, os.path.join(root, "a", "b")) is True
        assert is_subpath(root, root + "-other") is False
        assert is_subpath(root, os.path.join(root, "..", "x")) is False
        assert is_subpath(root, "relative") is False

    def test_get_local_path(self):
        """Test paths relative to the root."""
        root = os.path.abspath("/srv/site")
        assert get_local_path(root, root) == ""
        assert get_local_path(root, os.path.join(root, "css", "app.css")) == os.path.join("css", "app.css")
        assert get_local_path(root, os.path.abspath("/etc")) is None

    def test_get_kind(self, root: Path):
        """Test entry kinds."""
        assert get_kind(str(root / "docs")) == FSKind.DIR
        assert get_kind(str(root / "index.html")) == FSKind.FILE
        assert get_kind(str(root / "missing")) is None

    def test_check_dir_access(self, root: Path):
        """Test the root directory check messages."""
        errors = ErrorList()
        assert check_dir_access(str(root), errors) is True
        assert check_dir_access(str(root / "index.html"), errors) is False
        assert check_dir_access(str(root / "missing"), errors) is False
        assert errors.items == [
            f"not a directory: {root / 'index.html'}",
            f"not a directory: {root / 'missing'}",
        ]
