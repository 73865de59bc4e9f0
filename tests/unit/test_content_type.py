"""
Unit tests for content type detection.
"""

import io

import pytest

from servitsy.content_type import (
    TypeResult,
    get_content_type,
    is_bin_data_byte,
    is_bin_header,
    type_for_file,
    type_for_file_path,
)


class TestTypeForFilePath:
    """Tests for classification by file name."""

    @pytest.mark.parametrize("name,expected", [
        ("index.html", "text/html; charset=UTF-8"),
        ("INDEX.HTM", "text/html; charset=UTF-8"),
        ("app.js", "text/javascript; charset=UTF-8"),
        ("data.json", "application/json; charset=UTF-8"),
        ("icon.svg", "image/svg+xml; charset=UTF-8"),
        ("main.rs", "text/plain; charset=UTF-8"),
        ("photo.png", "image/png"),
        ("font.woff2", "font/woff2"),
        ("setup.exe", "application/octet-stream"),
    ])
    def test_known_names(self, name: str, expected: str):
        """Test header values for well-known extensions."""
        assert str(type_for_file_path(name)) == expected

    def test_special_file_names(self):
        """Test extension-less names known to be text."""
        assert type_for_file_path("LICENSE").group == "text"
        assert type_for_file_path(".gitignore").group == "text"
        assert type_for_file_path(".bashrc").group == "text"

    def test_unknown(self):
        """Test that unknown names are left for sniffing."""
        result = type_for_file_path("mystery.xyz")
        assert result.group == "unknown"
        assert str(result) == "application/octet-stream"

    def test_custom_charset(self):
        """Test the charset parameter."""
        assert str(type_for_file_path("a.txt", charset="ISO-8859-1")) == "text/plain; charset=ISO-8859-1"


class TestSniffing:
    """Tests for classification by content."""

    def test_empty_file_is_text(self):
        """Test that an empty file is text."""
        assert type_for_file(io.BytesIO(b"")).group == "text"

    def test_bom_is_text(self):
        """Test that a UTF-8 byte-order mark means text, whatever follows."""
        assert is_bin_header(b"\xef\xbb\xbf\x00\x01") is False
        assert is_bin_header(b"\xff\xfe\x00a") is False

    def test_binary_byte_limit(self):
        """Test that only the first 2000 bytes are scanned."""
        at_2000 = b"a" * 1999 + b"\x00"
        at_2001 = b"a" * 2000 + b"\x00"
        assert is_bin_header(at_2000) is True
        assert is_bin_header(at_2001) is False

    def test_binary_data_bytes(self):
        """Test the binary data byte set."""
        assert is_bin_data_byte(0x00) is True
        assert is_bin_data_byte(0x0B) is True
        assert is_bin_data_byte(0x1B) is False  # ESC
        assert is_bin_data_byte(0x09) is False  # tab
        assert is_bin_data_byte(0x0A) is False  # newline
        assert is_bin_data_byte(ord("a")) is False

    def test_sniff_reads_from_start(self):
        """Test that the handle position does not matter."""
        handle = io.BytesIO(b"\x00\x01\x02 binary")
        handle.read()
        assert type_for_file(handle).group == "bin"


class TestGetContentType:
    """Tests for the combined name and content check."""

    def test_name_wins(self, tmp_path):
        """Test that a known extension skips sniffing."""
        path = tmp_path / "page.html"
        path.write_bytes(b"\x00\x00")
        with open(path, "rb") as f:
            assert str(get_content_type(str(path), f)) == "text/html; charset=UTF-8"

    def test_sniff_unknown_names(self, tmp_path):
        """Test that unknown names fall back to content sniffing."""
        text_path = tmp_path / "notes.unknown"
        text_path.write_text("just words")
        bin_path = tmp_path / "blob.unknown"
        bin_path.write_bytes(b"\x00\x01\x02")

        with open(text_path, "rb") as f:
            assert get_content_type(str(text_path), f).is_text is True
        with open(bin_path, "rb") as f:
            assert get_content_type(str(bin_path), f).is_text is False

    def test_without_handle(self):
        """Test that an unknown name without a handle stays unknown."""
        assert get_content_type("x.unknown").group == "unknown"
        assert get_content_type().group == "unknown"

    def test_type_result_defaults(self):
        """Test the default types of each group."""
        assert str(TypeResult().text()) == "text/plain; charset=UTF-8"
        assert str(TypeResult().bin()) == "application/octet-stream"
