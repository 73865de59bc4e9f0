"""
Unit tests for option validation and ServerOptions.
"""

import os

import pytest

from servitsy.config import ServerOptions
from servitsy.constants import DEFAULT_EXCLUDE, DEFAULT_EXT, DEFAULT_PORTS
from servitsy.headers import HeaderRule
from servitsy.options import (
    OptionsError,
    OptionsValidator,
    is_valid_ext,
    is_valid_host,
    is_valid_pattern,
    is_valid_port,
    server_options,
)
from servitsy.utils import ErrorList


class TestServerOptions:
    """Tests for server_options()."""

    def test_defaults(self):
        """Test the defaults when nothing is given."""
        options = server_options({"root": ""})
        assert options.root == os.getcwd()
        assert options.host == "::"
        assert options.ports == DEFAULT_PORTS
        assert options.ports[0] == 8080 and len(options.ports) == 10
        assert options.gzip is True
        assert options.cors is False
        assert options.dir_list is True
        assert options.dir_file == ["index.html"]
        assert options.ext == DEFAULT_EXT
        assert options.exclude == DEFAULT_EXCLUDE
        assert options.headers == []

    def test_valid_values(self, tmp_path):
        """Test that valid values replace the defaults."""
        rule = HeaderRule(headers={"X-A": "1"})
        options = server_options({
            "root": str(tmp_path),
            "host": "localhost",
            "ports": [3000, 3001],
            "cors": True,
            "gzip": False,
            "dir_list": False,
            "dir_file": ["index.htm"],
            "ext": [".htm"],
            "exclude": ["node_modules"],
            "headers": [rule],
        })
        assert options.root == str(tmp_path)
        assert options.host == "localhost"
        assert options.ports == [3000, 3001]
        assert options.cors is True
        assert options.gzip is False
        assert options.dir_list is False
        assert options.dir_file == ["index.htm"]
        assert options.ext == [".htm"]
        assert options.exclude == ["node_modules"]
        assert options.headers == [rule]

    def test_empty_lists_are_kept(self):
        """Test that explicitly empty lists are honoured."""
        options = server_options({"ext": [], "exclude": [], "dir_file": []})
        assert options.ext == []
        assert options.exclude == []
        assert options.dir_file == []

    def test_invalid_values_are_reported(self):
        """Test that every invalid value is reported and the default kept."""
        errors = ErrorList()
        options = server_options({
            "host": "not a host",
            "ports": [99999],
            "cors": "yes",
            "ext": ["html", ".md"],
            "exclude": ["a/b"],
        }, errors)

        assert options.host == "::"
        assert options.ports == DEFAULT_PORTS
        assert options.cors is False
        assert options.ext == [".md"]
        assert options.exclude == DEFAULT_EXCLUDE
        assert errors.items == [
            "invalid port number: '99999'",
            "invalid host value: 'not a host'",
            "invalid cors value: 'yes'",
            "invalid ext value: 'html'",
            "invalid exclude pattern: 'a/b'",
        ]

    def test_invalid_header_rule(self):
        """Test that header rules with bad names are rejected."""
        errors = ErrorList()
        options = server_options({"headers": [HeaderRule(headers={"Bad Name": "x"})]}, errors)
        assert options.headers == []
        assert len(errors.items) == 1
        assert errors.items[0].startswith("invalid header value:")

    def test_relative_root(self):
        """Test that the root is made absolute."""
        assert server_options({"root": "public"}).root == os.path.abspath("public")

    def test_base_options(self):
        """Test that runtime knobs come from the base options."""
        base = ServerOptions(max_workers=2, min_workers=1)
        options = server_options({"cors": True}, base=base)
        assert options.max_workers == 2
        assert options.cors is True

    def test_ports_are_capped(self):
        """Test that at most 100 ports are kept."""
        options = server_options({"ports": list(range(2000, 2200))})
        assert len(options.ports) == 100


class TestValidators:
    """Tests for the is_valid_* helpers."""

    def test_ports(self):
        """Test the port range."""
        assert is_valid_port(1) and is_valid_port(65535)
        assert not is_valid_port(0)
        assert not is_valid_port(65536)
        assert not is_valid_port(True)
        assert not is_valid_port("8080")

    def test_hosts(self):
        """Test domain-like and IP-like hosts."""
        for host in ("localhost", "example.com", "127.0.0.1", "::", "::1", "fe80::1"):
            assert is_valid_host(host), host
        for host in ("", "a b", "exa_mple.com", "http://x"):
            assert not is_valid_host(host), host

    def test_ext(self):
        """Test extension syntax."""
        assert is_valid_ext(".html")
        assert is_valid_ext(".tar.gz")
        assert not is_valid_ext("html")
        assert not is_valid_ext(".")
        assert not is_valid_ext(".a b")

    def test_patterns(self):
        """Test exclude and dir_file patterns."""
        assert is_valid_pattern(".*")
        assert is_valid_pattern("!.well-known")
        assert not is_valid_pattern("")
        assert not is_valid_pattern("a/b")
        assert not is_valid_pattern("a\\b")
        assert not is_valid_pattern("c:")

    def test_root_validator(self):
        """Test that root() always returns an absolute path."""
        validator = OptionsValidator()
        assert validator.root(None) == os.getcwd()
        assert os.path.isabs(validator.root("x"))


class TestConfig:
    """Tests for ServerOptions."""

    def test_validate_ok(self, tmp_path):
        """Test that default options validate."""
        ServerOptions(root=str(tmp_path)).validate()

    def test_validate_errors(self):
        """Test that validate() collects every error."""
        options = ServerOptions(root="relative", ports=[0], min_workers=0, log_level="LOUD")
        with pytest.raises(OptionsError) as exc_info:
            options.validate()
        errors = exc_info.value.errors
        assert "invalid port number: '0'" in errors
        assert "root must be an absolute path: 'relative'" in errors
        assert "min_workers must be >= 1" in errors
        assert "invalid log level: 'LOUD'" in errors
        assert str(exc_info.value).startswith("Invalid option(s):\n    ")

    def test_from_env(self, monkeypatch):
        """Test runtime knobs read from the environment."""
        monkeypatch.setenv("SERVITSY_LOG_LEVEL", "debug")
        monkeypatch.setenv("SERVITSY_WORKERS", "8")
        monkeypatch.setenv("SERVITSY_TIMEOUT", "2.5")
        options = ServerOptions.from_env(cors=True)
        assert options.log_level == "DEBUG"
        assert options.max_workers == 8
        assert options.timeout == 2.5
        assert options.cors is True

    def test_from_env_overrides_win(self, monkeypatch):
        """Test that keyword arguments beat environment values."""
        monkeypatch.setenv("SERVITSY_WORKERS", "8")
        assert ServerOptions.from_env(max_workers=16).max_workers == 16

    def test_from_env_not_a_number(self, monkeypatch):
        """Test that a non-numeric value is reported and skipped."""
        monkeypatch.setenv("SERVITSY_WORKERS", "many")
        errors = []
        options = ServerOptions.from_env(on_error=errors.append)
        assert errors == ["invalid SERVITSY_WORKERS value: 'many'"]
        assert options.max_workers == ServerOptions().max_workers

    def test_from_env_raises_without_callback(self, monkeypatch):
        """Test that a non-numeric value raises OptionsError by default."""
        monkeypatch.setenv("SERVITSY_TIMEOUT", "soon")
        with pytest.raises(OptionsError) as exc_info:
            ServerOptions.from_env()
        assert exc_info.value.errors == ["invalid SERVITSY_TIMEOUT value: 'soon'"]
