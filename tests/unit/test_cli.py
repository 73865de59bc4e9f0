"""
Unit tests for the servitsy command.
"""

import socket
from pathlib import Path

import pytest

from servitsy import __version__
from servitsy.__main__ import main


def test_version(capsys):
    """Test that --version prints the version and exits cleanly."""
    assert main(["--version"]) == 0
    assert capsys.readouterr().out == f"{__version__}\n"


def test_help(capsys):
    """Test that --help wins over everything else."""
    assert main(["--port", "nope", "--help"]) == 0
    out = capsys.readouterr().out
    assert "servitsy [directory] [options]" in out
    assert "--dir-list" in out


def test_invalid_options(capsys, tmp_path: Path):
    """Test that every option error is reported before exiting with 1."""
    assert main([str(tmp_path), "--port", "abc", "--nope"]) == 1
    err = capsys.readouterr().err.splitlines()
    assert err == [
        "servitsy: invalid --port value: 'abc'",
        "servitsy: unknown option '--nope'",
        "servitsy: Try 'servitsy --help' for more information.",
    ]


def test_missing_root(capsys, tmp_path: Path):
    """Test the error for a root that does not exist."""
    assert main([str(tmp_path / "missing")]) == 1
    err = capsys.readouterr().err
    assert "servitsy: not a directory:" in err
    assert "missing" in err


def test_root_is_a_file(capsys, tmp_path: Path):
    """Test the error for a root that is a file."""
    file_path = tmp_path / "file.txt"
    file_path.write_text("x")
    assert main([str(file_path)]) == 1
    assert "not a directory:" in capsys.readouterr().err


def test_port_in_use(capsys, tmp_path: Path):
    """Test that a taken port is reported as a startup error."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen(1)
        port = sock.getsockname()[1]

        assert main([str(tmp_path), "-h", "127.0.0.1", "-p", str(port)]) == 1

    assert f"servitsy: port already in use: {port}" in capsys.readouterr().err


@pytest.mark.parametrize("argv", [["--gzip", "--no-gzip"], ["--cors"], ["-p", "3000-3002"]])
def test_valid_options_do_not_error(capsys, monkeypatch, tmp_path: Path, argv):
    """Test that valid options reach the server."""
    started = []

    class FakeServer:
        def __init__(self, options):
            started.append(options)

        def run(self):
            pass

    monkeypatch.setattr("servitsy.__main__.HTTPServer", FakeServer)
    assert main([str(tmp_path), *argv]) == 0
    assert capsys.readouterr().err == ""
    assert len(started) == 1


@pytest.mark.parametrize(
    "name, value, message",
    [
        ("SERVITSY_WORKERS", "2", "servitsy: max_workers must be >= min_workers"),
        ("SERVITSY_WORKERS", "many", "servitsy: invalid SERVITSY_WORKERS value: 'many'"),
        ("SERVITSY_TIMEOUT", "soon", "servitsy: invalid SERVITSY_TIMEOUT value: 'soon'"),
        ("SERVITSY_LOG_LEVEL", "verbose", "servitsy: invalid log level: 'VERBOSE'"),
    ],
)
def test_invalid_environment(capsys, monkeypatch, tmp_path: Path, name, value, message):
    """Test that bad SERVITSY_* values are option errors, not tracebacks."""
    started = []
    monkeypatch.setattr("servitsy.__main__.HTTPServer", lambda options: started.append(options))
    monkeypatch.setenv(name, value)

    assert main([str(tmp_path)]) == 1
    err = capsys.readouterr().err
    assert err.splitlines() == [message, "servitsy: Try 'servitsy --help' for more information."]
    assert "Traceback" not in err
    assert started == []


def test_version_from_metadata():
    """Test that the version comes from the installed distribution."""
    from importlib.metadata import version

    assert __version__ == version("servitsy")
