"""
Unit tests for reading shell history.
"""

import os
import tempfile
from pathlib import Path

import pytest

from savvy.shell.history import history_file, parse_bash, parse_fish, parse_zsh, tail_history
from savvy.shell.kind import ShellKind
from savvy.shell.launcher import UnsupportedShellError
from savvy.tail import EmptyFileError


class TestParsers:
    """Per-shell history formats."""

    def test_bash_skips_timestamps(self):
        """Test HISTTIMEFORMAT timestamp lines are dropped."""
        lines = ["#1700000000", "ls -la", "#1700000005", "git status", ""]
        assert parse_bash(lines) == ["ls -la", "git status"]

    def test_bash_keeps_comment_commands(self):
        """Test lines that only look like comments are kept."""
        assert parse_bash(["# not a timestamp"]) == ["# not a timestamp"]

    def test_zsh_extended_history(self):
        """Test timestamps and durations are stripped."""
        lines = [": 1700000000:0;ls -la", ": 1700000010:2;git push"]
        assert parse_zsh(lines) == ["ls -la", "git push"]

    def test_zsh_multiline(self):
        """Test continuation lines are joined with newlines."""
        lines = [
            ": 1700000000:0;for f in *; do\\\\",
            "echo $f\\\\",
            "done",
            ": 1700000001:0;pwd",
        ]
        assert parse_zsh(lines) == ["for f in *; do\\\necho $f\\\ndone", "pwd"]

    def test_zsh_plain_history(self):
        """Test history without extended timestamps."""
        assert parse_zsh(["ls"]) == ["ls"]

    def test_fish(self):
        """Test only cmd entries are read."""
        lines = ["- cmd: ls -la", "  when: 1700000000", "- cmd: git status", "  when: 1700000001"]
        assert parse_fish(lines) == ["ls -la", "git status"]


class TestHistoryFile:
    """History file locations."""

    def test_bash_histfile(self, monkeypatch):
        """Test $HISTFILE wins for bash."""
        monkeypatch.setenv("HISTFILE", "/tmp/my_history")
        assert history_file(ShellKind.BASH) == Path("/tmp/my_history")

    def test_zsh_default(self, monkeypatch):
        """Test the default zsh history location."""
        monkeypatch.delenv("HISTFILE", raising=False)
        assert history_file(ShellKind.ZSH) == Path.home() / ".zsh_history"

    def test_fish_xdg(self, monkeypatch):
        """Test fish history follows XDG_DATA_HOME."""
        monkeypatch.setenv("XDG_DATA_HOME", "/data")
        assert history_file(ShellKind.FISH) == Path("/data/fish/fish_history")

    def test_unknown(self):
        """Test unknown shells have no history."""
        with pytest.raises(UnsupportedShellError):
            history_file(ShellKind.UNKNOWN)


class TestTailHistory:
    """Reading recent commands from a history file."""

    def setup_method(self):
        fd, self.path = tempfile.mkstemp(prefix="savvy-history-")
        os.close(fd)

    def teardown_method(self):
        os.unlink(self.path)

    def write(self, text: str):
        with open(self.path, "w") as f:
            f.write(text)

    def test_newest_first(self):
        """Test commands come back newest first."""
        self.write("ls\ncd /tmp\nmake\n")
        assert tail_history(ShellKind.BASH, path=Path(self.path)) == ["make", "cd /tmp", "ls"]

    def test_reads_only_the_end(self):
        """Test a large history is limited to the requested tail."""
        self.write("".join(f"echo {i}\n" for i in range(1000)))
        commands = tail_history(ShellKind.BASH, limit=5, path=Path(self.path))
        assert commands[0] == "echo 999"
        assert len(commands) == 10

    def test_zsh_file(self):
        """Test zsh history is parsed from the file."""
        self.write(": 1700000000:0;ls\n: 1700000001:0;pwd\n")
        assert tail_history(ShellKind.ZSH, path=Path(self.path)) == ["pwd", "ls"]

    def test_empty_history(self):
        """Test an empty history file is reported."""
        with pytest.raises(EmptyFileError):
            tail_history(ShellKind.BASH, path=Path(self.path))

    def test_unsupported(self):
        """Test unknown shells are rejected."""
        with pytest.raises(UnsupportedShellError):
            tail_history(ShellKind.UNKNOWN, path=Path(self.path))
