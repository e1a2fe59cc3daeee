"""
Unit tests for shell kinds and shell detection.
"""

import importlib
import os

import pytest

from savvy.shell.detect import ShellDetectionError, detect, detect_with_default, parse_command
from savvy.shell.expansion import ignore_grep
from savvy.shell.kind import ShellKind, supported_shells


class TestShellKind:
    """Shell kind registry."""

    @pytest.mark.parametrize("name,kind", [
        ("bash", ShellKind.BASH),
        ("zsh", ShellKind.ZSH),
        ("dash", ShellKind.DASH),
        ("fish", ShellKind.FISH),
    ])
    def test_from_name(self, name, kind):
        """Test known names map to their kind."""
        assert ShellKind.from_name(name) is kind

    @pytest.mark.parametrize("name", ["tmux", "sh", "node", "unknown", ""])
    def test_from_name_unknown(self, name):
        """Test other names are not shells."""
        assert ShellKind.from_name(name) is None

    def test_str(self):
        """Test kinds print as their name."""
        assert str(ShellKind.ZSH) == "zsh"

    def test_supported_shells(self):
        """Test every supported shell resolves to a kind."""
        assert "unknown" not in supported_shells()
        for name in supported_shells():
            assert ShellKind.from_name(name) is not None


class TestParseCommand:
    """Turning a process command line into an executable name."""

    @pytest.mark.parametrize("command,expected", [
        ("-zsh", "zsh"),
        ("/bin/zsh -il", "zsh"),
        ("zsh", "zsh"),
        ("/usr/local/bin/fish", "fish"),
        ("tmux attach -t savvy", "tmux"),
        ("/Users/me/.nvm/versions/node/v18.17.1/bin/node /Users/me/app/index.js", "node"),
        ("/Users/me/app/node_modules/@esbuild/darwin-arm64/bin/esbuild --service=0.19.2 --ping", "esbuild"),
        ("sh -c echo hi", "sh"),
        ("/usr/bin/python3.11 -m savvy", "python"),
    ])
    def test_parse_command(self, command, expected):
        """Test the leading token is reduced to a bare name."""
        assert parse_command(command) == expected


# the package re-exports detect(), so fetch the module itself
detect_module = importlib.import_module("savvy.shell.detect")


class FakeProcessTable:
    """Process table with fixed commands and parents."""

    def __init__(self, processes):
        # pid -> (command, ppid)
        self.processes = processes

    def command_of(self, pid):
        if pid not in self.processes:
            raise ShellDetectionError(f"no such pid {pid}")
        return self.processes[pid][0]

    def parent_of(self, pid):
        if pid not in self.processes:
            raise ShellDetectionError(f"no such pid {pid}")
        return self.processes[pid][1]


class TestDetect:
    """Walking the process tree."""

    def install(self, monkeypatch, processes):
        table = FakeProcessTable(processes)
        monkeypatch.setattr(detect_module, "command_of", table.command_of)
        monkeypatch.setattr(detect_module, "parent_of", table.parent_of)

    def test_direct_parent_is_shell(self, monkeypatch):
        """Test the parent shell is detected."""
        self.install(monkeypatch, {100: ("-zsh", 1)})
        assert detect(100) is ShellKind.ZSH

    def test_walks_past_non_shells(self, monkeypatch):
        """Test tmux and node are skipped on the way up."""
        self.install(monkeypatch, {
            300: ("node /app/index.js", 200),
            200: ("tmux attach -t savvy", 100),
            100: ("/bin/bash --login", 1),
        })
        assert detect(300) is ShellKind.BASH

    def test_reaching_init_fails(self, monkeypatch):
        """Test an error when no ancestor is a shell."""
        self.install(monkeypatch, {
            200: ("tmux", 100),
            100: ("sshd: me@pts/0", 1),
        })
        with pytest.raises(ShellDetectionError):
            detect(200)

    def test_lookup_failure(self, monkeypatch):
        """Test a process table error is reported as detection failure."""
        self.install(monkeypatch, {200: ("tmux", 150)})
        with pytest.raises(ShellDetectionError):
            detect(200)

    def test_default_from_shell_env(self, monkeypatch):
        """Test $SHELL is used when the tree has no shell."""
        self.install(monkeypatch, {})
        monkeypatch.setattr(os, "getppid", lambda: 42)
        monkeypatch.setenv("SHELL", "/usr/bin/fish")
        assert detect_with_default() is ShellKind.FISH

    def test_default_fails_without_known_shell(self, monkeypatch):
        """Test an error when $SHELL is not a supported shell either."""
        self.install(monkeypatch, {})
        monkeypatch.setattr(os, "getppid", lambda: 42)
        monkeypatch.setenv("SHELL", "/bin/tcsh")
        with pytest.raises(ShellDetectionError):
            detect_with_default()

    def test_real_process_tree(self):
        """Test detection against the live process table does not crash."""
        try:
            kind = detect()
        except ShellDetectionError:
            return
        assert isinstance(kind, ShellKind)


class TestIgnoreGrep:
    """Collapsing the grep alias expansion."""

    def test_expanded_alias(self):
        """Test the distro grep alias is collapsed."""
        command = "ps aux | grep --color=auto --exclude-dir={.bzr,CVS,.git,.hg,.svn} python"
        assert ignore_grep(command) == "ps aux | grep python"

    def test_plain_grep_untouched(self):
        """Test other grep invocations are unchanged."""
        assert ignore_grep("grep -rn TODO .") == "grep -rn TODO ."
