"""
Read recent commands from a shell's history file.

Only the end of the file is read (see savvy.tail). Results are returned
newest first.
"""

import io
import os
import re
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from savvy.shell.kind import ShellKind
from savvy.shell.launcher import UnsupportedShellError
from savvy.tail import tail

DEFAULT_LIMIT = 100

# bash writes "#<epoch>" before each command when HISTTIMEFORMAT is set
BASH_TIMESTAMP = re.compile(r"^#\d{10}$")


def history_file(kind: ShellKind) -> Path:
    """
    Location of the history file for a shell.

    Raises:
        UnsupportedShellError: If the shell has no supported history format
    """
    if kind in (ShellKind.BASH, ShellKind.DASH):
        return Path(os.environ.get("HISTFILE") or Path.home() / ".bash_history")
    if kind is ShellKind.ZSH:
        return Path(os.environ.get("HISTFILE") or Path.home() / ".zsh_history")
    if kind is ShellKind.FISH:
        data_home = os.environ.get("XDG_DATA_HOME")
        base = Path(data_home) if data_home else Path.home() / ".local" / "share"
        return base / "fish" / "fish_history"
    raise UnsupportedShellError(f"reading history is not supported for {kind}")


def _read_lines(path: Path, n: int) -> List[str]:
    with tail(str(path), n) as f:
        text = io.TextIOWrapper(f, encoding="utf-8", errors="replace")
        return text.read().splitlines()


def parse_bash(lines: List[str]) -> List[str]:
    """Commands from bash history lines, oldest first."""
    return [line for line in lines if line and not BASH_TIMESTAMP.match(line)]


def parse_zsh(lines: List[str]) -> List[str]:
    """
    Commands from zsh history lines, oldest first.

    Handles extended history entries (": 1700000000:0;ls -la") and commands
    spanning several lines.
    """
    result = []
    current: Optional[str] = None

    for line in lines:
        if line.startswith(": "):
            if current:
                result.append(current.strip())
            # drop ": <timestamp>:<duration>;"
            _, sep, command = line.partition(";")
            if sep:
                current = command.strip()
            else:
                current = None
                result.append(line)
        elif current is None:
            # plain history without timestamps
            current = line
        else:
            # zsh stores an embedded newline as "\\\n"
            if current.endswith("\\\\"):
                current = current[:-1]
            current += "\n" + line

    if current:
        result.append(current.strip())
    return [cmd for cmd in result if cmd]


def parse_fish(lines: List[str]) -> List[str]:
    """Commands from fish history lines, oldest first."""
    prefix = "- cmd:"
    return [line[len(prefix):].strip() for line in lines if line.startswith(prefix)]


# kind -> (lines to read per command, parser)
PARSERS: Dict[ShellKind, Tuple[int, Callable[[List[str]], List[str]]]] = {
    ShellKind.BASH: (2, parse_bash),
    ShellKind.DASH: (2, parse_bash),
    ShellKind.ZSH: (1, parse_zsh),
    ShellKind.FISH: (2, parse_fish),
}


def tail_history(kind: ShellKind, limit: int = DEFAULT_LIMIT, path: Optional[Path] = None) -> List[str]:
    """
    Recent commands from the shell's history, newest first.

    Args:
        kind: Shell whose history format to read
        limit: Approximate number of commands wanted
        path: History file (default: the shell's usual location)

    Returns:
        Commands, newest first

    Raises:
        UnsupportedShellError: If the shell has no supported history format
        EmptyFileError: If the history file is empty
        OSError: If the history file cannot be read
    """
    if kind not in PARSERS:
        raise UnsupportedShellError(f"reading history is not supported for {kind}")
    lines_per_command, parse = PARSERS[kind]

    if path is None:
        path = history_file(kind)

    commands = parse(_read_lines(path, limit * lines_per_command))
    commands.reverse()
    return commands
