"""
Detect the interactive shell that started Savvy.

Walks up the process tree from the parent process until a process whose
executable is a known shell is found. Intermediate processes such as tmux,
node or editors are skipped.
"""

import os
from typing import Optional

import psutil

from savvy.logging import get_logger
from savvy.shell.kind import ShellKind

logger = get_logger(__name__)

INIT_PID = 1


class ShellDetectionError(RuntimeError):
    """Raised when the shell in use cannot be determined."""

    pass


def command_of(pid: int) -> str:
    """
    Command line of a process as a single string.

    Args:
        pid: Process ID

    Returns:
        Arguments joined by spaces, or the process name when the command
        line is not readable

    Raises:
        ShellDetectionError: If the process does not exist or is not accessible
    """
    try:
        proc = psutil.Process(pid)
        args = proc.cmdline()
        if args:
            return " ".join(args).strip()
        return proc.name()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as e:
        raise ShellDetectionError(f"could not read command of pid={pid}: {e}") from e


def parent_of(pid: int) -> int:
    """
    Parent PID of a process.

    Raises:
        ShellDetectionError: If the process does not exist or is not accessible
    """
    try:
        return psutil.Process(pid).ppid()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as e:
        raise ShellDetectionError(f"could not get parent of pid={pid}: {e}") from e


def parse_command(command: str) -> str:
    """
    Extract the bare executable name from a command line.

    Examples:
        "-zsh"                 -> "zsh"
        "/bin/zsh -il"         -> "zsh"
        "tmux attach -t savvy" -> "tmux"
        "/usr/bin/python3.11"  -> "python"
    """
    binary_path = command.split(" ", 1)[0]
    binary = os.path.basename(binary_path)
    # login shells are started as "-zsh"
    binary = binary.lstrip("-")
    return binary.strip("0123456789.")


def detect(start_pid: Optional[int] = None) -> ShellKind:
    """
    Walk up the process tree to find the shell in use.

    Args:
        start_pid: First process to inspect (default: the parent process)

    Returns:
        Detected ShellKind

    Raises:
        ShellDetectionError: If init is reached without finding a shell
    """
    pid = os.getppid() if start_pid is None else start_pid

    while pid > INIT_PID:
        command = command_of(pid)
        name = parse_command(command)
        kind = ShellKind.from_name(name)
        if kind is not None:
            logger.debug(f"detected {kind} from pid={pid} ({command})")
            return kind

        pid = parent_of(pid)

    raise ShellDetectionError("could not detect shell in use")


def detect_with_default() -> ShellKind:
    """
    Detect the shell, falling back to $SHELL.

    Returns:
        Detected ShellKind

    Raises:
        ShellDetectionError: If neither the process tree nor $SHELL names a
            known shell. Callers cannot continue without a shell.
    """
    try:
        return detect()
    except ShellDetectionError as e:
        kind = ShellKind.from_name(parse_command(os.environ.get("SHELL", "")))
        if kind is None:
            raise ShellDetectionError("could not detect your default shell") from e
        logger.warning(f"could not detect your shell: {e}. Defaulting to {kind}")
        return kind
