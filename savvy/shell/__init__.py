"""
Shell integration: detection, launching and history.
"""

from savvy.shell.detect import ShellDetectionError, detect, detect_with_default
from savvy.shell.kind import ShellKind, supported_shells
from savvy.shell.launcher import (
    ExecutableNotFoundError,
    Launcher,
    ShellCommand,
    UnsupportedShellError,
)

__all__ = [
    "ShellKind",
    "supported_shells",
    "ShellDetectionError",
    "detect",
    "detect_with_default",
    "Launcher",
    "ShellCommand",
    "UnsupportedShellError",
    "ExecutableNotFoundError",
]
