__version__ = "0.1.0"

from savvy.logging import get_logger, get_savvy_logger, setup_logging
from savvy.param import extract, substitute
from savvy.runbook import ReplayStep, Runbook, load_runbook
from savvy.shell.kind import ShellKind

"""
Building blocks of a Savvy session:
    ShellKind names a shell Savvy can drive.
    Runbook is an ordered list of ReplayStep commands replayed by `savvy run`.
    extract and substitute find and fill <param> placeholders in a command.
"""

__all__ = [
    "ShellKind",
    "Runbook",
    "ReplayStep",
    "load_runbook",
    "extract",
    "substitute",
    "get_logger",
    "get_savvy_logger",
    "setup_logging",
]
