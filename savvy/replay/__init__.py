"""
Replay runbooks in an interactive shell.
"""

from savvy.replay.runner import RunbookRunner

__all__ = ["RunbookRunner"]
