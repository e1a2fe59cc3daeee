"""
Shell kinds known to Savvy.
"""

from enum import Enum
from typing import List, Optional


class ShellKind(Enum):
    """Interactive shells Savvy can detect."""
    BASH = "bash"
    ZSH = "zsh"
    DASH = "dash"
    FISH = "fish"
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, name: str) -> Optional["ShellKind"]:
        """
        Match an executable name to a shell kind.

        Args:
            name: Bare executable name, e.g. "zsh"

        Returns:
            ShellKind, or None if the name is not a known shell
        """
        for kind in cls:
            if kind is not cls.UNKNOWN and kind.value == name:
                return kind
        return None

    def __str__(self) -> str:
        return self.value


def supported_shells() -> List[str]:
    """Shells a session can be started in."""
    return [ShellKind.BASH.value, ShellKind.ZSH.value, ShellKind.DASH.value, ShellKind.FISH.value]
