"""
Session configuration.

Savvy has no process-wide session state: the recorder and the runner build a
SessionConfig and pass it to the servers and the launcher they create.
Hook processes find their server through the environment variables exported
by the generated shell startup script.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from savvy.runbook import ReplayStep

# Set inside a spawned shell: "record" or "run"
CONTEXT_ENV = "SAVVY_CONTEXT"
SOCKET_PATH_ENV = "SAVVY_SOCKET_PATH"
RUN_SOCKET_PATH_ENV = "SAVVY_RUN_SOCKET_PATH"

DEFAULT_SOCKET_PATH = "/tmp/savvy-socket"
DEFAULT_RUN_SOCKET_PATH = "/tmp/savvy-run-socket"

# Grace period between the pty closing and killing the shell
DEFAULT_WAIT_DELAY = 0.5


class Mode(Enum):
    """Kind of session a shell is spawned for."""
    RECORD = "record"
    RUN = "run"

    @property
    def label(self) -> str:
        return "recording" if self is Mode.RECORD else "run"


@dataclass
class SessionConfig:
    """
    Configuration for one recording or replay session.

    Attributes:
        socket_path: Unix socket the session's server listens on
        steps: Replay steps (empty for a recording session)
        logger: Logger handed to the server; None means the module logger
        wait_delay: Seconds to wait for the shell after the pty closes
    """
    socket_path: str
    steps: List[ReplayStep] = field(default_factory=list)
    logger: Optional[logging.Logger] = None
    wait_delay: float = DEFAULT_WAIT_DELAY


def in_savvy_context() -> Optional[str]:
    """Return the active session kind when running inside a spawned shell."""
    return os.environ.get(CONTEXT_ENV) or None


def socket_path_from_env() -> Optional[str]:
    """Capture socket path exported to hook invocations."""
    return os.environ.get(SOCKET_PATH_ENV) or None


def run_socket_path_from_env() -> str:
    """Replay socket path exported to hook invocations, or the default."""
    return os.environ.get(RUN_SOCKET_PATH_ENV) or DEFAULT_RUN_SOCKET_PATH
