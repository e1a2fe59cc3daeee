"""
Take over a socket path left behind by another session.
"""

import logging
import os
from typing import Callable, Optional

from savvy.config import Mode
from savvy.logging import get_logger
from savvy.server.unix import ServerUnavailableError


class AbortedByUser(Exception):
    """Raised when the user declines to replace another session."""

    pass


def claim_socket_path(
    socket_path: str,
    mode: Mode,
    shutdown: Callable[[str], None],
    confirm: Optional[Callable[[str], bool]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Make socket_path free for a new server.

    If a server answers on the path it is asked to shut down. If nothing
    answers, the file is stale or belongs to a session that cannot be
    reached, and the user decides whether to remove it.

    Args:
        socket_path: Path the new server wants to bind
        mode: Session mode, used in the confirmation message
        shutdown: Sends a shutdown request to the server at a path;
            raises ServerUnavailableError when no server answers
        confirm: Asks the user a yes/no question; None means no
        logger: Logger (default: module logger)

    Raises:
        AbortedByUser: If the user declines the takeover
    """
    logger = logger or get_logger(__name__)

    if not os.path.lexists(socket_path):
        return

    try:
        shutdown(socket_path)
        logger.info(f"stopped previous {mode.label} session on {socket_path}")
    except ServerUnavailableError as e:
        logger.debug(f"previous session did not answer: {e}")
        question = (
            f"Multiple {mode.label} sessions detected. "
            f"Continue here and end the other sessions?"
        )
        if confirm is None or not confirm(question):
            raise AbortedByUser(f"another {mode.label} session owns {socket_path}")

    try:
        os.unlink(socket_path)
    except FileNotFoundError:
        pass
