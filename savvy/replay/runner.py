"""
Replay session: run a hooked shell that walks through a runbook.
"""

import threading
from typing import Callable, Optional

from savvy.config import Mode, SessionConfig
from savvy.logging import get_savvy_logger
from savvy.runbook import Runbook
from savvy.server.replay import ReplayServer
from savvy.shell.launcher import Launcher
from savvy.terminal import PtySession

logger = get_savvy_logger(__name__)


class RunbookRunner:
    """
    Replays a runbook in an interactive shell.

    Each prompt of the spawned shell is prefilled with the current step;
    running it advances to the next one.
    """

    def __init__(
        self,
        runbook: Runbook,
        config: SessionConfig,
        launcher: Launcher,
        confirm: Optional[Callable[[str], bool]] = None,
    ):
        """
        Args:
            runbook: Runbook to replay; supplies title and alias
            config: Socket path, steps, logger and grace period; the
                runbook's steps are used when config.steps is empty
            launcher: Prepares the shell
            confirm: Asked before replacing an unreachable session
        """
        self.runbook = runbook
        self.config = config
        self.launcher = launcher
        self.confirm = confirm
        if not self.config.steps:
            self.config.steps = list(runbook.steps)

    def run(self) -> int:
        """
        Run the replay shell until the user exits it.

        Returns:
            The shell's exit status

        Raises:
            ValueError: If there are no steps
            AbortedByUser: If the user declines to replace another session
            UnsupportedShellError: If the shell cannot be driven
            ExecutableNotFoundError: If the shell or savvy is missing
        """
        server = ReplayServer(
            self.config.steps,
            socket_path=self.config.socket_path,
            logger=self.config.logger,
            confirm=self.confirm,
        )
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()

        command = None
        try:
            command = self.launcher.spawn(Mode.RUN, server.socket_path, self.runbook)
            command.wait_delay = self.config.wait_delay
            self.show()
            status = PtySession(command).run(stop_event=server.closed_event)
            if server.closed:
                logger.warning("Runbook session was ended by another savvy session")
        finally:
            if command is not None:
                command.cleanup()
            server.close()
            thread.join(timeout=1)

        return status

    def show(self) -> None:
        """Print the runbook before the shell starts."""
        logger.notice(f"Running: {self.runbook.title}")
        for index, step in enumerate(self.config.steps):
            logger.step(index, step.command, step.description)
