"""
Recording session: run a hooked shell and collect the commands it runs.
"""

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from savvy.config import Mode, SessionConfig
from savvy.logging import get_savvy_logger
from savvy.server.capture import RecordedCommand, open_capture_server
from savvy.shell.launcher import Launcher
from savvy.terminal import PtySession

logger = get_savvy_logger(__name__)


@dataclass
class Recording:
    """Complete recording session."""

    start_time: str
    end_time: Optional[str] = None
    shell: str = ""
    commands: List[RecordedCommand] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "shell": self.shell,
            "commands": [cmd.to_dict() for cmd in self.commands],
        }


class RecordingSession:
    """
    Recording session manager.

    Owns the capture server for the lifetime of the recording shell.
    """

    def __init__(
        self,
        config: SessionConfig,
        launcher: Launcher,
        confirm: Optional[Callable[[str], bool]] = None,
    ):
        """
        Initialize recording session.

        Args:
            config: Socket path, logger and grace period for the session
            launcher: Prepares the shell to record
            confirm: Asked before replacing an unreachable session
        """
        self.config = config
        self.launcher = launcher
        self.confirm = confirm
        self.recording = Recording(start_time=datetime.now().isoformat(), shell=str(launcher.kind))

    def start(self) -> List[RecordedCommand]:
        """
        Run the recording shell until the user exits it.

        Returns:
            Captured commands in arrival order

        Raises:
            AbortedByUser: If another session owns the socket and the user
                declines to replace it
            UnsupportedShellError: If the shell cannot be recorded
            ExecutableNotFoundError: If the shell or savvy is missing
        """
        server = open_capture_server(
            self.config.socket_path,
            confirm=self.confirm,
            logger=self.config.logger,
            on_command=self._on_command,
        )
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()

        command = None
        try:
            command = self.launcher.spawn(Mode.RECORD, server.socket_path)
            command.wait_delay = self.config.wait_delay
            logger.notice("Recording session started. Type 'exit' to stop.")
            PtySession(command).run(stop_event=server.closed_event)
            if server.closed:
                logger.warning("Recording was ended by another savvy session")
        finally:
            if command is not None:
                command.cleanup()
            server.close()
            thread.join(timeout=1)

        self.recording.end_time = datetime.now().isoformat()
        self.recording.commands = server.commands()
        return list(self.recording.commands)

    def _on_command(self, entry: RecordedCommand) -> None:
        logger.debug(f"command recorded: {entry.command}")

    def save(self, output_file: str) -> None:
        """
        Save recording to file.

        Args:
            output_file: Path to save recording JSON
        """
        save_recording(self.recording, output_file)


def save_recording(recording: Recording, output_file: str) -> None:
    """Write a recording as JSON; file contents are base64 encoded."""
    with open(output_file, "w") as f:
        json.dump(recording.to_dict(), f, indent=2)

    logger.success(f"Recording saved to {output_file}")
    logger.notice(f"Commands captured: {len(recording.commands)}")
