"""
Command capture server.

During a recording session every shell hook connects to this server and
writes the command about to run. The server keeps the commands in arrival
order until the session ends.

Wire format: UTF-8 text terminated by a newline, after which the client
closes its write side. Nothing is sent back. Two control messages start
with an ASCII record separator, which cannot come from a typed command:

    \\x1esavvy-shutdown          stop the server
    \\x1esavvy-file <path>       attach a file to the recording
"""

import base64
import logging
import os
import socket
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from savvy.config import DEFAULT_SOCKET_PATH, Mode
from savvy.server.cleanup import claim_socket_path
from savvy.server.unix import UnixSocketServer, dial, read_all

CONTROL_PREFIX = "\x1esavvy-"
SHUTDOWN_DIRECTIVE = CONTROL_PREFIX + "shutdown"
FILE_DIRECTIVE = CONTROL_PREFIX + "file "

MAX_FILE_SIZE = 25 * 1024

# Commands that attach files are recorded as file entries instead
RECORD_FILE_PREFIX = "savvy record file"


class FileRejectedError(ValueError):
    """Raised when a file cannot be attached to a recording."""

    pass


@dataclass(frozen=True)
class FileInfo:
    """A file attached to a recording."""
    path: str
    mode: int
    content: bytes

    def to_dict(self) -> Dict:
        return {
            "path": self.path,
            "mode": self.mode,
            "content": base64.b64encode(self.content).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "FileInfo":
        return cls(
            path=data["path"],
            mode=int(data.get("mode", 0o644)),
            content=base64.b64decode(data.get("content", "")),
        )


@dataclass(frozen=True)
class RecordedCommand:
    """One captured entry: a command line, or a file when file_info is set."""
    command: str
    file_info: Optional[FileInfo] = None

    def to_dict(self) -> Dict:
        data: Dict = {"command": self.command}
        if self.file_info is not None:
            data["file_info"] = self.file_info.to_dict()
        return data


def read_file_info(path: str) -> FileInfo:
    """
    Load a file for attaching to a recording.

    Args:
        path: File to attach

    Returns:
        FileInfo with an absolute path, permission bits and content

    Raises:
        FileRejectedError: If the file is missing, a directory, empty or
            larger than MAX_FILE_SIZE
    """
    path = os.path.abspath(path)
    try:
        st = os.stat(path)
    except OSError as e:
        raise FileRejectedError(f"cannot read {path}: {e.strerror}") from e

    if os.path.isdir(path):
        raise FileRejectedError(f"{path} is a directory")
    if st.st_size == 0:
        raise FileRejectedError(f"{path} is empty")
    if st.st_size > MAX_FILE_SIZE:
        raise FileRejectedError(f"{path} is larger than {MAX_FILE_SIZE // 1024} KiB")

    with open(path, "rb") as f:
        content = f.read(MAX_FILE_SIZE + 1)
    if len(content) > MAX_FILE_SIZE:
        raise FileRejectedError(f"{path} is larger than {MAX_FILE_SIZE // 1024} KiB")

    return FileInfo(path=path, mode=st.st_mode & 0o777, content=content)


class CaptureServer(UnixSocketServer):
    """
    Collects commands sent by the recording shell's hooks.

    Example:
        server = CaptureServer("/tmp/savvy-socket")
        threading.Thread(target=server.serve_forever, daemon=True).start()
        ...
        server.close()
        commands = server.commands()
    """

    def __init__(
        self,
        socket_path: str = DEFAULT_SOCKET_PATH,
        logger: Optional[logging.Logger] = None,
        on_command: Optional[Callable[[RecordedCommand], None]] = None,
    ):
        """
        Args:
            socket_path: Path to listen on
            logger: Logger (default: module logger)
            on_command: Called with each entry after it is stored

        Raises:
            SocketExistsError: If the path is taken
        """
        super().__init__(socket_path, logger)
        self.on_command = on_command
        self._commands: List[RecordedCommand] = []

    def commands(self) -> List[RecordedCommand]:
        """Snapshot of the entries captured so far, in arrival order."""
        with self.lock:
            return list(self._commands)

    def handle_connection(self, conn: socket.socket) -> None:
        text = read_all(conn).decode("utf-8", errors="replace")
        if text.endswith("\n"):
            text = text[:-1]
        self.process(text)

    def process(self, text: str) -> None:
        """Handle one message from a client."""
        if text == SHUTDOWN_DIRECTIVE:
            self.logger.debug(f"shutdown requested on {self.socket_path}")
            self.close()
            return

        if text.startswith(FILE_DIRECTIVE):
            path = text[len(FILE_DIRECTIVE):]
            try:
                info = read_file_info(path)
            except FileRejectedError as e:
                self.logger.warning(f"file not recorded: {e}")
                return
            self._append(RecordedCommand(command=f"{RECORD_FILE_PREFIX} {info.path}", file_info=info))
            return

        if not text.strip() or text.strip().startswith(RECORD_FILE_PREFIX):
            return

        self._append(RecordedCommand(command=text))

    def _append(self, entry: RecordedCommand) -> None:
        with self.lock:
            if self.closed:
                self.logger.debug(f"dropping entry received after close: {entry.command}")
                return
            self._commands.append(entry)
        if self.on_command:
            self.on_command(entry)


class CaptureClient:
    """Client used by shell hooks and `savvy record file`."""

    def __init__(self, socket_path: str = DEFAULT_SOCKET_PATH):
        self.socket_path = socket_path

    def _send(self, text: str) -> None:
        with dial(self.socket_path) as sock:
            sock.sendall(text.encode("utf-8") + b"\n")
            sock.shutdown(socket.SHUT_WR)

    def send(self, command: str) -> None:
        """
        Send a command line.

        Raises:
            ServerUnavailableError: If no recording session is listening
        """
        self._send(command)

    def send_file(self, path: str) -> FileInfo:
        """
        Attach a file to the recording.

        The file is checked locally first so the user sees why it was
        rejected; the server reads it again itself.

        Raises:
            FileRejectedError: If the file cannot be attached
            ServerUnavailableError: If no recording session is listening
        """
        info = read_file_info(path)
        self._send(FILE_DIRECTIVE + info.path)
        return info

    def send_shutdown(self) -> None:
        """
        Ask the server to stop.

        Raises:
            ServerUnavailableError: If no recording session is listening
        """
        self._send(SHUTDOWN_DIRECTIVE)


def shutdown_capture_server(socket_path: str) -> None:
    CaptureClient(socket_path).send_shutdown()


def open_capture_server(
    socket_path: str = DEFAULT_SOCKET_PATH,
    confirm: Optional[Callable[[str], bool]] = None,
    logger: Optional[logging.Logger] = None,
    on_command: Optional[Callable[[RecordedCommand], None]] = None,
) -> CaptureServer:
    """
    Start a capture server, replacing any session already on the path.

    Raises:
        AbortedByUser: If a stale session exists and the user declines
    """
    claim_socket_path(socket_path, Mode.RECORD, shutdown_capture_server, confirm=confirm, logger=logger)
    return CaptureServer(socket_path, logger=logger, on_command=on_command)
