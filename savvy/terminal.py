"""
Run a session shell on a pseudo-terminal.

The shell gets its own pty so job control and line editing work as usual,
while Savvy keeps the parent process around to own the session's server.
"""

import fcntl
import os
import pty
import select
import signal
import sys
import termios
import threading
import time
import tty
from typing import Optional

from savvy.logging import get_logger
from savvy.shell.launcher import ShellCommand

logger = get_logger(__name__)

# How often the copy loop checks the stop event
POLL_INTERVAL = 0.2

READ_SIZE = 1024


def _write_all(fd: int, data: bytes) -> None:
    while data:
        written = os.write(fd, data)
        data = data[written:]


class PtySession:
    """
    Interactive shell attached to the user's terminal through a pty.

    Example:
        command = launcher.spawn(Mode.RECORD, socket_path)
        try:
            status = PtySession(command).run(stop_event=server.closed_event)
        finally:
            command.cleanup()
    """

    def __init__(self, command: ShellCommand, stdin_fd: Optional[int] = None, stdout_fd: Optional[int] = None):
        self.command = command
        self.stdin_fd = sys.stdin.fileno() if stdin_fd is None else stdin_fd
        self.stdout_fd = sys.stdout.fileno() if stdout_fd is None else stdout_fd
        self.pid: Optional[int] = None

    def run(self, stop_event: Optional[threading.Event] = None) -> int:
        """
        Start the shell and relay terminal I/O until it exits.

        The user's terminal is put in raw mode for the duration and always
        restored, whatever way the session ends.

        Args:
            stop_event: When set, the shell is hung up and the session ends

        Returns:
            The shell's exit status (negative signal number if killed)
        """
        pid, master_fd = pty.fork()

        if pid == 0:
            argv = self.command.argv
            try:
                os.execvpe(argv[0], argv, self.command.env)
            except OSError as e:
                sys.stderr.write(f"Failed to exec shell {argv[0]}: {e}\n")
            os._exit(127)

        self.pid = pid
        is_tty = os.isatty(self.stdin_fd)
        old_attrs = None
        previous_handler = None
        resize_installed = False
        stopped = False

        try:
            if is_tty:
                old_attrs = termios.tcgetattr(self.stdin_fd)
                tty.setraw(self.stdin_fd)
                self._sync_size(master_fd)

                # signal handlers can only be set from the main thread
                if threading.current_thread() is threading.main_thread():
                    previous_handler = signal.signal(signal.SIGWINCH, lambda signum, frame: self._sync_size(master_fd))
                    resize_installed = True

            stopped = self._copy(master_fd, stop_event)
        finally:
            if resize_installed:
                signal.signal(signal.SIGWINCH, previous_handler)
            if old_attrs is not None:
                termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, old_attrs)
            os.close(master_fd)

        return self._reap(pid, hangup=stopped)

    def _copy(self, master_fd: int, stop_event: Optional[threading.Event]) -> bool:
        """Relay bytes until the shell closes the pty. Returns True if stopped."""
        fds = [master_fd, self.stdin_fd]

        while True:
            if stop_event is not None and stop_event.is_set():
                logger.debug("session stopped while shell was running")
                return True

            r, _, _ = select.select(fds, [], [], POLL_INTERVAL)

            if master_fd in r:
                try:
                    data = os.read(master_fd, READ_SIZE)
                except OSError:
                    # EIO once the shell side of the pty is closed
                    return False
                if not data:
                    return False
                _write_all(self.stdout_fd, data)

            if self.stdin_fd in r:
                data = os.read(self.stdin_fd, READ_SIZE)
                if not data:
                    fds.remove(self.stdin_fd)
                    continue
                _write_all(master_fd, data)

    def _sync_size(self, master_fd: int) -> None:
        try:
            size = fcntl.ioctl(self.stdin_fd, termios.TIOCGWINSZ, b"\0" * 8)
            fcntl.ioctl(master_fd, termios.TIOCSWINSZ, size)
        except OSError as e:
            logger.debug(f"could not resize pty: {e}")

    def _reap(self, pid: int, hangup: bool) -> int:
        """Wait for the shell, killing it after the grace period."""
        if hangup:
            try:
                os.kill(pid, signal.SIGHUP)
            except ProcessLookupError:
                pass

        deadline = time.monotonic() + self.command.wait_delay
        while True:
            wpid, status = os.waitpid(pid, os.WNOHANG)
            if wpid:
                return os.waitstatus_to_exitcode(status)
            if time.monotonic() >= deadline:
                break
            time.sleep(0.05)

        logger.debug(f"shell {pid} did not exit within {self.command.wait_delay}s, killing it")
        try:
            os.kill(pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        _, status = os.waitpid(pid, 0)
        return os.waitstatus_to_exitcode(status)
