"""
Unix domain socket plumbing shared by the capture and replay servers.

Servers accept on a dedicated loop and handle every connection on its own
thread, so a stalled hook process never blocks the next one. Clients are
one-shot: connect, write, optionally read, close.
"""

import logging
import os
import socket
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Optional

from savvy.logging import get_logger

# How often the accept loop checks whether the server was closed
POLL_INTERVAL = 0.2

# Upper bound on a single hook connection
CONNECTION_TIMEOUT = 5.0

CLIENT_TIMEOUT = 2.0

RECV_SIZE = 4096


class SocketExistsError(FileExistsError):
    """Raised when the socket path is already present on disk."""

    def __init__(self, socket_path: str):
        self.socket_path = socket_path
        super().__init__(f"socket already exists: {socket_path}")


class ServerUnavailableError(ConnectionError):
    """Raised by clients when no server answers on the socket."""

    pass


def read_all(conn: socket.socket) -> bytes:
    """Read from a connection until the peer closes its write side."""
    chunks = []
    while True:
        data = conn.recv(RECV_SIZE)
        if not data:
            break
        chunks.append(data)
    return b"".join(chunks)


@contextmanager
def dial(socket_path: str, timeout: float = CLIENT_TIMEOUT) -> Iterator[socket.socket]:
    """
    Connect to a server socket.

    Connection refused, reset or a missing socket all mean the server is
    gone and are raised as ServerUnavailableError.
    """
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.settimeout(timeout)
    try:
        try:
            sock.connect(socket_path)
        except OSError as e:
            raise ServerUnavailableError(f"no server listening at {socket_path}: {e}") from e
        try:
            yield sock
        except (ConnectionResetError, BrokenPipeError, socket.timeout) as e:
            raise ServerUnavailableError(f"connection to {socket_path} lost: {e}") from e
    finally:
        sock.close()


class UnixSocketServer(ABC):
    """
    Base class for one-request-per-connection servers.

    Subclasses implement handle_connection(). State shared between
    connections must be guarded with self.lock.
    """

    def __init__(self, socket_path: str, logger: Optional[logging.Logger] = None):
        """
        Bind the socket.

        Args:
            socket_path: Filesystem path to listen on
            logger: Logger for connection errors (default: module logger)

        Raises:
            SocketExistsError: If something already exists at socket_path
            OSError: If the socket cannot be bound
        """
        if os.path.lexists(socket_path):
            raise SocketExistsError(socket_path)

        self.socket_path = socket_path
        self.logger = logger or get_logger(__name__)
        self.lock = threading.Lock()
        self._closed = threading.Event()

        listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            listener.bind(socket_path)
            listener.listen()
            listener.settimeout(POLL_INTERVAL)
        except OSError:
            listener.close()
            raise
        self._listener = listener
        self._inode = os.stat(socket_path).st_ino

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def closed_event(self) -> threading.Event:
        """Set once the server has been closed, by close() or a shutdown request."""
        return self._closed

    def serve_forever(self) -> None:
        """Accept connections until close() is called."""
        while not self.closed:
            try:
                conn, _ = self._listener.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self.closed:
                    return
                self.logger.debug(f"failed to accept connection: {e}")
                continue

            conn.settimeout(CONNECTION_TIMEOUT)
            threading.Thread(target=self._handle, args=(conn,), daemon=True).start()

    def _handle(self, conn: socket.socket) -> None:
        with conn:
            try:
                self.handle_connection(conn)
            except OSError as e:
                # expected when the server shuts down mid-request
                if not self.closed:
                    self.logger.warning(f"connection error on {self.socket_path}: {e}")

    @abstractmethod
    def handle_connection(self, conn: socket.socket) -> None:
        """Serve one request. The connection is closed afterwards."""
        pass

    def close(self) -> None:
        """
        Stop accepting connections and remove the socket file.

        Safe to call more than once and before serve_forever() has started.
        """
        with self.lock:
            if self.closed:
                return
            self._closed.set()

        self._listener.close()
        self._remove_socket_file()

    def _remove_socket_file(self) -> None:
        # A newer session may already own the path after a takeover
        try:
            if os.stat(self.socket_path).st_ino == self._inode:
                os.unlink(self.socket_path)
        except FileNotFoundError:
            pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
