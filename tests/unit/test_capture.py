"""
Unit tests for the command capture server.
"""

import base64
import os
import socket
import time

import pytest

from savvy.server.capture import (
    MAX_FILE_SIZE,
    CaptureClient,
    CaptureServer,
    FileInfo,
    FileRejectedError,
    read_file_info,
)
from savvy.server import unix
from savvy.server.unix import ServerUnavailableError, SocketExistsError


class TestCaptureServer:
    """Capturing commands over the socket."""

    @pytest.fixture(autouse=True)
    def setup_server(self, socket_dir, serve):
        self.socket_path = os.path.join(socket_dir, "capture.sock")
        self.received = []
        self.server = serve(CaptureServer(self.socket_path, on_command=self.received.append))
        self.client = CaptureClient(self.socket_path)

    def commands(self):
        return [entry.command for entry in self.server.commands()]

    def test_commands_in_order(self, wait_until):
        """Test commands are captured in the order they arrive."""
        for command in ["ls -la", "cd /tmp", "make test"]:
            count = len(self.commands())
            self.client.send(command)
            assert wait_until(lambda: len(self.commands()) == count + 1)

        assert self.commands() == ["ls -la", "cd /tmp", "make test"]

    def test_multiline_command(self, wait_until):
        """Test only the terminating newline is stripped."""
        self.client.send("for f in *; do\n  echo $f\ndone")
        assert wait_until(lambda: self.commands())
        assert self.commands() == ["for f in *; do\n  echo $f\ndone"]

    def test_ignored_commands(self, wait_until):
        """Test blank lines and the record file hook are not captured."""
        self.client.send("   ")
        self.client.send("savvy record file notes.txt")
        self.client.send("echo done")
        assert wait_until(lambda: self.commands())
        assert self.commands() == ["echo done"]

    def test_on_command_callback(self, wait_until):
        """Test the callback sees each captured entry."""
        self.client.send("whoami")
        assert wait_until(lambda: self.received)
        assert self.received[0].command == "whoami"

    def test_record_file(self, socket_dir, wait_until):
        """Test attaching a file stores its content and mode."""
        path = os.path.join(socket_dir, "notes.txt")
        with open(path, "w") as f:
            f.write("hello\n")
        os.chmod(path, 0o600)

        self.client.send_file(path)
        assert wait_until(lambda: self.server.commands())

        entry = self.server.commands()[0]
        assert entry.command == f"savvy record file {path}"
        assert entry.file_info.path == path
        assert entry.file_info.mode == 0o600
        assert entry.file_info.content == b"hello\n"

    def test_shutdown_directive(self, wait_until):
        """Test a shutdown request closes the server and removes the socket."""
        self.client.send_shutdown()
        assert wait_until(lambda: self.server.closed)
        assert self.server.closed_event.is_set()
        assert not os.path.exists(self.socket_path)

    def test_commands_survive_close(self, wait_until):
        """Test the log is still readable after close."""
        self.client.send("uptime")
        assert wait_until(lambda: self.commands())
        self.server.close()
        assert self.commands() == ["uptime"]

    def test_send_after_close(self):
        """Test clients report a closed server as unavailable."""
        self.server.close()
        with pytest.raises(ServerUnavailableError):
            self.client.send("ls")

    def test_stalled_connection_does_not_block_capture(self, wait_until):
        """Test a client that never finishes does not hold up the others."""
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as stalled:
            stalled.connect(self.socket_path)
            stalled.sendall(b"half a comm")

            self.client.send("ls")
            assert wait_until(lambda: self.commands())
            assert self.commands() == ["ls"]

    def test_timed_out_connection_is_dropped(self, monkeypatch, wait_until):
        """Test a connection that times out is discarded and serving continues."""
        monkeypatch.setattr(unix, "CONNECTION_TIMEOUT", 0.2)
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as stalled:
            stalled.connect(self.socket_path)
            stalled.sendall(b"half a comm")
            time.sleep(0.5)

            self.client.send("pwd")
            assert wait_until(lambda: self.commands())

        time.sleep(0.1)
        assert self.commands() == ["pwd"]
        assert not self.server.closed

    def test_empty_connection_is_ignored(self, wait_until):
        """Test a client that closes without writing leaves no entry."""
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as empty:
            empty.connect(self.socket_path)

        self.client.send("id")
        assert wait_until(lambda: self.commands())
        assert self.commands() == ["id"]


class TestServerLifecycle:
    """Binding and closing."""

    def test_existing_path(self, socket_dir):
        """Test binding fails when the path already exists."""
        path = os.path.join(socket_dir, "taken.sock")
        open(path, "w").close()
        with pytest.raises(SocketExistsError):
            CaptureServer(path)

    def test_close_is_idempotent(self, socket_dir):
        """Test close can be called repeatedly, before serving."""
        path = os.path.join(socket_dir, "idle.sock")
        server = CaptureServer(path)
        assert os.path.exists(path)
        server.close()
        server.close()
        assert server.closed
        assert not os.path.exists(path)

    def test_close_keeps_newer_socket(self, socket_dir):
        """Test closing a replaced server leaves the new socket alone."""
        path = os.path.join(socket_dir, "shared.sock")
        old = CaptureServer(path)
        os.unlink(path)
        new = CaptureServer(path)
        try:
            old.close()
            assert os.path.exists(path)
        finally:
            new.close()
        assert not os.path.exists(path)

    def test_no_server(self, socket_dir):
        """Test sending without a server fails cleanly."""
        client = CaptureClient(os.path.join(socket_dir, "missing.sock"))
        with pytest.raises(ServerUnavailableError):
            client.send("ls")


class TestFileInfo:
    """Checks on attached files."""

    def test_rejects_directory(self, socket_dir):
        """Test directories are rejected."""
        with pytest.raises(FileRejectedError):
            read_file_info(socket_dir)

    def test_rejects_empty(self, socket_dir):
        """Test empty files are rejected."""
        path = os.path.join(socket_dir, "empty")
        open(path, "w").close()
        with pytest.raises(FileRejectedError):
            read_file_info(path)

    def test_rejects_large(self, socket_dir):
        """Test files above the size limit are rejected."""
        path = os.path.join(socket_dir, "large")
        with open(path, "wb") as f:
            f.write(b"x" * (MAX_FILE_SIZE + 1))
        with pytest.raises(FileRejectedError):
            read_file_info(path)

    def test_rejects_missing(self, socket_dir):
        """Test missing files are rejected."""
        with pytest.raises(FileRejectedError):
            read_file_info(os.path.join(socket_dir, "missing"))

    def test_accepts_limit(self, socket_dir):
        """Test a file of exactly the limit is accepted."""
        path = os.path.join(socket_dir, "limit")
        with open(path, "wb") as f:
            f.write(b"x" * MAX_FILE_SIZE)
        assert len(read_file_info(path).content) == MAX_FILE_SIZE

    def test_to_dict(self):
        """Test content is base64 encoded for JSON."""
        info = FileInfo(path="/etc/motd", mode=0o644, content=b"hi")
        data = info.to_dict()
        assert data["content"] == base64.b64encode(b"hi").decode()
        assert FileInfo.from_dict(data) == info
