"""
Runbook replay server.

Holds the cursor into a runbook's steps and the placeholder values the user
has provided. The replay shell's hooks ask it for the current command and
move the cursor forward or back.

Wire format: one JSON request per connection,

    {"command": "next", "payload": {...}}

answered by one JSON response,

    {"command": "next", "payload": {"index": 1, "command": ..., ...}}

or {"error": "..."} when the request cannot be served.
"""

import json
import logging
import socket
from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, Optional, Sequence

from savvy.config import DEFAULT_RUN_SOCKET_PATH, Mode
from savvy.param import substitute
from savvy.runbook import ReplayStep
from savvy.server.cleanup import claim_socket_path
from savvy.server.unix import ServerUnavailableError, UnixSocketServer, dial, read_all

NEXT = "next"
PREVIOUS = "previous"
CURRENT = "current"
SET_PARAMS = "set-params"
SHUTDOWN = "shutdown"

REQUESTS = (NEXT, PREVIOUS, CURRENT, SET_PARAMS, SHUTDOWN)


class ReplayRequestError(RuntimeError):
    """Raised by the client when the server rejects a request."""

    pass


@dataclass
class State:
    """
    Snapshot of a replay session.

    Attributes:
        index: Zero-based position of the current step
        command: Current step's command as written in the runbook
        command_with_params: Command with bound placeholders substituted
        params: All placeholder bindings made so far
    """
    index: int
    command: str
    command_with_params: str
    params: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "State":
        return cls(
            index=int(data["index"]),
            command=data["command"],
            command_with_params=data.get("command_with_params", data["command"]),
            params=dict(data.get("params") or {}),
        )


class ReplayState:
    """
    Cursor and parameter bindings for a list of steps.

    The cursor saturates at both ends. Bindings are first-writer-wins: a
    placeholder keeps the first value it was given. Not thread-safe; the
    server serializes access.
    """

    def __init__(self, steps: Sequence[ReplayStep]):
        if not steps:
            raise ValueError("cannot replay a runbook with no steps")
        self.steps = tuple(steps)
        self.index = 0
        self.params: Dict[str, str] = {}

    def next(self) -> None:
        self.index = min(self.index + 1, len(self.steps) - 1)

    def previous(self) -> None:
        self.index = max(self.index - 1, 0)

    def set_params(self, params: Dict[str, str]) -> None:
        for key, value in params.items():
            self.params.setdefault(key, value)

    def current(self) -> State:
        command = self.steps[self.index].command
        return State(
            index=self.index,
            command=command,
            command_with_params=substitute(command, self.params),
            params=dict(self.params),
        )


class ReplayServer(UnixSocketServer):
    """
    Serves replay transitions to the shell hooks of a run session.

    Example:
        server = ReplayServer(steps, confirm=ask_user)
        threading.Thread(target=server.serve_forever, daemon=True).start()
    """

    def __init__(
        self,
        steps: Sequence[ReplayStep],
        socket_path: str = DEFAULT_RUN_SOCKET_PATH,
        logger: Optional[logging.Logger] = None,
        confirm: Optional[Callable[[str], bool]] = None,
    ):
        """
        Take over the socket path if needed and bind it.

        Args:
            steps: Runbook steps, in order
            socket_path: Path to listen on
            logger: Logger (default: module logger)
            confirm: Asked before removing a socket no server answers on

        Raises:
            ValueError: If steps is empty
            AbortedByUser: If the user declines the takeover
            SocketExistsError: If the path was recreated during takeover
        """
        state = ReplayState(steps)
        claim_socket_path(socket_path, Mode.RUN, shutdown_replay_server, confirm=confirm, logger=logger)
        super().__init__(socket_path, logger)
        self.state = state

    def current_state(self) -> State:
        with self.lock:
            return self.state.current()

    def handle_connection(self, conn: socket.socket) -> None:
        raw = read_all(conn)
        try:
            request = json.loads(raw.decode("utf-8"))
            name = request["command"]
            payload = request.get("payload") or {}
            if not isinstance(payload, dict):
                raise TypeError("payload must be an object")
        except (UnicodeDecodeError, ValueError, KeyError, TypeError, AttributeError) as e:
            self.logger.error(f"malformed replay request {raw!r}: {e}")
            self._respond(conn, {"error": f"malformed request: {e}"})
            return

        self.logger.debug(f"replay request: {name}")

        if name == SHUTDOWN:
            self._respond(conn, {"command": name, "payload": {}})
            self.close()
            return

        if name not in REQUESTS:
            self.logger.debug(f"unknown replay request: {name}")
            self._respond(conn, {"error": f"unknown command: {name}"})
            return

        with self.lock:
            if name == NEXT:
                self.state.next()
            elif name == PREVIOUS:
                self.state.previous()
            elif name == SET_PARAMS:
                self.state.set_params({str(k): str(v) for k, v in payload.items()})
            current = self.state.current()

        self._respond(conn, {"command": name, "payload": current.to_dict()})

    def _respond(self, conn: socket.socket, response: Dict) -> None:
        conn.sendall(json.dumps(response).encode("utf-8") + b"\n")


class ReplayClient:
    """Client used by the `savvy internal` hook commands."""

    def __init__(self, socket_path: str = DEFAULT_RUN_SOCKET_PATH):
        self.socket_path = socket_path

    def request(self, command: str, payload: Optional[Dict] = None) -> Dict:
        """
        Send one request and return the response payload.

        Raises:
            ServerUnavailableError: If no replay session is listening
            ReplayRequestError: If the server rejects the request
        """
        message = {"command": command, "payload": payload or {}}
        with dial(self.socket_path) as sock:
            sock.sendall(json.dumps(message).encode("utf-8"))
            sock.shutdown(socket.SHUT_WR)
            raw = read_all(sock)

        if not raw:
            raise ServerUnavailableError(f"replay session at {self.socket_path} closed without answering")

        try:
            response = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ReplayRequestError(f"unreadable response from replay session: {e}") from e

        if not isinstance(response, dict):
            raise ReplayRequestError(f"unexpected response from replay session: {response!r}")
        if "error" in response:
            raise ReplayRequestError(response["error"])
        return response.get("payload") or {}

    def current_state(self) -> State:
        return State.from_dict(self.request(CURRENT))

    def next(self) -> State:
        return State.from_dict(self.request(NEXT))

    def previous(self) -> State:
        return State.from_dict(self.request(PREVIOUS))

    def set_params(self, params: Dict[str, str]) -> State:
        return State.from_dict(self.request(SET_PARAMS, params))

    def shutdown(self) -> None:
        self.request(SHUTDOWN)


def shutdown_replay_server(socket_path: str) -> None:
    """
    Stop the replay session listening on socket_path.

    Raises:
        ServerUnavailableError: If no replay session answers, including when
            whatever listens there does not speak the replay protocol
    """
    try:
        ReplayClient(socket_path).shutdown()
    except ReplayRequestError as e:
        raise ServerUnavailableError(f"no replay session at {socket_path}: {e}") from e
