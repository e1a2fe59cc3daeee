"""
Unix socket servers owned by recording and replay sessions.
"""

from savvy.server.capture import CaptureClient, CaptureServer, FileInfo, RecordedCommand
from savvy.server.cleanup import AbortedByUser, claim_socket_path
from savvy.server.replay import ReplayClient, ReplayServer, ReplayState, State
from savvy.server.unix import ServerUnavailableError, SocketExistsError

__all__ = [
    "CaptureServer",
    "CaptureClient",
    "RecordedCommand",
    "FileInfo",
    "ReplayServer",
    "ReplayClient",
    "ReplayState",
    "State",
    "AbortedByUser",
    "claim_socket_path",
    "ServerUnavailableError",
    "SocketExistsError",
]
