"""
Shared fixtures for server tests.
"""

import shutil
import tempfile
import threading
import time

import pytest


@pytest.fixture
def socket_dir():
    """Short-lived directory for sockets; kept under /tmp so paths stay short."""
    path = tempfile.mkdtemp(prefix="savvy-", dir="/tmp")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def serve():
    """Run servers on background threads and close them after the test."""
    started = []

    def start(server):
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        started.append((server, thread))
        return server

    yield start

    for server, thread in started:
        server.close()
        thread.join(timeout=2)


@pytest.fixture
def wait_until():
    """Poll a condition; fire-and-forget writes are handled asynchronously."""
    def wait(predicate, timeout=2.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    return wait
