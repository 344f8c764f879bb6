"""
Shared fixtures: a threaded fake IQFeed historical lookup service.

The fake speaks the real wire protocol on an ephemeral localhost port so
sessions, downloads and the scheduler run over actual sockets.
"""

import socket
import threading
from typing import Callable, List, Optional

import pytest

from qdownload.config import DownloadConfig

# Position of the RequestID field per lookup command
REQUEST_ID_FIELD = {
    "HDT": 6,
    "HIT": 9,
    "HTT": 8,
}

VALID_EOD_BAR = "{rid},2019-02-21,24.0600,23.8038,23.8700,24.0000,29183,0,"
VALID_MINUTE_BAR = "{rid},2019-02-26 12:22:00,23.8000,23.8000,23.8000,23.8000,13578,100,0,"
VALID_TICK = "{rid},2019-02-25 11:30:06.691000,23.8800,12,6714,23.8700,23.9700,6,O,25,3D87,0,13"
END_MESSAGE = "{rid},!ENDMSG!,"


class FakeHistoryServer:
    """Answers each connection's lookup with lines from a responder."""

    def __init__(self):
        self.responder: Callable[[str], List[str]] = lambda rid: [END_MESSAGE.format(rid=rid)]
        self.handshakes: List[str] = []
        self.commands: List[str] = []
        self.connections = 0
        self._lock = threading.Lock()
        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self._socket.getsockname()[1]

    def respond_with(self, lines: List[str]):
        """Reply with template lines; ``{rid}`` is replaced by the request id."""
        self.responder = lambda rid: [line.format(rid=rid) for line in lines]

    def start(self):
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind(("127.0.0.1", 0))
        self._socket.listen(16)
        self._thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._thread.start()

    def stop(self):
        if self._socket:
            # close() alone does not wake a blocked accept() on Linux
            try:
                self._socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._socket.close()
        if self._thread:
            self._thread.join(timeout=5)

    def _accept_loop(self):
        while True:
            try:
                conn, _ = self._socket.accept()
            except OSError:
                break

            with self._lock:
                self.connections += 1

            threading.Thread(target=self._handle, args=(conn,), daemon=True).start()

    def _handle(self, conn: socket.socket):
        with conn:
            reader = conn.makefile('r', encoding='latin-1', newline='')
            handshake = reader.readline().rstrip("\r\n")
            command = reader.readline().rstrip("\r\n")

            with self._lock:
                self.handshakes.append(handshake)
                self.commands.append(command)

            fields = command.split(",")
            rid = fields[REQUEST_ID_FIELD.get(fields[0], 0)] if len(fields) > 6 else ""

            version = handshake.split(",")[-1]
            lines = [f"S,CURRENT PROTOCOL,{version}"] + self.responder(rid)
            conn.sendall("".join(f"{line}\r\n" for line in lines).encode('latin-1'))
            reader.close()


@pytest.fixture
def history_server():
    """Running fake history service, stopped after the test."""
    server = FakeHistoryServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def make_config(tmp_path, history_server):
    """Factory for configs writing to tmp_path and pointing at the fake service."""
    def factory(**overrides) -> DownloadConfig:
        options = {
            'start_date': "20190122",
            'end_date': "20190221",
            'out_directory': str(tmp_path),
            'parallelism': 2,
            'host': "127.0.0.1",
            'port': history_server.port,
        }
        options.update(overrides)
        return DownloadConfig(**options)

    return factory


@pytest.fixture
def closed_port() -> int:
    """A localhost port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
