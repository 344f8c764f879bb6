"""
Historical Lookup Protocol Session

One TCP session per symbol download: connect, set the protocol version,
send a single request and stream the classified response records until
the end marker.

Records are comma separated lines. The first field is the request id
echoed by the service, or ``S`` for state messages. The second field
carries the end marker or the error marker.
"""

import socket
import logging
from enum import Enum
from typing import Iterator, List, Optional

from .exceptions import IQFeedConnectionError, IQFeedServiceError, ProtocolViolationError

logger = logging.getLogger(__name__)

STATE_MESSAGE = "S"
ERROR_MESSAGE = "E"
END_MESSAGE = "!ENDMSG!"

LINE_TERMINATOR = "\r\n"
FIELD_SEPARATOR = ","

BUFFER_SIZE = 4 * 1024 * 1024


class SessionState(Enum):
    """Protocol session state."""
    CONNECTING = "connecting"
    HANDSHAKE_SENT = "handshake_sent"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


class RecordType(Enum):
    """Classification of a response record."""
    DATA = "data"
    STATE = "state"
    END = "end"
    ERROR = "error"


def classify_record(fields: List[str], request_id: str) -> RecordType:
    """
    Classify one response record against the active request id.

    Args:
        fields: Record fields as delimited by the service
        request_id: Request id of the active session

    Returns:
        RecordType of the record

    Raises:
        ProtocolViolationError: Empty record or foreign request id
    """
    if not fields:
        raise ProtocolViolationError("empty row", fields, request_id)

    if fields[0] == STATE_MESSAGE:
        return RecordType.STATE

    if fields[0] != request_id:
        raise ProtocolViolationError("incorrect request id", fields, request_id)

    if len(fields) > 1 and fields[1] == END_MESSAGE:
        return RecordType.END

    if len(fields) >= 3 and fields[1] == ERROR_MESSAGE:
        return RecordType.ERROR

    return RecordType.DATA


class ProtocolSession:
    """
    Single-request session against the historical lookup port.

    Use as a context manager; the socket is closed on every exit path:

        with ProtocolSession(host, port, "6.0", "R1") as session:
            session.send_request(command)
            for fields in session.records():
                ...
    """

    def __init__(self, host: str, port: int, protocol: str, request_id: str,
                 detailed_logging: bool = False):
        """
        Initialize session.

        Args:
            host: Service host
            port: Historical lookup port
            protocol: Protocol version sent in the handshake
            request_id: Request id of the single request sent on this session
            detailed_logging: Log every received record at DEBUG
        """
        self.host = host
        self.port = port
        self.protocol = protocol
        self.request_id = request_id
        self.detailed_logging = detailed_logging

        self.state = SessionState.CONNECTING
        self.records_received = 0

        self._socket: Optional[socket.socket] = None
        self._reader = None

    def __enter__(self) -> 'ProtocolSession':
        try:
            self.open()
        except IQFeedConnectionError:
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is not None and self.state != SessionState.COMPLETED:
            self.state = SessionState.FAILED
        self.close()

    def open(self):
        """
        Connect and send the protocol handshake.

        Raises:
            IQFeedConnectionError: Connection or handshake write failed
        """
        self.state = SessionState.CONNECTING

        try:
            self._socket = socket.create_connection((self.host, self.port))
        except OSError as e:
            self.state = SessionState.FAILED
            raise IQFeedConnectionError(
                f"Could not connect to IQFeed at {self.host}:{self.port}",
                self.host, self.port, e
            )

        self._reader = self._socket.makefile('r', buffering=BUFFER_SIZE,
                                             encoding='latin-1', newline='')

        self._write(f"S,SET PROTOCOL,{self.protocol}", "Could not set protocol")
        self.state = SessionState.HANDSHAKE_SENT

    def send_request(self, command: str):
        """
        Send the lookup command.

        Raises:
            IQFeedConnectionError: Request write failed
        """
        self.state = SessionState.REQUESTING
        self._write(command, "Could not send request")
        self.state = SessionState.STREAMING

    def records(self) -> Iterator[List[str]]:
        """
        Yield data records until the end marker.

        State records are discarded. The generator returns normally when
        the end marker arrives, leaving the session COMPLETED.

        Raises:
            ProtocolViolationError: Framing error or foreign request id
            IQFeedServiceError: Service reported an error for the request
            IQFeedConnectionError: Reading from the socket failed
        """
        while True:
            fields = self._read_record()

            try:
                record_type = classify_record(fields, self.request_id)
            except ProtocolViolationError:
                self.state = SessionState.FAILED
                raise

            if record_type is RecordType.STATE:
                continue

            if record_type is RecordType.END:
                self.state = SessionState.COMPLETED
                return

            if record_type is RecordType.ERROR:
                self.state = SessionState.FAILED
                raise IQFeedServiceError(fields[2])

            yield fields

    def close(self):
        """Close reader and socket. Safe to call more than once."""
        if self._reader is not None:
            try:
                self._reader.close()
            except OSError as e:
                logger.warning(f"Error closing socket reader: {e}")
            finally:
                self._reader = None

        if self._socket is not None:
            try:
                self._socket.close()
            except OSError as e:
                logger.warning(f"Error closing socket: {e}")
            finally:
                self._socket = None

    def _write(self, line: str, error_message: str):
        try:
            self._socket.sendall(f"{line}{LINE_TERMINATOR}".encode('latin-1'))
        except OSError as e:
            self.state = SessionState.FAILED
            raise IQFeedConnectionError(error_message, self.host, self.port, e)

    def _read_record(self) -> List[str]:
        try:
            line = self._reader.readline()
        except OSError as e:
            self.state = SessionState.FAILED
            raise IQFeedConnectionError("Read row error", self.host, self.port, e)

        if not line:
            self.state = SessionState.FAILED
            raise ProtocolViolationError(
                "connection closed before end of stream", None, self.request_id
            )

        line = line.rstrip(LINE_TERMINATOR)
        self.records_received += 1

        if self.detailed_logging:
            logger.debug(line)

        return line.split(FIELD_SEPARATOR) if line else []
