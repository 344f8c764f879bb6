"""
Request Factory

Builds the historical lookup command text for a symbol and data kind.
Pure string construction: no I/O, no validation beyond what the
configuration already enforced.
"""

import itertools
import threading
from dataclasses import dataclass
from enum import Enum

from .config import DownloadConfig

# DataDirection: oldest record first
ASCENDING = "1"

MINUTE_INTERVAL_SECONDS = 60


class DataKind(Enum):
    """Data kinds that can be downloaded, with their output header."""
    EOD = "eod"
    MINUTE = "minute"
    INTERVAL = "interval"
    TICK = "tick"

    @property
    def header(self) -> str:
        return HEADERS[self]


HEADERS = {
    DataKind.EOD: "date,open,high,low,close,volume,oi",
    DataKind.MINUTE: "datetime,open,high,low,close,volume",
    DataKind.INTERVAL: "datetime,open,high,low,close,volume",
    DataKind.TICK: "datetime,last,lastsize,totalsize,bid,ask,tickid,basis,market,cond,aggr,daycode",
}


class RequestIdGenerator:
    """Hands out request ids that are unique for the lifetime of the generator.

    Shared by all workers of a run; ``next_id`` is safe to call concurrently.
    """

    def __init__(self, prefix: str = "R", start: int = 1):
        self._prefix = prefix
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            return f"{self._prefix}{next(self._counter)}"


@dataclass(frozen=True)
class DownloadRequest:
    """One symbol's download, created at dispatch time."""
    symbol: str
    kind: DataKind
    request_id: str
    command: str


def create_eod_request(symbol: str, request_id: str, config: DownloadConfig) -> str:
    # HDT,[Symbol],[BeginDate],[EndDate],[MaxDatapoints],[DataDirection],[RequestID],[DatapointsPerSend]
    return (f"HDT,{symbol.upper()},{config.start_date},{config.end_date},"
            f",{ASCENDING},{request_id}")


def create_minute_request(symbol: str, request_id: str, config: DownloadConfig) -> str:
    # HIT,[Symbol],[Interval],[BeginDate BeginTime],[EndDate EndTime],[MaxDatapoints],
    #     [BeginFilterTime],[EndFilterTime],[DataDirection],[RequestID],[DatapointsPerSend],
    #     [IntervalType],[LabelAtBeginning]
    return (f"HIT,{symbol.upper()},{MINUTE_INTERVAL_SECONDS},{config.start_date},{config.end_date},"
            f",,,{ASCENDING},{request_id}")


def create_interval_request(symbol: str, request_id: str, config: DownloadConfig) -> str:
    """
    Build an arbitrary interval bar request.

    LabelAtBeginning is only understood by newer protocol revisions and
    its meaning has changed between them, so it is sent only when
    ``config.use_labels`` is set: 1 labels bars at their start, 0 at
    their end.
    """
    label = ""
    if config.use_labels:
        label = ",0" if config.end_timestamp else ",1"

    return (f"HIT,{symbol.upper()},{config.interval_length},{config.start_date},{config.end_date},"
            f",,,{ASCENDING},{request_id},,{config.interval_type}{label}")


def create_tick_request(symbol: str, request_id: str, config: DownloadConfig) -> str:
    # HTT,[Symbol],[BeginDate BeginTime],[EndDate EndTime],[MaxDatapoints],[BeginFilterTime],
    #     [EndFilterTime],[DataDirection],[RequestID],[DatapointsPerSend]
    return (f"HTT,{symbol.upper()},{config.start_date},{config.end_date},"
            f",,,{ASCENDING},{request_id}")


REQUEST_FACTORIES = {
    DataKind.EOD: create_eod_request,
    DataKind.MINUTE: create_minute_request,
    DataKind.INTERVAL: create_interval_request,
    DataKind.TICK: create_tick_request,
}


def build_request(symbol: str, kind: DataKind, request_id: str,
                  config: DownloadConfig) -> DownloadRequest:
    """
    Create the download request for one symbol.

    Args:
        symbol: Symbol as given by the user, any case
        kind: Data kind to download
        request_id: Correlation id echoed by the service on every record
        config: Run configuration

    Returns:
        DownloadRequest with the command text (without line terminator)
    """
    command = REQUEST_FACTORIES[kind](symbol, request_id, config)
    return DownloadRequest(symbol=symbol, kind=kind, request_id=request_id, command=command)
