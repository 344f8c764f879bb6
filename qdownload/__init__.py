"""
qdownload - historical market data downloader for IQFeed

Pulls EOD bars, minute bars, interval bars and ticks from the local
IQFeed historical lookup service and writes one delimited file per symbol.

Key Components:
- DownloadConfig: Immutable run configuration
- ProtocolSession: One request/response session on the lookup port
- RowMapper: Per data kind record to row mapping
- OutputWriter: Atomic, resumable per-symbol output
- SymbolDownloader: Wires the pipeline for one symbol
- DownloadScheduler: Fixed worker pool over the symbol list
"""

__version__ = "1.0.0"

from .config import DownloadConfig
from .downloader import SymbolDownloader, DownloadResult, DownloadStatus
from .mappers import RowMapper
from .protocol import ProtocolSession, SessionState
from .request_factory import DataKind, DownloadRequest, RequestIdGenerator, build_request
from .scheduler import DownloadScheduler
from .writer import OutputWriter
from .exceptions import (
    IQFeedError,
    IQFeedConnectionError,
    IQFeedServiceError,
    ProtocolViolationError,
    MappingError,
    TooFewColumnsError,
    OutputError,
    ConfigurationError
)

__all__ = [
    'DownloadConfig',
    'SymbolDownloader',
    'DownloadResult',
    'DownloadStatus',
    'RowMapper',
    'ProtocolSession',
    'SessionState',
    'DataKind',
    'DownloadRequest',
    'RequestIdGenerator',
    'build_request',
    'DownloadScheduler',
    'OutputWriter',
    'IQFeedError',
    'IQFeedConnectionError',
    'IQFeedServiceError',
    'ProtocolViolationError',
    'MappingError',
    'TooFewColumnsError',
    'OutputError',
    'ConfigurationError'
]
