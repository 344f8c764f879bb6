"""
Symbol Downloader

Runs one symbol through the whole pipeline: request construction,
protocol session, row mapping and atomic output. Every outcome is turned
into a DownloadResult and logged once; no error leaves this module.
"""

import time
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .config import DownloadConfig
from .exceptions import IQFeedError, TooFewColumnsError
from .mappers import RowMapper
from .protocol import ProtocolSession
from .request_factory import DataKind, RequestIdGenerator, build_request
from .writer import OutputWriter

logger = logging.getLogger(__name__)

SessionFactory = Callable[..., ProtocolSession]


class DownloadStatus(Enum):
    """Outcome of one symbol download."""
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class DownloadResult:
    """Result of one symbol download."""
    symbol: str
    status: DownloadStatus
    rows: int = 0
    skipped_records: int = 0
    duration_ms: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status != DownloadStatus.FAILED


def milliseconds_since(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class SymbolDownloader:
    """
    Downloads symbols of one data kind into the output directory.

    One instance is shared by all workers of a run; ``download`` keeps all
    per-symbol state local and is safe to call from several threads.
    """

    def __init__(self, kind: DataKind, config: DownloadConfig,
                 id_generator: Optional[RequestIdGenerator] = None,
                 session_factory: SessionFactory = ProtocolSession):
        """
        Initialize downloader.

        Args:
            kind: Data kind to download
            config: Run configuration
            id_generator: Source of request ids, shared across workers
            session_factory: Creates the protocol session for a request
        """
        self.kind = kind
        self.config = config
        self.id_generator = id_generator or RequestIdGenerator()
        self.session_factory = session_factory
        self.target_zone = config.target_zone

    def download(self, symbol: str) -> DownloadResult:
        """
        Download one symbol, unless its output file already exists.

        Args:
            symbol: Symbol in any case

        Returns:
            DownloadResult describing the outcome
        """
        label = symbol.upper()
        writer = OutputWriter(symbol, self.config)

        # Checked before connecting so complete symbols cost no connection
        if writer.exists():
            logger.info(f"[{label}] Already downloaded",
                        extra={'symbol': label, 'status': DownloadStatus.SKIPPED.value,
                               'duration_ms': 0, 'rows': 0})
            return DownloadResult(symbol=label, status=DownloadStatus.SKIPPED)

        started = time.monotonic()
        request = build_request(symbol, self.kind, self.id_generator.next_id(), self.config)
        mapper = RowMapper(self.kind, self.config, self.target_zone)

        rows = 0
        skipped_records = 0

        try:
            with self.session_factory(self.config.host, self.config.port, self.config.protocol,
                                      request.request_id, self.config.detailed_logging) as session:
                logger.debug(f"[{label}] {request.command}")
                session.send_request(request.command)

                logger.info(f"[{label}] Downloading")

                with writer:
                    writer.write_row(mapper.header)

                    for fields in session.records():
                        try:
                            row = mapper.map(fields)
                        except TooFewColumnsError as e:
                            skipped_records += 1
                            logger.debug(f"[{label}] Skipping record: {e.message}")
                            continue

                        writer.write_row(row)
                        rows += 1

                    logger.debug(f"[{label}] Received {session.records_received} records")
                    writer.commit()

        except IQFeedError as e:
            duration_ms = milliseconds_since(started)
            logger.error(f"[{label}] Download failed: {e}",
                         extra={'symbol': label, 'status': DownloadStatus.FAILED.value,
                                'duration_ms': duration_ms, 'rows': rows})
            return DownloadResult(symbol=label, status=DownloadStatus.FAILED, rows=rows,
                                  skipped_records=skipped_records,
                                  duration_ms=duration_ms, error=str(e))

        duration_ms = milliseconds_since(started)
        logger.info(f"[{label}] Completed in {duration_ms}ms ({rows} rows)",
                    extra={'symbol': label, 'status': DownloadStatus.COMPLETED.value,
                           'duration_ms': duration_ms, 'rows': rows})

        return DownloadResult(symbol=label, status=DownloadStatus.COMPLETED, rows=rows,
                              skipped_records=skipped_records, duration_ms=duration_ms)
