"""
Output Writer

Writes one symbol's rows to a sibling temporary file and publishes it
under the final name with an atomic rename. A final file is therefore
either complete or absent.
"""

import gzip
import io
import os
import logging
from typing import Optional

from .config import DownloadConfig
from .exceptions import OutputError

logger = logging.getLogger(__name__)

BUFFER_SIZE = 4 * 1024 * 1024
TEMP_SUFFIX = ".tmp"

# Wire data is latin-1; writing it back the same way keeps bytes intact
ENCODING = "latin-1"


def output_filename(symbol: str, config: DownloadConfig) -> str:
    """Return ``{symbol}.csv|.tsv[.gz]`` with the symbol lower-cased."""
    filename = f"{symbol.lower()}.tsv" if config.tsv else f"{symbol.lower()}.csv"

    if config.gzip:
        filename = f"{filename}.gz"

    return filename


def output_path(symbol: str, config: DownloadConfig) -> str:
    return os.path.join(config.out_directory, output_filename(symbol, config))


class OutputWriter:
    """
    Atomic per-symbol output file.

    Rows are only visible under the final path after ``commit``. Leaving
    the context without committing, or with an exception, removes the
    temporary file:

        with OutputWriter(symbol, config) as writer:
            writer.write_row(header)
            ...
            writer.commit()
    """

    def __init__(self, symbol: str, config: DownloadConfig):
        self.symbol = symbol
        self.config = config
        self.path = output_path(symbol, config)
        self.tmp_path = f"{self.path}{TEMP_SUFFIX}"
        self.rows_written = 0

        self._file: Optional[io.BufferedWriter] = None
        self._stream: Optional[io.TextIOWrapper] = None
        self._committed = False

    def exists(self) -> bool:
        """True if the final file is already published."""
        return os.path.exists(self.path)

    def __enter__(self) -> 'OutputWriter':
        self.open()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if not self._committed:
            self.discard()

    def open(self):
        """
        Create the temporary file and the write pipeline.

        Raises:
            OutputError: Temporary file could not be created
        """
        try:
            self._file = open(self.tmp_path, 'wb', buffering=BUFFER_SIZE)

            target = self._file
            if self.config.gzip:
                # Header FNAME records the published name, not the temp file
                target = gzip.GzipFile(filename=self.path, mode='wb', fileobj=self._file)

            self._stream = io.TextIOWrapper(target, encoding=ENCODING, newline='')
        except OSError as e:
            self.discard()
            raise OutputError("Could not create output file", self.tmp_path, e)

    def write_row(self, row: str):
        """
        Append one line.

        Raises:
            OutputError: Write failed
        """
        try:
            self._stream.write(row)
            self._stream.write("\n")
        except (OSError, UnicodeEncodeError) as e:
            raise OutputError("Write output row error", self.tmp_path, e)

        self.rows_written += 1

    def commit(self):
        """
        Flush, close and rename the temporary file to the final path.

        Raises:
            OutputError: Flush, close or rename failed
        """
        try:
            self._close_pipeline()
            os.replace(self.tmp_path, self.path)
        except OSError as e:
            raise OutputError("Flush output file error", self.tmp_path, e)

        self._committed = True

    def discard(self):
        """Close whatever is open and delete the temporary file."""
        try:
            self._close_pipeline()
        except OSError as e:
            logger.warning(f"Error closing temporary file {self.tmp_path}: {e}")

        if os.path.exists(self.tmp_path):
            try:
                os.remove(self.tmp_path)
            except OSError as e:
                logger.error(f"Delete temporary download output file error: {self.tmp_path}: {e}")

    def _close_pipeline(self):
        stream, raw = self._stream, self._file
        self._stream = None
        self._file = None

        try:
            if stream is not None:
                stream.close()
        finally:
            if raw is not None:
                raw.close()
