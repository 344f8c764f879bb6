"""
Row Mappers

Turn one data record from the service into one output row, per data kind.

Numeric columns are passed through as the raw strings received so no
precision or formatting is lost. Only timestamps are reinterpreted: they
are parsed in the source exchange zone, optionally moved to the start of
the bar, and converted to the configured target zone.
"""

from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

import pytz

from .config import DownloadConfig, SOURCE_TIME_ZONE
from .exceptions import MappingError, TooFewColumnsError
from .request_factory import DataKind

SECOND_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
MICROSECOND_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

CSV_SEPARATOR = ","

MINIMUM_COLUMNS: Dict[DataKind, int] = {
    DataKind.EOD: 8,
    DataKind.MINUTE: 7,
    DataKind.INTERVAL: 7,
    DataKind.TICK: 12,
}

SOURCE_ZONE = pytz.timezone(SOURCE_TIME_ZONE)

MapFunction = Callable[[List[str], pytz.BaseTzInfo, DownloadConfig], str]


def _require_columns(fields: List[str], kind: DataKind):
    if len(fields) < MINIMUM_COLUMNS[kind]:
        raise TooFewColumnsError(fields, kind.value, MINIMUM_COLUMNS[kind])


def _column(fields: List[str], index: int) -> str:
    # Trailing columns past the minimum may be absent on short records
    return fields[index] if index < len(fields) else ""


def _parse_source_timestamp(fields: List[str], timestamp_format: str, kind: DataKind) -> datetime:
    try:
        naive = datetime.strptime(fields[1], timestamp_format)
    except ValueError as e:
        raise MappingError(f"could not parse {kind.value} timestamp: {e}", fields, kind.value)

    return SOURCE_ZONE.localize(naive)


def map_eod_bar(fields: List[str], tz: pytz.BaseTzInfo, config: DownloadConfig) -> str:
    _require_columns(fields, DataKind.EOD)

    # Columns from IQFeed (OHLC arrives with high first):
    # 1     2     3    4     5      6       7
    # date, high, low, open, close, volume, openInterest
    return ",".join([
        fields[1],  # date
        fields[4],  # open
        fields[2],  # high
        fields[3],  # low
        fields[5],  # close
        fields[6],  # volume
        fields[7],  # open interest
    ])


def _format_bar(timestamp: datetime, fields: List[str]) -> str:
    # 1          2     3    4     5      6            7             8
    # timestamp, high, low, open, close, totalVolume, periodVolume, numberOfTrades
    return ",".join([
        timestamp.strftime(SECOND_TIMESTAMP_FORMAT),
        fields[4],  # open
        fields[2],  # high
        fields[3],  # low
        fields[5],  # close
        _column(fields, 7),  # period volume
    ])


def map_minute_bar(fields: List[str], tz: pytz.BaseTzInfo, config: DownloadConfig) -> str:
    _require_columns(fields, DataKind.MINUTE)

    timestamp = _parse_source_timestamp(fields, SECOND_TIMESTAMP_FORMAT, DataKind.MINUTE)

    # Minute bars are stamped at the end of the bar; move to the bar start
    # unless end-of-bar timestamps were requested
    if not config.end_timestamp:
        timestamp = timestamp - timedelta(minutes=1)

    return _format_bar(timestamp.astimezone(tz), fields)


def map_interval_bar(fields: List[str], tz: pytz.BaseTzInfo, config: DownloadConfig) -> str:
    _require_columns(fields, DataKind.INTERVAL)

    # Bar labelling is negotiated with the service through LabelAtBeginning
    timestamp = _parse_source_timestamp(fields, SECOND_TIMESTAMP_FORMAT, DataKind.INTERVAL)

    return _format_bar(timestamp.astimezone(tz), fields)


def map_tick(fields: List[str], tz: pytz.BaseTzInfo, config: DownloadConfig) -> str:
    _require_columns(fields, DataKind.TICK)

    timestamp = _parse_source_timestamp(fields, MICROSECOND_TIMESTAMP_FORMAT, DataKind.TICK)

    return ",".join([
        timestamp.astimezone(tz).strftime(MICROSECOND_TIMESTAMP_FORMAT),
        fields[2],   # last
        fields[3],   # last size
        fields[4],   # total volume
        fields[5],   # bid
        fields[6],   # ask
        fields[7],   # tick id
        fields[8],   # basis for last
        fields[9],   # trade market center
        fields[10],  # trade conditions
        fields[11],  # trade aggressor
        _column(fields, 12),  # day code
    ])


MAP_FUNCTIONS: Dict[DataKind, MapFunction] = {
    DataKind.EOD: map_eod_bar,
    DataKind.MINUTE: map_minute_bar,
    DataKind.INTERVAL: map_interval_bar,
    DataKind.TICK: map_tick,
}


class RowMapper:
    """
    Maps data records of one kind to output rows.

    Selected once per download; the target zone and separator are
    resolved at construction instead of per record.
    """

    def __init__(self, kind: DataKind, config: DownloadConfig,
                 target_zone: Optional[pytz.BaseTzInfo] = None):
        """
        Initialize mapper.

        Args:
            kind: Data kind of the records
            config: Run configuration
            target_zone: Output zone (default: config.target_zone)
        """
        self.kind = kind
        self.config = config
        self.target_zone = target_zone or config.target_zone
        self._map = MAP_FUNCTIONS[kind]

    @property
    def header(self) -> str:
        return self._with_separator(self.kind.header)

    def map(self, fields: List[str]) -> str:
        """
        Map one data record.

        Raises:
            TooFewColumnsError: Record is short; caller should skip it
            MappingError: Record is malformed; caller should abort
        """
        try:
            row = self._map(fields, self.target_zone, self.config)
        except MappingError:
            raise
        except (IndexError, ValueError) as e:
            raise MappingError(f"map row error: {e}", fields, self.kind.value)

        return self._with_separator(row)

    def _with_separator(self, row: str) -> str:
        # Literal substitution: a comma inside a field would be converted too
        if self.config.tsv:
            return row.replace(CSV_SEPARATOR, self.config.separator)
        return row
