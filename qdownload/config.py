"""
Download Configuration

Immutable run configuration shared read-only by every download worker,
plus time zone resolution and optional YAML config file loading.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Any, Optional

import pytz
import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

# Load environment variables
load_dotenv()

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9100

# Handshake protocol versions
DEFAULT_PROTOCOL = "5.1"
LABELS_PROTOCOL = "6.0"

SOURCE_TIME_ZONE = "America/New_York"

# Long interval type names to HIT wire codes
INTERVAL_TYPES: Dict[str, str] = {
    "seconds": "s",
    "volume": "v",
    "ticks": "t",
}

TIME_ZONE_ABBREVIATIONS: Dict[str, str] = {
    "": "America/New_York",
    "UTC": "UTC",
    "ET": "America/New_York",
    "EST": "America/New_York",
    "CT": "America/Chicago",
    "CST": "America/Chicago",
    "PT": "America/Los_Angeles",
    "PST": "America/Los_Angeles",
}


def resolve_time_zone(time_zone: str) -> pytz.BaseTzInfo:
    """
    Resolve a zone abbreviation or IANA name to a tzinfo.

    Args:
        time_zone: Abbreviation (ET, CT, PT, UTC...), IANA name, or empty
            for the source exchange zone

    Returns:
        pytz time zone

    Raises:
        ConfigurationError: If the zone is unknown
    """
    name = TIME_ZONE_ABBREVIATIONS.get(time_zone.strip().upper(), time_zone.strip())

    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ConfigurationError(
            f"Unknown time zone: {time_zone}",
            config_key="time_zone",
            config_value=time_zone
        )


def normalize_interval_type(interval_type: str) -> str:
    """Map 'seconds'/'volume'/'ticks' (or their wire codes) to the wire code."""
    value = interval_type.strip().lower()

    if value in INTERVAL_TYPES:
        return INTERVAL_TYPES[value]
    if value in INTERVAL_TYPES.values():
        return value

    raise ConfigurationError(
        f"Invalid interval type: {interval_type}. "
        f"Expected one of: {', '.join(INTERVAL_TYPES)}",
        config_key="interval_type",
        config_value=interval_type
    )


@dataclass(frozen=True)
class DownloadConfig:
    """Resolved options for one download run."""

    start_date: str = ""
    end_date: str = ""
    time_zone: str = ""
    out_directory: str = "data"

    # Interval bars only
    interval_length: int = 0
    interval_type: str = ""

    parallelism: int = 8
    tsv: bool = False
    gzip: bool = False
    end_timestamp: bool = False
    detailed_logging: bool = False

    # None resolves to the defaults for the requested bar convention
    protocol: Optional[str] = None
    use_labels: Optional[bool] = None

    host: str = field(default_factory=lambda: os.getenv('IQFEED_HOST', DEFAULT_HOST))
    port: int = field(default_factory=lambda: int(os.getenv('IQFEED_HISTORY_PORT', str(DEFAULT_PORT))))

    def __post_init__(self):
        """Validate and normalize configuration after initialization."""
        if self.parallelism < 1:
            raise ConfigurationError(
                f"Parallelism must be at least 1, got {self.parallelism}",
                config_key="parallelism",
                config_value=self.parallelism
            )

        if self.interval_type:
            object.__setattr__(self, 'interval_type', normalize_interval_type(self.interval_type))

            if self.interval_length <= 0:
                raise ConfigurationError(
                    f"Interval length must be positive, got {self.interval_length}",
                    config_key="interval_length",
                    config_value=self.interval_length
                )

        resolve_time_zone(self.time_zone)

        if self.use_labels is None:
            object.__setattr__(self, 'use_labels', self.is_interval and not self.end_timestamp)

        if self.protocol is None:
            protocol = LABELS_PROTOCOL if self.use_labels else DEFAULT_PROTOCOL
            object.__setattr__(self, 'protocol', protocol)

    @property
    def is_interval(self) -> bool:
        return bool(self.interval_type)

    @property
    def target_zone(self) -> pytz.BaseTzInfo:
        return resolve_time_zone(self.time_zone)

    @property
    def separator(self) -> str:
        return "\t" if self.tsv else ","


def load_config_file(path: str) -> Dict[str, Any]:
    """
    Load option defaults from a YAML file.

    Keys are CLI option names; dashes are accepted in place of underscores.

    Args:
        path: Path to the YAML file

    Returns:
        Mapping of option name to value
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not load config file {path}: {e}",
                                 config_key="config", config_value=path)

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping",
                                 config_key="config", config_value=path)

    return {str(key).replace('-', '_'): value for key, value in data.items()}
