"""
qdownload Exceptions

Structured error types for the historical download pipeline.
Every failure carries enough context to be logged once and acted upon.
"""

from typing import Optional, Any, Dict, List


class IQFeedError(Exception):
    """Base exception for all download pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 recovery_hint: Optional[str] = None):
        """
        Initialize error with detailed context.

        Args:
            message: Human-readable error description
            details: Additional context for debugging
            recovery_hint: Suggested recovery action
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recovery_hint = recovery_hint

    def __str__(self) -> str:
        """Return detailed error message for logging."""
        result = self.message

        if self.details:
            result += f" (details: {self.details})"

        if self.recovery_hint:
            result += f" (recovery: {self.recovery_hint})"

        return result


class IQFeedConnectionError(IQFeedError):
    """Raised when connecting, handshaking or sending a request fails."""

    def __init__(self, message: str, host: str, port: int,
                 underlying_error: Optional[Exception] = None):
        details = {
            "host": host,
            "port": port,
            "underlying_error": str(underlying_error) if underlying_error else None
        }

        recovery_hint = (
            f"Check IQConnect is running and accepting lookups at {host}:{port}."
        )

        super().__init__(message, details, recovery_hint)
        self.host = host
        self.port = port
        self.underlying_error = underlying_error


class ProtocolViolationError(IQFeedError):
    """Raised when the response stream breaks framing or request-id correlation."""

    def __init__(self, message: str, raw_record: Optional[List[str]] = None,
                 expected_request_id: Optional[str] = None):
        raw = ",".join(raw_record) if raw_record is not None else None
        details = {
            "raw_record": raw[:200] + "..." if raw and len(raw) > 200 else raw,
            "expected_request_id": expected_request_id
        }

        super().__init__(message, details)
        self.raw_record = raw_record
        self.expected_request_id = expected_request_id


class IQFeedServiceError(IQFeedError):
    """Raised when the service answers a request with an error record."""

    def __init__(self, vendor_message: str, symbol: Optional[str] = None):
        super().__init__(f"IQFeed error: {vendor_message}")
        self.vendor_message = vendor_message
        self.symbol = symbol


class MappingError(IQFeedError):
    """Raised when a data record cannot be mapped to an output row."""

    def __init__(self, message: str, raw_record: Optional[List[str]] = None,
                 kind: Optional[str] = None):
        details = {
            "kind": kind,
            "raw_record": ",".join(raw_record) if raw_record is not None else None
        }

        super().__init__(message, details)
        self.raw_record = raw_record
        self.kind = kind


class TooFewColumnsError(MappingError):
    """Raised when a record has fewer columns than its kind requires.

    Unlike other mapping failures this one is recoverable: the record is
    dropped and streaming continues.
    """

    def __init__(self, raw_record: List[str], kind: str, minimum: int):
        super().__init__(
            f"too few columns: {len(raw_record)} < {minimum}",
            raw_record, kind
        )
        self.minimum = minimum


class OutputError(IQFeedError):
    """Raised when the output file cannot be created, written or published."""

    def __init__(self, message: str, path: str,
                 underlying_error: Optional[Exception] = None):
        details = {
            "path": path,
            "underlying_error": str(underlying_error) if underlying_error else None
        }

        recovery_hint = "Check free disk space and permissions of the output directory."

        super().__init__(message, details, recovery_hint)
        self.path = path
        self.underlying_error = underlying_error


class ConfigurationError(IQFeedError):
    """Raised when download configuration is invalid."""

    def __init__(self, message: str, config_key: Optional[str] = None,
                 config_value: Any = None):
        details = {}
        if config_key:
            details['config_key'] = config_key
        if config_value is not None:
            details['config_value'] = str(config_value)

        super().__init__(message, details)
        self.config_key = config_key
        self.config_value = config_value
