"""Logging setup for the command line tool."""

import sys
import logging

VERBOSE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_FORMAT = '%(levelname)-7s %(message)s'


def setup_logging(verbose: bool = False):
    """
    Configure the root logger for a download run.

    Args:
        verbose: Log at DEBUG with timestamps and logger names
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=VERBOSE_FORMAT if verbose else DEFAULT_FORMAT,
        stream=sys.stderr,
        force=True
    )
