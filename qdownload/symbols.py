"""
Symbol list acquisition.

Accepts either a comma separated list of symbols or the path of a file
with one symbol per line.
"""

import os
import logging
from typing import List

logger = logging.getLogger(__name__)


def read_symbols(symbols_or_file: str) -> List[str]:
    """
    Resolve the symbols argument to a clean list of symbols.

    A value containing a comma, or naming no existing file, is treated
    as a literal list. Duplicates are dropped case-insensitively, keeping
    the first occurrence, so no two workers ever write the same file.

    Args:
        symbols_or_file: Comma separated symbols or symbols filename

    Returns:
        List of symbols in input order
    """
    if "," in symbols_or_file or not os.path.isfile(symbols_or_file):
        raw_symbols = symbols_or_file.split(",")
    else:
        with open(symbols_or_file, 'r', encoding='utf-8') as f:
            raw_symbols = f.read().split("\n")

    symbols = []
    seen = set()

    for symbol in raw_symbols:
        symbol = symbol.strip(" \r")
        if not symbol:
            continue

        if symbol.upper() in seen:
            logger.warning(f"Ignoring duplicate symbol: {symbol}")
            continue

        seen.add(symbol.upper())
        symbols.append(symbol)

    logger.info(f"Read {len(symbols)} symbols")
    return symbols
