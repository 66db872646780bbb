# File: response_decoder.py
"""
Numeric extraction from raw mount responses.

LX200-style replies are free-form text: a value may carry a trailing '#'
terminator, stray whitespace, or be embedded in other characters. The
decoder pulls out a plausible number without requiring byte-exact
formatting and never raises.

Example:
    >>> parse_number("2.35#")
    2.35
    >>> parse_number("pos=3.1 units")
    3.1
    >>> parse_number("garbage") is None
    True
"""

import re
from typing import Optional

# Whole-string form: sign, digits, optional fraction, one trailing marker
_WHOLE_PATTERN = re.compile(r'^([+-]?\d*\.?\d+)\D?$', re.ASCII)

# First numeric run anywhere in the string
_SCAN_PATTERN = re.compile(r'[+-]?\d*\.\d+|[+-]?\d+', re.ASCII)

DEBUG_HEX_LIMIT = 64


def parse_number(raw: Optional[str]) -> Optional[float]:
    """Extract a number from a raw device response.

    Args:
        raw: Response text, possibly None or empty.

    Returns:
        Parsed value, or None if no number could be extracted.
    """
    if not raw:
        return None

    try:
        match = _WHOLE_PATTERN.match(raw.strip())
        if match:
            return float(match.group(1))
    except (ValueError, TypeError):
        pass

    try:
        match = _SCAN_PATTERN.search(raw)
        if match:
            return float(match.group(0))
    except (ValueError, TypeError):
        pass

    return None


def format_debug(value: Optional[str]) -> str:
    """Format a response for debug logging.

    CR/LF are escaped and the length plus a hex dump of the first
    bytes are appended, so framing problems are visible in the log.

    Args:
        value: Response text.

    Returns:
        Printable description of the response.
    """
    if value is None:
        return "(null)"
    if not value:
        return "(empty)"

    escaped = value.replace("\r", "\\r").replace("\n", "\\n")
    text = f"{escaped} [len={len(value)}]"
    data = value.encode('ascii', errors='replace')[:DEBUG_HEX_LIMIT]
    return f"{text} hex={data.hex().upper()}"
