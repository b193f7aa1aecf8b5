"""
Timestamp helpers for APPEARS_IN edges.

Timestamps are stored as integer seconds; older data still carries
``HH:MM:SS`` strings.
"""

import re
from typing import Any

_HHMMSS = re.compile(r"\b([0-1]?[0-9]|2[0-3]):([0-5][0-9]):([0-5][0-9])\b")
_MMSS = re.compile(r"\b([0-5][0-9]):([0-5][0-9])\b")
_MSS = re.compile(r"\b([0-9]):([0-5][0-9])\b")


def timestamp_to_seconds(value: Any) -> int | None:
    """
    Convert a stored timestamp to seconds.

    Accepts integers, numeric strings, ``H:MM:SS`` and ``MM:SS``.
    Returns None for missing or unparseable values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)

    text = str(value).strip()
    if not text:
        return None
    if text.isdigit():
        return int(text)

    parts = text.split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        return None

    numbers = [int(p) for p in parts]
    if len(numbers) == 2:
        numbers.insert(0, 0)
    hours, minutes, seconds = numbers
    return hours * 3600 + minutes * 60 + seconds


def format_seconds(seconds: int) -> str:
    """Format seconds as HH:MM:SS."""
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def parse_timestamp_from_text(text: str | None) -> str | None:
    """
    Find the first timestamp in free text and normalize it to HH:MM:SS.

    ``HH:MM:SS`` is tried first, then ``MM:SS``, then ``M:SS``.

    Example:
        >>> parse_timestamp_from_text("arranca en 5:30 del video")
        '00:05:30'
    """
    if not text or not isinstance(text, str):
        return None

    match = _HHMMSS.search(text)
    if match:
        hours, minutes, seconds = (int(g) for g in match.groups())
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

    for pattern in (_MMSS, _MSS):
        match = pattern.search(text)
        if match:
            minutes, seconds = (int(g) for g in match.groups())
            return f"00:{minutes:02d}:{seconds:02d}"

    return None
