"""
Utility functions and helpers for tidal-playlist
Common functions for duration handling, batching and small string/path chores
"""

import re
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, TypeVar, Union

T = TypeVar('T')

# ISO 8601 durations as returned by the TIDAL API, e.g. "PT3M20S" or "PT1H2M3.5S"
_ISO_DURATION_RE = re.compile(
    r'^P(?:(?P<days>\d+)D)?'
    r'(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$'
)


def format_duration(seconds: Union[int, float]) -> str:
    """
    Format duration in seconds to human-readable string

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string
    """
    if seconds < 0:
        return "0:00"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    else:
        return f"{minutes}:{secs:02d}"


def parse_duration_string(duration_str: str) -> Optional[int]:
    """
    Parse duration string to seconds

    Args:
        duration_str: Duration string (e.g., "3:45", "1:23:45")

    Returns:
        Duration in seconds or None if invalid
    """
    try:
        parts = duration_str.split(':')
        if len(parts) == 2:
            # mm:ss
            minutes, seconds = map(int, parts)
            return minutes * 60 + seconds
        elif len(parts) == 3:
            # hh:mm:ss
            hours, minutes, seconds = map(int, parts)
            return hours * 3600 + minutes * 60 + seconds
        else:
            return None
    except (ValueError, IndexError):
        return None


def parse_iso_duration(duration_str: str) -> Optional[int]:
    """
    Parse an ISO 8601 duration to whole seconds

    Falls back to "mm:ss" / "hh:mm:ss" strings, which older responses used.

    Args:
        duration_str: Duration string (e.g., "PT3M20S", "PT1H", "3:20")

    Returns:
        Duration in seconds or None if invalid
    """
    if not duration_str:
        return None

    match = _ISO_DURATION_RE.match(duration_str.strip().upper())
    if not match or duration_str.strip().upper() in ('P', 'PT'):
        return parse_duration_string(duration_str)

    parts = match.groupdict()
    total = (
        int(parts['days'] or 0) * 86400
        + int(parts['hours'] or 0) * 3600
        + int(parts['minutes'] or 0) * 60
        + float(parts['seconds'] or 0)
    )
    return int(total)


def chunk_list(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """
    Split a sequence into consecutive batches

    Args:
        items: Items to split, order is preserved
        size: Maximum batch size (must be positive)

    Yields:
        Lists of at most ``size`` items
    """
    if size < 1:
        raise ValueError(f"Batch size must be positive, got {size}")

    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def parse_comma_list(value: str) -> List[str]:
    """
    Split a comma-separated environment value into stripped, non-empty entries

    >>> parse_comma_list("abc, def,,ghi ")
    ['abc', 'def', 'ghi']
    """
    return [part.strip() for part in value.split(',') if part.strip()]


def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate string to maximum length with suffix

    Args:
        text: Original text
        max_length: Maximum length including suffix
        suffix: Suffix to add when truncating

    Returns:
        Truncated string
    """
    if len(text) <= max_length:
        return text

    truncate_length = max_length - len(suffix)
    if truncate_length <= 0:
        return suffix[:max_length]

    return text[:truncate_length] + suffix


def ensure_directory(path: Union[str, Path], mode: int = 0o777) -> Path:
    """
    Ensure directory exists, create if necessary

    Args:
        path: Directory path
        mode: Permission bits for newly created directories

    Returns:
        Path object
    """
    path_obj = Path(path).expanduser()
    path_obj.mkdir(mode=mode, parents=True, exist_ok=True)
    return path_obj
