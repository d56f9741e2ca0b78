"""Formatting utilities for consistent output across CLI and TUI."""

from datetime import datetime


def format_bytes(bytes_val: int) -> str:
    """Format a byte count as a human-readable string.

    Args:
        bytes_val: Size in bytes

    Returns:
        "512B", "12K", "3.4M" or "16.0G"
    """
    if bytes_val < 1024:
        return f"{bytes_val}B"
    elif bytes_val < 1024 * 1024:
        return f"{bytes_val / 1024:.0f}K"
    elif bytes_val < 1024 * 1024 * 1024:
        return f"{bytes_val / (1024 * 1024):.1f}M"
    else:
        return f"{bytes_val / (1024 * 1024 * 1024):.1f}G"


def format_percent(value: float) -> str:
    """Format a percentage with one decimal, e.g. "12.3%"."""
    return f"{value:.1f}%"


def truncate(text: str, length: int) -> str:
    """Shorten text to at most length characters, marking the cut with "..".

    Args:
        text: Text to shorten
        length: Maximum length of the result (at least 3)

    Returns:
        text unchanged if it fits, otherwise its prefix plus ".."
    """
    if len(text) <= length:
        return text
    return text[: max(length - 2, 1)] + ".."


def format_age(started: datetime | None, *, now: datetime | None = None) -> str:
    """Format how long ago a process started.

    Args:
        started: Process start time, or None if unknown
        now: Reference time (defaults to datetime.now())

    Returns:
        "-" when unknown, else "45s", "12m", "3h" or "2d"
    """
    if started is None:
        return "-"
    if now is None:
        now = datetime.now()
    seconds = max(0, int((now - started).total_seconds()))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"
