"""Formatting utilities for display and output."""


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate text to maximum length.

    The suffix is appended after the cut, so a truncated result is
    ``max_length + len(suffix)`` characters long.
    """
    if len(text) <= max_length:
        return text
    return text[:max_length] + suffix


def format_status(status: str) -> str:
    """Capitalize a status value for display ("interviewing" -> "Interviewing")."""
    if not status:
        return status
    return status[0].upper() + status[1:]

