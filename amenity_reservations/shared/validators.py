"""Shared validation utilities"""

from datetime import datetime
from typing import Optional

from .clock import to_local_naive


def normalize_local_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize an incoming timestamp to naive community-local time.

    Args:
        value: Parsed datetime, aware (any offset) or naive (already local)

    Returns:
        Naive datetime in APP_TIMEZONE, or None
    """
    return to_local_naive(value)


def clean_optional_text(value: Optional[str]) -> Optional[str]:
    """Strip surrounding whitespace; blank strings become None"""
    if value is None:
        return None
    value = value.strip()
    return value or None
