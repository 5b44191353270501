"""Utility functions package."""

from .helpers import (
    clean_text,
    format_datetime,
    get_timezone,
    parse_day,
    parse_month,
    parse_timestamp,
    sanitize_phone,
)

__all__ = [
    "clean_text",
    "format_datetime",
    "get_timezone",
    "parse_day",
    "parse_month",
    "parse_timestamp",
    "sanitize_phone",
]
