"""Helper utility functions."""

import logging
import re
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)


def get_timezone(name: str) -> ZoneInfo:
    """Resolve a timezone name, falling back to UTC."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Invalid timezone {name}, using UTC")
        return ZoneInfo("UTC")


def parse_day(text: Optional[str], reference: Optional[date] = None) -> date:
    """
    Parse a day parameter.

    Args:
        text: "YYYY-MM-DD", "today", "tomorrow", or anything dateutil reads
        reference: Day used for relative words and when text is empty

    Returns:
        The parsed date

    Raises:
        ValueError: If the text cannot be read as a date
    """
    if reference is None:
        reference = date.today()

    if not text:
        return reference

    text = text.lower().strip()
    if text == "today":
        return reference
    if text == "tomorrow":
        return reference + relativedelta(days=1)
    if text == "yesterday":
        return reference - relativedelta(days=1)

    try:
        return date_parser.isoparse(text).date()
    except ValueError:
        pass

    try:
        return date_parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid date: {text}") from e


def parse_month(text: Optional[str], reference: Optional[date] = None) -> date:
    """Parse "YYYY-MM" (or a full date) into the first day of that month."""
    if reference is None:
        reference = date.today()

    if not text:
        return reference.replace(day=1)

    match = re.fullmatch(r"(\d{4})-(\d{1,2})", text.strip())
    try:
        if match:
            return date(int(match.group(1)), int(match.group(2)), 1)
        return parse_day(text, reference).replace(day=1)
    except ValueError as e:
        raise ValueError(f"Invalid month: {text}") from e


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp; the result must carry a UTC offset."""
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid timestamp: {value}") from e
    if parsed.tzinfo is None:
        raise ValueError(f"Timestamp needs a UTC offset: {value}")
    return parsed


def format_datetime(dt: datetime, format_type: str = "friendly") -> str:
    """
    Format datetime for display.

    Args:
        dt: Datetime object
        format_type: "friendly", "iso", "short" or "time"

    Returns:
        Formatted datetime string
    """
    if format_type == "iso":
        return dt.isoformat()
    elif format_type == "short":
        return dt.strftime("%d/%m %H:%M")
    elif format_type == "time":
        return dt.strftime("%H:%M")
    else:  # friendly
        return dt.strftime("%A %d/%m/%Y - %H:%M")


def sanitize_phone(phone: Optional[str]) -> str:
    """
    Normalize a phone number.

    Keeps digits and a leading plus sign; spaces, dashes and brackets go.

    Args:
        phone: Raw phone number input

    Returns:
        Normalized phone number, "" when nothing usable remains
    """
    if not phone:
        return ""

    phone = phone.strip()
    digits = re.sub(r'\D', '', phone)
    if not digits:
        return ""
    if phone.startswith("+"):
        return f"+{digits}"
    return digits


def clean_text(value: Optional[str]) -> Optional[str]:
    """Strip a form value, mapping blanks to None."""
    if value is None:
        return None
    value = value.strip()
    return value or None
