"""
Text helpers shared by the manifest, its exports and pickup emails.

- CSV field escaping
- Fixed-width column truncation
- Pickup time normalisation and 12-hour pickup windows
- Activity date parsing
"""

import re
import unicodedata
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from ..exceptions import ValidationError

ELLIPSIS = ".."

_PICKUP_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?\s*$")
_CSV_SPECIAL = (",", "\n", "\r", '"')


# ============================================================================
# DATES
# ============================================================================

def parse_activity_date(value: Union[str, date, None]) -> date:
    """
    Accept a date or an ISO "YYYY-MM-DD" string.

    Raises ValidationError for anything that is not a real calendar date.
    """
    if value is None or value == "":
        raise ValidationError("activity date is required")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"invalid activity date: {value!r}")


def format_display_date(value: date) -> str:
    """27 Dec 2025"""
    return value.strftime("%d %b %Y")


# ============================================================================
# CSV
# ============================================================================

def escape_csv(value) -> str:
    """
    Quote a CSV field when it contains a comma, newline or quote.

    Internal quotes are doubled, so the output parses back to the input
    with any RFC 4180 reader.
    """
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    if not text:
        return ""
    if any(ch in text for ch in _CSV_SPECIAL):
        return '"' + text.replace('"', '""') + '"'
    return text


def csv_line(values) -> str:
    return ",".join(escape_csv(v) for v in values)


# ============================================================================
# FIXED-WIDTH COLUMNS
# ============================================================================

def truncate_text(text: Optional[str], max_length: int, placeholder: str = "-") -> str:
    """
    Fit text into a fixed-width column.

    Text longer than max_length is cut to max_length - 2 characters plus "..".
    The cut is made on the raw value (escaping happens after), and it never
    separates a base character from its combining marks.
    """
    if not text:
        return placeholder
    if len(text) <= max_length:
        return text
    if max_length <= len(ELLIPSIS):
        return text[:max_length]

    cut = max_length - len(ELLIPSIS)
    while cut > 0 and unicodedata.combining(text[cut]):
        cut -= 1
    if cut > 0 and text[cut - 1] == "\r" and text[cut] == "\n":
        cut -= 1
    return text[:cut] + ELLIPSIS


def wrap_text(text: Optional[str], max_chars: int, max_lines: int = 2) -> List[str]:
    """Word-wrap for PDF cells, at most max_lines lines, the last one truncated."""
    if not text or len(text) <= max_chars:
        return [text or "-"]

    lines: List[str] = []
    current = ""
    for word in text.split(" "):
        if len(current) + len(word) + 1 <= max_chars:
            current = f"{current} {word}" if current else word
        else:
            if current:
                lines.append(current)
            current = truncate_text(word, max_chars) if len(word) > max_chars else word
    if current:
        lines.append(current)

    if len(lines) > max_lines:
        lines = lines[:max_lines]
        lines[-1] = lines[-1][:max_chars - len(ELLIPSIS)] + ELLIPSIS
    return lines


# ============================================================================
# PICKUP TIMES
# ============================================================================

def parse_pickup_time(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    "14:05:00" -> (14, 5). Seconds are dropped.

    Returns None for an empty value; raises ValidationError for garbage.
    """
    if value is None or str(value).strip() == "":
        return None
    match = _PICKUP_TIME_RE.match(str(value))
    if not match:
        raise ValidationError(f"invalid pickup time: {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationError(f"invalid pickup time: {value!r}")
    return hours, minutes


def normalize_pickup_time(value: Optional[str]) -> str:
    """Normalise a stored pickup time to "HH:MM"; empty string when unset."""
    parsed = parse_pickup_time(value)
    if parsed is None:
        return ""
    return f"{parsed[0]:02d}:{parsed[1]:02d}"


def format_12_hour(hours: int, minutes: int) -> str:
    """(14, 5) -> "02:05 PM"; hours past midnight wrap around."""
    hours = hours % 24
    period = "PM" if hours >= 12 else "AM"
    hour12 = hours % 12 or 12
    return f"{hour12:02d}:{minutes:02d} {period}"


def pickup_time_range(value: Optional[str], window_minutes: int = 15) -> str:
    """
    "14:05:00" -> "02:05 PM - 02:20 PM"

    The window is computed from the normalised HH:MM value.
    """
    normalized = normalize_pickup_time(value)
    if not normalized:
        return ""
    hours, minutes = (int(p) for p in normalized.split(":"))
    end = hours * 60 + minutes + window_minutes
    return f"{format_12_hour(hours, minutes)} - {format_12_hour(end // 60, end % 60)}"


def format_single_time(value: Optional[str]) -> str:
    normalized = normalize_pickup_time(value)
    if not normalized:
        return ""
    hours, minutes = (int(p) for p in normalized.split(":"))
    return format_12_hour(hours, minutes)


# ============================================================================
# MONEY
# ============================================================================

def format_amount(amount: Union[Decimal, int, float, None]) -> str:
    """1250 -> "1,250", 1250.5 -> "1,250.50"."""
    if amount is None:
        return "0"
    value = Decimal(str(amount))
    if value == value.to_integral_value():
        return f"{value:,.0f}"
    return f"{value:,.2f}"
