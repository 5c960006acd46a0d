"""
Value normalization for reconciliation and Graph payload rendering.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any, Optional

from .fields import DATE, FLAG, PHONES, REGION, LogicalField

# Spreadsheet serial day 0
SERIAL_EPOCH = date(1899, 12, 30)
MAX_SERIAL = 2958465  # 9999-12-31
_SERIAL = re.compile(r"\d+(\.\d+)?")

# Tried in this order after ISO and serial parsing
LOCALE_DATE_FORMATS = (
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%d.%m.%Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%d %b %Y",
    "%d %B %Y",
)

TRUE_WORDS = {"true", "yes", "y", "1", "enabled"}
FALSE_WORDS = {"false", "no", "n", "0", "disabled"}


def normalize_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_region(value: Any) -> str:
    """Two-letter usage location: first two characters, uppercased."""
    return normalize_text(value)[:2].upper()


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a date cell: ISO 8601, then spreadsheet serial number, then the
    locale formats in LOCALE_DATE_FORMATS. Returns None when nothing fits.
    """
    text = normalize_text(value)
    if not text:
        return None

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    if _SERIAL.fullmatch(text):
        serial = float(text)
        if 1 <= serial <= MAX_SERIAL:
            return SERIAL_EPOCH + timedelta(days=int(serial))
        return None

    for fmt in LOCALE_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def normalize_date(value: Any) -> str:
    """ISO date string, or the trimmed raw value when it cannot be parsed."""
    parsed = parse_date(value)
    if parsed is None:
        return normalize_text(value)
    return parsed.isoformat()


def parse_flag(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    word = normalize_text(value).casefold()
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    return default


def normalize_value(field: LogicalField, value: Any) -> str:
    """Canonical string form of a value, used for display and diffing."""
    if field.kind == PHONES:
        if isinstance(value, (list, tuple)):
            value = value[0] if value else ""
        return normalize_text(value)
    if field.kind == REGION:
        return normalize_region(value)
    if field.kind == DATE:
        return normalize_date(value)
    if field.kind == FLAG:
        if isinstance(value, bool):
            return "true" if value else "false"
        return normalize_text(value)
    return normalize_text(value)


def comparison_key(field: LogicalField, value: Any) -> str:
    return normalize_value(field, value).casefold()


def to_graph_value(field: LogicalField, value: str, default_flag: bool = True) -> Any:
    """Render a normalized sheet value the way Graph expects it."""
    if field.kind == PHONES:
        return [value] if value else []
    if field.kind == FLAG:
        return parse_flag(value, default_flag)
    if field.kind == DATE:
        parsed = parse_date(value)
        if parsed is not None:
            return f"{parsed.isoformat()}T00:00:00Z"
        return value
    return value
