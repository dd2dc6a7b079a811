#!/usr/bin/env python3
"""
Value Normalizer - Defensive parsing of upstream amounts and dates

Report exports and JSON collections are not contractually typed: the same
figure can arrive as a number, "$1,234.50", "(200)" or an empty cell, and
dates as "2025-03", "2025-03-02T10:00:00Z", "3/2/25" or "Mar 2, 2025".
Every function here returns a neutral value instead of raising.
"""

import math
import re
import sys
import warnings
from datetime import date, datetime
from typing import Any, List, Optional

import pandas as pd


YEAR_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")
ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
SLASH_DATE_RE = re.compile(r"\d{1,2}/\d{1,2}/\d{2,4}")
LEADING_NUMBER_RE = re.compile(r"-?\d*\.?\d+")
KEY_TOKEN_RE = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+")


def parse_amount(raw: Any) -> float:
    """
    Parse a loosely formatted currency or hours value.

    Keeps digits, '.', ',', parentheses and '-'. A value wrapped in
    parentheses is negative. With several '.' only the last one is the
    decimal separator.

    Returns:
        Parsed float, or 0.0 for empty or unparseable input
    """
    if raw is None or isinstance(raw, bool):
        return 0.0

    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else 0.0

    if not isinstance(raw, str):
        return 0.0

    text = raw.strip()
    if not text:
        return 0.0

    numeric = re.sub(r"[^0-9.,()\-]", "", text)
    is_negative = "(" in numeric and ")" in numeric
    numeric = re.sub(r"[(),]", "", numeric)

    if numeric.count(".") > 1:
        head, _, tail = numeric.rpartition(".")
        numeric = head.replace(".", "") + "." + tail

    match = LEADING_NUMBER_RE.match(numeric)
    if not match:
        return 0.0

    try:
        value = float(match.group(0))
    except ValueError:
        return 0.0

    return -abs(value) if is_negative else value


def parse_date(raw: Any) -> Optional[date]:
    """
    Parse a date from heterogeneous upstream text.

    Order: bare YYYY-MM (first of month), embedded ISO YYYY-MM-DD,
    M/D/YYYY or M/D/YY (two-digit years are 2000+), then a generic parse
    for text carrying a month name.

    Returns:
        A calendar date, or None when nothing parses
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw

    if not isinstance(raw, str):
        return None

    text = raw.strip()
    if not text:
        return None

    if YEAR_MONTH_RE.match(text):
        parsed = _safe_date(int(text[:4]), int(text[5:7]), 1)
        if parsed:
            return parsed

    iso_match = ISO_DATE_RE.search(text)
    if iso_match:
        year, month, day = (int(part) for part in iso_match.group(0).split("-"))
        parsed = _safe_date(year, month, day)
        if parsed:
            return parsed

    slash_match = SLASH_DATE_RE.search(text)
    if slash_match:
        month, day, year = (int(part) for part in slash_match.group(0).split("/"))
        if year < 100:
            year += 2000
        parsed = _safe_date(year, month, day)
        if parsed:
            return parsed

    return _generic_parse(text)


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _generic_parse(text: str) -> Optional[date]:
    # Bare numbers and free text are not dates; require a month word and a digit.
    if not re.search(r"[A-Za-z]{3}", text) or not re.search(r"\d", text):
        return None

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            parsed = pd.to_datetime(text, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return None

    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date()


def round_value(value: float) -> float:
    """Round to 2 decimals, half away from zero, after an epsilon nudge."""
    scaled = (value + sys.float_info.epsilon) * 100
    return math.copysign(math.floor(abs(scaled) + 0.5), scaled) / 100 + 0.0


def normalize_key(value: Any) -> str:
    """Lowercase a column name and drop everything but letters and digits."""
    return re.sub(r"[^a-z0-9]", "", str(value).lower())


def key_tokens(value: Any) -> List[str]:
    """Lowercase words of a column name ("hoursBilled (Total)" -> hours, billed, total)."""
    return [token.lower() for token in KEY_TOKEN_RE.findall(str(value))]


def contains_at_word_start(value: Any, keyword: str) -> bool:
    """
    True when a normalized keyword occurs starting at a word boundary.

    "Write Off" contains "writeoff" and "Payment Date" contains "date",
    but "Updated" does not contain "date" and "Generated" not "rate".
    """
    tokens = key_tokens(value)
    joined = "".join(tokens)
    keyword = normalize_key(keyword)
    start = 0
    for token in tokens:
        if keyword and joined.startswith(keyword, start):
            return True
        start += len(token)
    return False


def is_numeric_text(value: Any) -> bool:
    """True when a value reads as a plain number ("12", "$1,200.00", "(5)")."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return True
    if not isinstance(value, str):
        return False
    return bool(re.fullmatch(r"\s*[-+$€£(]*\s*[\d.,]+\s*[)%]*\s*", value))


def to_hours(value: float, unit: str = "hours") -> float:
    """
    Convert a duration to hours.

    Args:
        value: Raw duration
        unit: 'hours', 'minutes', 'seconds' or 'auto' (magnitude guess:
            above 3600 is seconds, above 60 is minutes)
    """
    unit = (unit or "hours").lower()
    if unit == "auto":
        magnitude = abs(value)
        if magnitude > 3600:
            unit = "seconds"
        elif magnitude > 60:
            unit = "minutes"
        else:
            unit = "hours"

    if unit == "seconds":
        return value / 3600
    if unit == "minutes":
        return value / 60
    return value
