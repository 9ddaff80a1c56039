"""Shared formatting helpers for generated shipping documents."""
from __future__ import annotations

import math
import re
from datetime import date, datetime

_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")


def normalize_code(value: str | None) -> str:
    """Normalize a product / PT code for matching (trimmed, uppercased)."""
    if not value:
        return ""
    return value.strip().upper()


def format_currency(value: float, decimals: int = 2) -> str:
    """Format an amount as ``$1,234.56`` with a fixed number of decimals."""
    return f"${value:,.{decimals}f}"


def format_weight(value: float) -> str:
    """Weights are always shown with two decimals and no separators."""
    return f"{value:.2f}"


def format_count(value: int | float) -> str:
    """Format a piece / box count with thousands separators."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{value:,}"


def truncate_cents(value: float) -> float:
    """Truncate (never round) a rate to two decimals.

    Declared customs rates are cut down, so 12.349 becomes 12.34.
    """
    return math.floor(value * 100) / 100


def document_date(shipping_date: str | date | datetime) -> str:
    """Return the ``DD.MM.YYYY`` stamp used in document file names.

    Accepts ISO strings (with or without a time part) and date objects.
    """
    if isinstance(shipping_date, datetime):
        shipping_date = shipping_date.date()
    if isinstance(shipping_date, date):
        return shipping_date.strftime("%d.%m.%Y")
    day_part = shipping_date.split("T")[0]
    return ".".join(reversed(day_part.split("-")))


def sanitize_filename_part(name: str) -> str:
    """Replace every non-alphanumeric character with ``_`` and uppercase."""
    return _NON_ALNUM_RE.sub("_", name).upper()


def capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:]
