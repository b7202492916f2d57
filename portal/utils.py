"""
Utility functions shared across the app:
- input parsing helpers (decimal, int, date, trimmed strings)
- email format check
- JSON request body access
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

from flask import request

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def clean_str(value) -> str | None:
    """Strip a user-provided string; empty becomes None."""
    if value is None:
        return None
    raw = str(value).strip()
    return raw or None


def parse_decimal(value) -> Decimal | None:
    """Parse decimal from user input (accepts comma or dot)."""
    if value is None:
        return None
    raw = str(value).strip().replace(",", ".")
    if raw == "":
        return None
    try:
        parsed = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def parse_optional_int(value) -> int | None:
    if value is None:
        return None
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_date(value) -> date | None:
    """Parse an ISO date (YYYY-MM-DD); None if empty/invalid."""
    if isinstance(value, date):
        return value
    raw = clean_str(value)
    if raw is None:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def is_valid_email(value: str | None) -> bool:
    return bool(value) and bool(_EMAIL_RE.match(value))


def json_body() -> dict:
    """Request JSON object, or {} when the body is missing/not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
