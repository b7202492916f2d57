"""
Transaction ID helpers.

Format: TYPE-YYYYMMDD-EPOCHMILLIS-RANDOM, e.g. QR-20241201-1701234567890-ABC123

- Sortable by date then millisecond timestamp.
- RANDOM is 6 uppercase base36 characters drawn from `secrets`.
- validate() only accepts the "QR" family; IDs generated with another prefix
  (e.g. "PR") are well-formed but do not validate.
"""

from __future__ import annotations

import re
import secrets
import string
import time
from datetime import datetime, timezone

_BASE36 = string.digits + string.ascii_uppercase
_VALID_RE = re.compile(r"^QR-\d{8}-\d{13}-[A-Z0-9]{6}$")
_DISPLAY_RE = re.compile(r"(.{2})-(.{8})-(.+)-(.+)")


def generate(prefix: str = "QR") -> str:
    """Return a new transaction ID for the given type prefix."""
    millis = time.time_ns() // 1_000_000
    date_part = datetime.fromtimestamp(millis / 1000, tz=timezone.utc).strftime("%Y%m%d")
    random_part = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{prefix}-{date_part}-{millis}-{random_part}"


def validate(transaction_id: str | None) -> bool:
    if not transaction_id:
        return False
    return bool(_VALID_RE.fullmatch(transaction_id))


def format_transaction_id(transaction_id: str) -> str:
    """Display-only redaction: hide the timestamp field. Never compare on this."""
    return _DISPLAY_RE.sub(r"\1-\2-***-\4", transaction_id, count=1)
