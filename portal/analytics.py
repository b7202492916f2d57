"""
Summary statistics over a requisition collection.

Pure function of its input (and `now` for the monthly window). Values are
recomputed on every call; nothing here is persisted.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List

from .models import ApprovalStatus, to_decimal

TREND_MONTHS = 12

# Sentinel category for missing values
DEFAULT_DOCUMENT_STATUS = "Draft"
DEFAULT_APPROVAL_STATUS = ApprovalStatus.PENDING
DEFAULT_DEPARTMENT = "Unknown"
DEFAULT_URGENCY = "NORMAL"


def _money(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _breakdown(items: List[Any], attr: str, default: str) -> Dict[str, int]:
    return dict(Counter((getattr(r, attr, None) or default) for r in items))


def _trailing_months(now: datetime, count: int = TREND_MONTHS) -> List[str]:
    """Month keys "YYYY-MM", oldest first, current month last."""
    keys = []
    year, month = now.year, now.month
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def monthly_trends(items: Iterable[Any], now: datetime) -> List[dict]:
    buckets = {key: {"month": key, "count": 0, "value": Decimal("0.00")} for key in _trailing_months(now)}

    for r in items:
        created = getattr(r, "created_at", None)
        if created is None:
            continue
        bucket = buckets.get(created.strftime("%Y-%m"))
        if bucket is None:
            continue
        bucket["count"] += 1
        bucket["value"] += to_decimal(r.amount)

    return [{**b, "value": _money(b["value"])} for b in buckets.values()]


def average_processing_days(items: Iterable[Any]) -> float:
    """Mean (updated_at - created_at) in days over fully approved requisitions."""
    durations = [
        (r.updated_at - r.created_at).total_seconds() / 86400
        for r in items
        if r.hod_status == ApprovalStatus.APPROVED
        and r.finance_status == ApprovalStatus.APPROVED
        and r.created_at is not None
        and r.updated_at is not None
    ]
    if not durations:
        return 0.0
    return sum(durations) / len(durations)


def summarize(collection: Iterable[Any], now: datetime | None = None) -> dict:
    items = list(collection)
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)

    total = len(items)
    total_value = sum((to_decimal(r.amount) for r in items), Decimal("0.00"))
    average_value = _money(total_value / total) if total else Decimal("0.00")

    return {
        "overview": {
            "total": total,
            "totalValue": _money(total_value),
            "averageValue": average_value,
        },
        "statusBreakdown": _breakdown(items, "document_status", DEFAULT_DOCUMENT_STATUS),
        "hodStatusBreakdown": _breakdown(items, "hod_status", DEFAULT_APPROVAL_STATUS),
        "financeStatusBreakdown": _breakdown(items, "finance_status", DEFAULT_APPROVAL_STATUS),
        "departmentBreakdown": _breakdown(items, "requested_by_department", DEFAULT_DEPARTMENT),
        "urgencyBreakdown": _breakdown(items, "urgency_level", DEFAULT_URGENCY),
        "monthlyTrends": monthly_trends(items, now),
        "avgProcessingTime": average_processing_days(items),
    }
