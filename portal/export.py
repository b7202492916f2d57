"""
Flat text exports (CSV list export + single requisition report).

Free-text fields (description, comment) have commas replaced by semicolons
instead of being quoted. The Status column is always the derived status.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable

from .workflow import derived_status

CSV_HEADER = ("Date", "Employee", "Item", "Amount", "Description", "Status", "Comment")
HISTORY_DATE_FORMAT = "%d/%m/%Y, %H:%M:%S"


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _free_text(value: Any) -> str:
    return _text(value).replace(",", ";")


def export_filename(today: date | None = None) -> str:
    return f"quotes_export_{(today or date.today()).isoformat()}.csv"


def to_csv(collection: Iterable[Any]) -> str:
    """Header line + one line per requisition, no trailing newline."""
    rows = [list(CSV_HEADER)]
    for r in collection:
        rows.append(
            [
                _text(r.date),
                _text(r.requested_by_name),
                _text(r.item),
                _text(r.amount),
                _free_text(r.description),
                derived_status(r),
                _free_text(r.comment),
            ]
        )
    return "\n".join(",".join(row) for row in rows)


def to_detail_report(requisition: Any) -> str:
    rows = [
        ("Field", "Value"),
        ("Transaction ID", _text(requisition.transaction_id)),
        ("Item", _text(requisition.item)),
        ("Amount", _text(requisition.amount)),
        ("Date", _text(requisition.date)),
        ("Requested By", _text(requisition.requested_by_name)),
        ("Description", _free_text(requisition.description)),
        ("Comment", _free_text(requisition.comment)),
        ("HOD Status", _text(requisition.hod_status)),
        ("Finance Status", _text(requisition.finance_status)),
        ("Document", _text(requisition.document_name) or "None"),
        ("Final Status", derived_status(requisition)),
    ]
    content = "\n".join(",".join(row) for row in rows)

    history = list(requisition.history or [])
    if history:
        content += "\n\nApproval History:\n"
        content += "Status,Date,By\n"
        for entry in history:
            when = entry.created_at.strftime(HISTORY_DATE_FORMAT) if entry.created_at else ""
            content += f'{entry.status},"{when}",{entry.actor_name}\n'

    return content
