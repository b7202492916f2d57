"""
portal/visibility.py

Role-scoped requisition visibility.

Rules (re-applied on every list, never cached on the record):
- Employee: own requisitions only.
- HOD: own requisitions + Employee requisitions of their department.
  Other HODs' / Finance submissions are NOT visible, even in the same department.
  An HOD without a department sees own requisitions only.
- Finance: everything.
- Any other role (Admin, SuperUser, unknown): nothing.

Each predicate has an in-process form (plain Python over a collection) and a
store-side form (SQLAlchemy clause). Both must select the same records.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional

from sqlalchemy import and_, false, or_, true

from .errors import ValidationError
from .models import ApprovalStatus, Requisition, Role
from .workflow import (
    APPROVED,
    DECLINED,
    FINANCE_REVIEW,
    STATUS_FILTERS,
    derived_status,
)


# ---------------------------------------------------------------------
# In-process predicates
# ---------------------------------------------------------------------
def is_visible_to(requisition: Any, role: str | None, user_id: Any, department: str | None) -> bool:
    match role:
        case Role.EMPLOYEE:
            return requisition.requested_by == user_id
        case Role.HOD:
            if requisition.requested_by == user_id:
                return True
            return bool(department) and (
                requisition.requested_by_role == Role.EMPLOYEE
                and requisition.requested_by_department == department
            )
        case Role.FINANCE:
            return True
        case _:
            return False


def list_for(
    collection: Iterable[Any],
    role: str | None,
    user_id: Any,
    department: str | None,
) -> List[Any]:
    """Filter a full requisition collection down to what the principal may see."""
    return [r for r in collection if is_visible_to(r, role, user_id, department)]


def _contains(value: Optional[str], term: str) -> bool:
    return term in (value or "").lower()


def search(collection: Iterable[Any], term: Optional[str]) -> List[Any]:
    """Case-insensitive substring match on item, requester name, description, comment."""
    items = list(collection)
    if not term:
        return items

    needle = term.lower()
    return [
        r
        for r in items
        if _contains(r.item, needle)
        or _contains(r.requested_by_name, needle)
        or _contains(r.description, needle)
        or _contains(r.comment, needle)
    ]


def _normalize_status_filter(status: Optional[str]) -> Optional[str]:
    """Return the derived-status label for a filter key, None for 'all'."""
    key = (status or "all").strip().lower()
    if key == "all":
        return None
    if key not in STATUS_FILTERS:
        allowed = ", ".join(["all", *STATUS_FILTERS])
        raise ValidationError({"status": f"Must be one of: {allowed}"})
    return STATUS_FILTERS[key]


def filter_by_derived_status(collection: Iterable[Any], status: Optional[str]) -> List[Any]:
    """
    Keep requisitions whose derived status matches the filter key.

    The four keys partition any collection: every record lands in exactly one
    of approved / declined / pending / finance-review.
    """
    items = list(collection)
    label = _normalize_status_filter(status)
    if label is None:
        return items
    return [r for r in items if derived_status(r) == label]


# ---------------------------------------------------------------------
# Store-side twins (SQLAlchemy)
# ---------------------------------------------------------------------
def visibility_clause(role: str | None, user_id: Any, department: str | None):
    own = Requisition.requested_by == user_id

    match role:
        case Role.EMPLOYEE:
            return own
        case Role.HOD:
            if not department:
                return own
            return or_(
                own,
                and_(
                    Requisition.requested_by_role == Role.EMPLOYEE,
                    Requisition.requested_by_department == department,
                ),
            )
        case Role.FINANCE:
            return true()
        case _:
            return false()


def derived_status_clause(status: Optional[str]):
    """SQL predicate equivalent to filter_by_derived_status()."""
    label = _normalize_status_filter(status)
    hod = Requisition.hod_status
    fin = Requisition.finance_status

    declined = or_(hod == ApprovalStatus.DECLINED, fin == ApprovalStatus.DECLINED)

    if label is None:
        return true()
    if label == DECLINED:
        return declined
    if label == APPROVED:
        return and_(~declined, fin == ApprovalStatus.APPROVED)
    if label == FINANCE_REVIEW:
        return and_(hod == ApprovalStatus.APPROVED, fin == ApprovalStatus.PENDING)
    # PENDING: neither declined, finance not approved, HOD not approved
    return and_(~declined, fin != ApprovalStatus.APPROVED, hod != ApprovalStatus.APPROVED)


def scope_query(query, role: str | None, user_id: Any, department: str | None):
    """Apply the visibility predicate to a Requisition query."""
    return query.filter(visibility_clause(role, user_id, department))
