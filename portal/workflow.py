"""
portal/workflow.py

Two-stage approval state machine (HOD -> Finance).

State is the pair (hod_status, finance_status), each Pending / Approved / Declined.
Initial state is (Pending, Pending).

Rules enforced here (the storage layer does not enforce them):
- Only an HOD decides the HOD stage, only Finance decides the Finance stage.
- Finance may only decide after the HOD stage is Approved.
- A stage that is no longer Pending is final: Declined is terminal for that
  branch, (Approved, Approved) is the success terminal state.
- Approvers never decide their own requisitions.
- Every change of hod_status / finance_status appends exactly one history entry.

The display status is derived on every read, never stored.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from .errors import AuthorizationError, InvalidTransitionError, ValidationError
from .models import SYSTEM_ACTOR, ApprovalStatus, Requisition, RequisitionHistory, Role

logger = logging.getLogger(__name__)

# Derived (display) status labels
APPROVED = "Approved"
DECLINED = "Declined"
FINANCE_REVIEW = "Finance Review"
PENDING = "Pending"

DERIVED_STATUSES = (APPROVED, DECLINED, FINANCE_REVIEW, PENDING)

# Filter keys accepted by list endpoints
STATUS_FILTERS = {
    "approved": APPROVED,
    "declined": DECLINED,
    "pending": PENDING,
    "finance-review": FINANCE_REVIEW,
}

STAGE_HOD = "hod"
STAGE_FINANCE = "finance"

AUTO_APPROVED_LABEL = "Auto-approved (HOD Unavailable)"

_DECISIONS = {"approve": ApprovalStatus.APPROVED, "decline": ApprovalStatus.DECLINED}


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def derive_status(hod_status: str | None, finance_status: str | None) -> str:
    """Total function over (hod, finance) -> display status. HOD decline short-circuits."""
    if hod_status == ApprovalStatus.DECLINED or finance_status == ApprovalStatus.DECLINED:
        return DECLINED
    if finance_status == ApprovalStatus.APPROVED:
        return APPROVED
    if hod_status == ApprovalStatus.APPROVED:
        return FINANCE_REVIEW
    return PENDING


def derived_status(requisition: Any) -> str:
    return derive_status(requisition.hod_status, requisition.finance_status)


def has_approval_activity(requisition: Requisition) -> bool:
    """True once any approval step (human or system) has happened."""
    return bool(requisition.history) or not (
        requisition.hod_status == ApprovalStatus.PENDING
        and requisition.finance_status == ApprovalStatus.PENDING
    )


def _append_history(
    requisition: Requisition,
    status: str,
    *,
    actor: Any = None,
    comment: str | None = None,
    at: datetime | None = None,
) -> RequisitionHistory:
    entry = RequisitionHistory(
        status=status,
        actor_id=getattr(actor, "id", None) if actor is not None else None,
        actor_name=(getattr(actor, "name", None) or getattr(actor, "email", None)) if actor is not None else SYSTEM_ACTOR,
        actor_role=getattr(actor, "role", None) if actor is not None else None,
        comment=comment,
        created_at=at or _now(),
    )
    requisition.history.append(entry)
    return entry


# ---------------------------------------------------------------------
# Submission routing
# ---------------------------------------------------------------------
def route(
    requisition: Requisition,
    requestor_role: str,
    availability: Callable[[Requisition], bool],
) -> Requisition:
    """
    Route a freshly submitted requisition.

    - Employee: stays (Pending, Pending), normal two-stage approval.
    - HOD / Finance requester: if the HOD stage has an available approver the
      state is (Pending, Pending); otherwise the HOD stage is bypassed with a
      system history entry and the state becomes (Approved, Pending).
      Finance is never skipped.
    """
    if requestor_role not in Role.APPROVERS:
        return requisition

    if availability(requisition):
        requisition.hod_status = ApprovalStatus.PENDING
        requisition.finance_status = ApprovalStatus.PENDING
        return requisition

    requisition.hod_status = ApprovalStatus.APPROVED
    requisition.finance_status = ApprovalStatus.PENDING
    _append_history(requisition, AUTO_APPROVED_LABEL)
    logger.info(
        "Requisition %s auto-approved at HOD stage (no available HOD in %r)",
        requisition.transaction_id,
        requisition.requested_by_department,
    )
    return requisition


# ---------------------------------------------------------------------
# Approver decisions
# ---------------------------------------------------------------------
def can_decide(actor: Any, requisition: Requisition, stage: str) -> None:
    """Raise AuthorizationError unless actor may decide `stage` of `requisition`."""
    role = getattr(actor, "role", None)

    if requisition.requested_by is not None and requisition.requested_by == getattr(actor, "id", None):
        raise AuthorizationError("Approvers cannot decide their own requisitions")

    match stage:
        case "hod":
            if role != Role.HOD:
                raise AuthorizationError("Only a Head of Department can decide the HOD stage")
            department = getattr(actor, "department", None)
            if not department or requisition.requested_by_department != department:
                raise AuthorizationError("Requisition belongs to another department")
        case "finance":
            if role != Role.FINANCE:
                raise AuthorizationError("Only Finance can decide the Finance stage")
        case _:
            raise ValidationError({"stage": "Must be 'hod' or 'finance'"})


def record_decision(
    requisition: Requisition,
    stage: str,
    decision: str,
    actor: Any,
    comment: str | None = None,
) -> Requisition:
    """Apply one approver decision and append its history entry."""
    new_status = _DECISIONS.get(decision)
    if new_status is None:
        raise ValidationError({"decision": "Must be 'approve' or 'decline'"})

    can_decide(actor, requisition, stage)

    if stage == STAGE_HOD:
        if requisition.hod_status != ApprovalStatus.PENDING:
            raise InvalidTransitionError(f"HOD stage is already {requisition.hod_status}")
        requisition.hod_status = new_status
        label = f"HOD {new_status}"
    else:
        if requisition.hod_status != ApprovalStatus.APPROVED:
            raise InvalidTransitionError("Finance cannot decide before HOD approval")
        if requisition.finance_status != ApprovalStatus.PENDING:
            raise InvalidTransitionError(f"Finance stage is already {requisition.finance_status}")
        requisition.finance_status = new_status
        label = f"Finance {new_status}"

    _append_history(requisition, label, actor=actor, comment=comment)
    logger.info(
        "Requisition %s: %s by user %s -> %s",
        requisition.transaction_id,
        label,
        getattr(actor, "id", None),
        derived_status(requisition),
    )
    return requisition
