"""
portal/services.py

Requisition use cases: list, view, submit, edit, decide.

Collaborators are injected so they can be replaced in tests:
- repository   : RequisitionRepository (SQLAlchemy by default)
- availability : callable(requisition) -> bool, HOD stage availability
- notifier     : callable(recipient_email, template_type, variables)
- audit        : callable(entity, action, actor=..., before=..., after=...)

IMPORTANT:
- All validation and authorization happens before any mutation.
- Invisible and non-existent requisitions both raise NotFoundError.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from . import transaction_ids
from .audit import log_action, serialize_model
from .availability import DepartmentApproverAvailability
from .errors import AuthorizationError, InvalidTransitionError, NotFoundError, ValidationError
from .models import ApprovalStatus, Requisition, Role
from .notifications import queue_notification
from .repository import RequisitionRepository, SqlAlchemyRequisitionRepository
from .utils import clean_str, parse_date, parse_decimal
from .visibility import filter_by_derived_status, is_visible_to, search
from .workflow import STAGE_HOD, derived_status, has_approval_activity, record_decision, route

logger = logging.getLogger(__name__)

URGENCY_LEVELS = ("LOW", "NORMAL", "HIGH", "URGENT")


def _clean_content(data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
    """
    Validate requisition content fields.

    partial=False (submit): item and amount are required.
    partial=True (edit): only provided keys are validated and returned.
    """
    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    def provided(key: str) -> bool:
        return not partial or key in data

    if provided("item"):
        item = clean_str(data.get("item"))
        if not item:
            errors["item"] = "Item is required"
        elif len(item) > 255:
            errors["item"] = "Item must be at most 255 characters"
        else:
            cleaned["item"] = item

    if provided("amount"):
        amount = parse_decimal(data.get("amount"))
        if amount is None:
            errors["amount"] = "Amount is required and must be a number"
        elif amount <= 0:
            errors["amount"] = "Amount must be greater than zero"
        else:
            cleaned["amount"] = amount

    if "date" in data or not partial:
        raw_date = data.get("date")
        if raw_date in (None, ""):
            if not partial:
                cleaned["date"] = date.today()
        else:
            parsed = parse_date(raw_date)
            if parsed is None:
                errors["date"] = "Date must be YYYY-MM-DD"
            else:
                cleaned["date"] = parsed

    for key in ("description", "comment"):
        if key in data or not partial:
            cleaned[key] = clean_str(data.get(key)) or ""

    if "urgencyLevel" in data or not partial:
        urgency = (clean_str(data.get("urgencyLevel")) or "NORMAL").upper()
        if urgency not in URGENCY_LEVELS:
            errors["urgencyLevel"] = f"Must be one of: {', '.join(URGENCY_LEVELS)}"
        else:
            cleaned["urgency_level"] = urgency

    for key, column in (("documentUrl", "document_url"), ("documentName", "document_name"), ("documentType", "document_type")):
        if key in data:
            cleaned[column] = clean_str(data.get(key))

    if errors:
        raise ValidationError(errors)
    return cleaned


class RequisitionService:
    def __init__(
        self,
        repository: Optional[RequisitionRepository] = None,
        availability: Optional[Callable[[Requisition], bool]] = None,
        notifier: Optional[Callable[..., Any]] = None,
        audit: Optional[Callable[..., Any]] = None,
        id_prefix: str = "QR",
    ):
        self.repository = repository or SqlAlchemyRequisitionRepository()
        self.availability = availability or DepartmentApproverAvailability()
        self.notifier = notifier or queue_notification
        self.audit = audit or log_action
        self.id_prefix = id_prefix

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------
    def list_for(self, principal: Any, term: Optional[str] = None, status: Optional[str] = "all") -> List[Requisition]:
        items = self.repository.list_visible(principal.role, principal.id, principal.department)
        items = search(items, term)
        return filter_by_derived_status(items, status)

    def get_for(self, principal: Any, requisition_id: int) -> Requisition:
        requisition = self.repository.get(requisition_id)
        if requisition is None or not is_visible_to(
            requisition, principal.role, principal.id, principal.department
        ):
            raise NotFoundError()
        return requisition

    def _get_for_decision(self, principal: Any, requisition_id: int, stage: str) -> Requisition:
        requisition = self.repository.get(requisition_id)
        if requisition is None:
            raise NotFoundError()

        visible = is_visible_to(requisition, principal.role, principal.id, principal.department)
        # HODs also decide approver-submitted requisitions of their own department
        in_department = (
            stage == STAGE_HOD
            and principal.role == Role.HOD
            and bool(principal.department)
            and requisition.requested_by_department == principal.department
        )
        if not (visible or in_department):
            raise NotFoundError()
        return requisition

    # -----------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------
    def submit(self, principal: Any, data: Dict[str, Any]) -> Requisition:
        if principal.role not in Role.REQUESTERS:
            raise AuthorizationError("Your role cannot submit requisitions")

        cleaned = _clean_content(data, partial=False)

        requisition = Requisition(
            transaction_id=transaction_ids.generate(self.id_prefix),
            requested_by=principal.id,
            requested_by_name=principal.name,
            requested_by_role=principal.role,
            requested_by_department=principal.department,
            document_status="Submitted",
            hod_status=ApprovalStatus.PENDING,
            finance_status=ApprovalStatus.PENDING,
            **cleaned,
        )
        route(requisition, principal.role, self.availability)

        self.repository.add(requisition)
        self.audit(requisition, "CREATE", actor=principal, after=serialize_model(requisition))
        self.repository.save(requisition)

        logger.info(
            "Requisition %s submitted by user %s (%s), state %s/%s",
            requisition.transaction_id,
            principal.id,
            principal.role,
            requisition.hod_status,
            requisition.finance_status,
        )
        return requisition

    def update_content(self, principal: Any, requisition_id: int, data: Dict[str, Any]) -> Requisition:
        requisition = self.get_for(principal, requisition_id)

        if requisition.requested_by != principal.id:
            raise AuthorizationError("Only the requester can edit a requisition")
        if has_approval_activity(requisition):
            raise InvalidTransitionError("Requisition can no longer be edited after an approval action")

        cleaned = _clean_content(data, partial=True)
        if not cleaned:
            return requisition

        before = serialize_model(requisition)
        for key, value in cleaned.items():
            setattr(requisition, key, value)

        self.audit(requisition, "UPDATE", actor=principal, before=before, after=serialize_model(requisition))
        self.repository.save(requisition)
        return requisition

    def decide(
        self,
        principal: Any,
        requisition_id: int,
        stage: str,
        decision: str,
        comment: Optional[str] = None,
    ) -> Requisition:
        requisition = self._get_for_decision(principal, requisition_id, stage)

        before = serialize_model(requisition)
        record_decision(requisition, stage, decision, principal, comment=clean_str(comment))

        self.audit(requisition, "DECIDE", actor=principal, before=before, after=serialize_model(requisition))
        self.repository.save(requisition)

        self._notify_requester(requisition, stage, decision, principal, comment)
        return requisition

    def _notify_requester(self, requisition: Requisition, stage: str, decision: str, principal: Any, comment: Optional[str]):
        requester = getattr(requisition, "requester", None)
        email = getattr(requester, "email", None)
        if not email:
            return

        template_type = "quote_approved" if decision == "approve" else "quote_declined"
        self.notifier(
            email,
            template_type,
            {
                "name": requisition.requested_by_name,
                "item": requisition.item,
                "amount": str(requisition.amount),
                "transaction_id": requisition.transaction_id,
                "stage": "HOD" if stage == STAGE_HOD else "Finance",
                "status": derived_status(requisition),
                "approver": getattr(principal, "name", None),
                "comment": clean_str(comment) or "",
            },
        )
