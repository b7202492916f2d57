import itertools

import pytest

from fakes import make_requisition, principal
from portal.errors import AuthorizationError, InvalidTransitionError, ValidationError
from portal.models import SYSTEM_ACTOR, ApprovalStatus, Role
from portal.workflow import (
    AUTO_APPROVED_LABEL,
    DERIVED_STATUSES,
    derive_status,
    derived_status,
    has_approval_activity,
    record_decision,
    route,
)

P, A, D = ApprovalStatus.PENDING, ApprovalStatus.APPROVED, ApprovalStatus.DECLINED


@pytest.mark.parametrize(
    "hod, finance, expected",
    [
        (P, P, "Pending"),
        (A, P, "Finance Review"),
        (A, A, "Approved"),
        (P, A, "Approved"),
        (D, P, "Declined"),
        (D, A, "Declined"),
        (A, D, "Declined"),
        (P, D, "Declined"),
        (D, D, "Declined"),
    ],
)
def test_derive_status(hod, finance, expected):
    assert derive_status(hod, finance) == expected


def test_derive_status_is_total():
    for hod, finance in itertools.product(ApprovalStatus.ALL, repeat=2):
        assert derive_status(hod, finance) in DERIVED_STATUSES


# ---------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------
def test_employee_submission_is_not_rerouted():
    req = make_requisition()
    calls = []
    route(req, Role.EMPLOYEE, lambda r: calls.append(r) or False)
    assert (req.hod_status, req.finance_status) == (P, P)
    assert req.history == []
    assert calls == []


@pytest.mark.parametrize("role", [Role.HOD, Role.FINANCE])
def test_approver_submission_with_available_hod_stays_pending(role):
    req = make_requisition(role=role)
    route(req, role, lambda r: True)
    assert (req.hod_status, req.finance_status) == (P, P)
    assert req.history == []


@pytest.mark.parametrize("role", [Role.HOD, Role.FINANCE])
def test_approver_submission_without_hod_is_auto_approved(role):
    req = make_requisition(role=role)
    route(req, role, lambda r: False)
    assert (req.hod_status, req.finance_status) == (A, P)
    assert len(req.history) == 1
    entry = req.history[0]
    assert entry.status == AUTO_APPROVED_LABEL
    assert entry.actor_name == SYSTEM_ACTOR
    assert entry.actor_id is None
    assert derived_status(req) == "Finance Review"


# ---------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------
def test_two_stage_approval_end_to_end():
    employee = principal(Role.EMPLOYEE, department="IT")
    hod = principal(Role.HOD, department="IT", name="Helen HOD")
    finance = principal(Role.FINANCE, department="Finance", name="Frank Finance")
    req = make_requisition(requested_by=employee.id, department="IT")

    record_decision(req, "hod", "approve", hod)
    assert req.hod_status == A
    assert len(req.history) == 1
    assert derived_status(req) == "Finance Review"

    record_decision(req, "finance", "approve", finance)
    assert req.finance_status == A
    assert len(req.history) == 2
    assert derived_status(req) == "Approved"

    assert [h.status for h in req.history] == ["HOD Approved", "Finance Approved"]
    assert [h.actor_name for h in req.history] == ["Helen HOD", "Frank Finance"]
    assert [h.actor_role for h in req.history] == [Role.HOD, Role.FINANCE]


def test_hod_decline_is_terminal():
    hod = principal(Role.HOD, department="IT")
    finance = principal(Role.FINANCE)
    req = make_requisition(department="IT")

    record_decision(req, "hod", "decline", hod, comment="over budget")
    assert derived_status(req) == "Declined"
    assert req.history[-1].comment == "over budget"

    with pytest.raises(InvalidTransitionError):
        record_decision(req, "hod", "approve", hod)
    with pytest.raises(InvalidTransitionError):
        record_decision(req, "finance", "approve", finance)
    assert len(req.history) == 1


def test_finance_cannot_decide_before_hod_approval():
    finance = principal(Role.FINANCE)
    req = make_requisition()
    with pytest.raises(InvalidTransitionError):
        record_decision(req, "finance", "approve", finance)
    assert (req.hod_status, req.finance_status) == (P, P)
    assert req.history == []


def test_finance_decision_is_final():
    finance = principal(Role.FINANCE)
    req = make_requisition(hod=A)
    record_decision(req, "finance", "decline", finance)
    assert derived_status(req) == "Declined"
    with pytest.raises(InvalidTransitionError):
        record_decision(req, "finance", "approve", finance)


def test_stage_requires_matching_role():
    req = make_requisition(department="IT")
    with pytest.raises(AuthorizationError):
        record_decision(req, "hod", "approve", principal(Role.FINANCE, department="IT"))
    with pytest.raises(AuthorizationError):
        record_decision(req, "hod", "approve", principal(Role.EMPLOYEE, department="IT"))
    req.hod_status = A
    with pytest.raises(AuthorizationError):
        record_decision(req, "finance", "approve", principal(Role.HOD, department="IT"))


def test_hod_of_other_department_cannot_decide():
    req = make_requisition(department="IT")
    with pytest.raises(AuthorizationError):
        record_decision(req, "hod", "approve", principal(Role.HOD, department="Sales"))


def test_approver_cannot_decide_own_requisition():
    hod = principal(Role.HOD, department="IT")
    req = make_requisition(requested_by=hod.id, role=Role.HOD, department="IT")
    with pytest.raises(AuthorizationError):
        record_decision(req, "hod", "approve", hod)


def test_unknown_stage_and_decision_are_validation_errors():
    hod = principal(Role.HOD, department="IT")
    req = make_requisition(department="IT")
    with pytest.raises(ValidationError):
        record_decision(req, "ceo", "approve", hod)
    with pytest.raises(ValidationError):
        record_decision(req, "hod", "maybe", hod)


def test_has_approval_activity():
    req = make_requisition()
    assert not has_approval_activity(req)
    route(req, Role.HOD, lambda r: False)
    assert has_approval_activity(req)
