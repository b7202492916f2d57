"""
Approver availability check used when routing approver-submitted requisitions.
"""

from __future__ import annotations

from .models import Requisition, Role, User


class DepartmentApproverAvailability:
    """
    HOD stage is available iff an active, available HOD other than the
    requester exists in the requester's department.
    """

    def __call__(self, requisition: Requisition) -> bool:
        department = requisition.requested_by_department
        if not department:
            return False

        query = User.query.filter(
            User.role == Role.HOD,
            User.department == department,
            User.is_active.is_(True),
            User.is_available.is_(True),
        )
        if requisition.requested_by is not None:
            query = query.filter(User.id != requisition.requested_by)
        return query.first() is not None
