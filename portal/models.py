"""
Quote Approval Portal – Domain Models

Includes:
- User (authenticated principal: role, department, approver availability)
- Requisition (quote / purchase requisition) with two independent approval fields
- RequisitionHistory (append-only approval trail)
- EmailTemplate, SystemSetting, Notification (admin-managed configuration + outbox)
- AuditLog

IMPORTANT:
- The display status of a requisition ("Approved", "Declined", "Finance Review",
  "Pending") is never stored. It is derived from hod_status + finance_status on
  every read (see portal.workflow.derived_status).
- History rows are append-only. The ORM refuses UPDATE and DELETE on them.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from flask_login import UserMixin
from sqlalchemy import event
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import InvalidTransitionError
from .extensions import db


def _utcnow() -> datetime:
    """Naive UTC timestamp (SQLite stores naive datetimes)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Role:
    EMPLOYEE = "Employee"
    HOD = "HOD"
    FINANCE = "Finance"
    ADMIN = "Admin"
    SUPERUSER = "SuperUser"

    ALL = (EMPLOYEE, HOD, FINANCE, ADMIN, SUPERUSER)
    # Roles allowed to submit requisitions
    REQUESTERS = (EMPLOYEE, HOD, FINANCE)
    APPROVERS = (HOD, FINANCE)
    ADMINISTRATORS = (ADMIN, SUPERUSER)


class ApprovalStatus:
    PENDING = "Pending"
    APPROVED = "Approved"
    DECLINED = "Declined"

    ALL = (PENDING, APPROVED, DECLINED)


SYSTEM_ACTOR = "System"

TEMPLATE_TYPES = ("quote_approved", "quote_declined", "invitation", "general", "reminder")


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user. Also the principal handed to the workflow layer."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=True)

    role = db.Column(db.String(20), nullable=False, default=Role.EMPLOYEE, index=True)
    department = db.Column(db.String(120), nullable=True, index=True)
    permissions = db.Column(db.JSON, nullable=False, default=list)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    # Approver availability (HOD away / on leave => False)
    is_available = db.Column(db.Boolean, default=True, nullable=False, index=True)

    invitation_token = db.Column(db.String(128), nullable=True, unique=True, index=True)

    created_at = db.Column(db.DateTime, default=_utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_administrator(self) -> bool:
        return self.role in Role.ADMINISTRATORS

    def to_principal(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "name": self.name,
            "department": self.department,
            "permissions": list(self.permissions or []),
        }

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"


# ---------------------------------------------------------------------
# Requisitions
# ---------------------------------------------------------------------
class Requisition(db.Model):
    """A quote / purchase requisition moving through HOD then Finance approval."""

    __tablename__ = "requisitions"

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.String(64), unique=True, nullable=False, index=True)

    # Requester identity snapshot (immutable after creation)
    requested_by = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    requested_by_name = db.Column(db.String(255), nullable=False)
    requested_by_role = db.Column(db.String(20), nullable=False, index=True)
    requested_by_department = db.Column(db.String(120), nullable=True, index=True)

    # Content (editable until the first approval action)
    item = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="ZAR")
    description = db.Column(db.Text, nullable=False, default="")
    comment = db.Column(db.Text, nullable=False, default="")
    date = db.Column(db.Date, nullable=False, default=date.today)
    urgency_level = db.Column(db.String(20), nullable=True)
    document_status = db.Column(db.String(20), nullable=True)

    # Attached source document (reference only)
    document_url = db.Column(db.String(1024), nullable=True)
    document_name = db.Column(db.String(255), nullable=True)
    document_type = db.Column(db.String(120), nullable=True)

    hod_status = db.Column(db.String(20), nullable=False, default=ApprovalStatus.PENDING, index=True)
    finance_status = db.Column(db.String(20), nullable=False, default=ApprovalStatus.PENDING, index=True)

    created_at = db.Column(db.DateTime, default=_utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    # Optimistic concurrency (UPDATE ... WHERE version = :old)
    version = db.Column(db.Integer, nullable=False)

    requester = db.relationship("User", foreign_keys=[requested_by])

    history = db.relationship(
        "RequisitionHistory",
        back_populates="requisition",
        order_by="RequisitionHistory.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs):
        # Column defaults only apply at flush; workflow code reads these before that.
        kwargs.setdefault("hod_status", ApprovalStatus.PENDING)
        kwargs.setdefault("finance_status", ApprovalStatus.PENDING)
        kwargs.setdefault("description", "")
        kwargs.setdefault("comment", "")
        super().__init__(**kwargs)

    def __repr__(self):
        return f"<Requisition {self.transaction_id} {self.hod_status}/{self.finance_status}>"


class RequisitionHistory(db.Model):
    """One approval-trail entry. Append-only."""

    __tablename__ = "requisition_history"

    id = db.Column(db.Integer, primary_key=True)

    requisition_id = db.Column(
        db.Integer,
        db.ForeignKey("requisitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status = db.Column(db.String(120), nullable=False)

    actor_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_name = db.Column(db.String(255), nullable=False)
    actor_role = db.Column(db.String(20), nullable=True)

    comment = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    requisition = db.relationship("Requisition", back_populates="history")

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "date": self.created_at.isoformat() if self.created_at else None,
            "by": self.actor_name,
            "actorId": self.actor_id,
            "actorRole": self.actor_role,
            "comment": self.comment,
        }


@event.listens_for(RequisitionHistory, "before_update")
def _history_no_update(mapper, connection, target):
    raise InvalidTransitionError("Requisition history entries are append-only")


@event.listens_for(RequisitionHistory, "before_delete")
def _history_no_delete(mapper, connection, target):
    raise InvalidTransitionError("Requisition history entries are append-only")


# ---------------------------------------------------------------------
# Admin-managed configuration
# ---------------------------------------------------------------------
class EmailTemplate(db.Model):
    __tablename__ = "email_templates"

    id = db.Column(db.Integer, primary_key=True)
    template_type = db.Column(db.String(40), unique=True, nullable=False, index=True)
    subject = db.Column(db.String(255), nullable=False)
    body = db.Column(db.Text, nullable=False)

    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict:
        return {"templateType": self.template_type, "subject": self.subject, "body": self.body}


class SystemSetting(db.Model):
    __tablename__ = "system_settings"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(80), unique=True, nullable=False, index=True)
    value = db.Column(db.Text, nullable=True)

    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)


class Notification(db.Model):
    """Outbox row consumed by the external email provider."""

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)

    recipient_email = db.Column(db.String(255), nullable=False, index=True)
    template_type = db.Column(db.String(40), nullable=False, index=True)
    variables = db.Column(db.JSON, nullable=False, default=dict)

    subject = db.Column(db.String(255), nullable=True)
    body = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(20), nullable=False, default="queued", index=True)

    created_at = db.Column(db.DateTime, default=_utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "recipientEmail": self.recipient_email,
            "templateType": self.template_type,
            "variables": self.variables,
            "subject": self.subject,
            "body": self.body,
            "status": self.status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class AuditLog(db.Model):
    """Who did what to which entity, with before/after snapshots."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    user_email_snapshot = db.Column(db.String(255), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=_utcnow, index=True)

    user = db.relationship("User", backref=db.backref("audit_entries", lazy=True))


def to_decimal(value) -> Decimal:
    """Convert Numeric/str/None to Decimal safely."""
    if value is None or value == "":
        return Decimal("0.00")
    return Decimal(str(value))
