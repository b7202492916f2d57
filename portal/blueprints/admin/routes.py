"""
portal/blueprints/admin/routes.py

Admin Routes – Administration Module (Admin / SuperUser)

Includes:
- User management (invite, change role/department/active/availability)
- Email templates (one per notification type)
- System settings (key/value)
- Notification outbox (queue general/reminder messages, list queued rows)

Requirements implemented here:
- Server-side role checks (UI never trusted)
- Only a SuperUser may grant Admin / SuperUser
- Audit logging for CREATE / UPDATE in the same transaction as the change
  Pattern: db.session.flush() -> log_action(...) -> db.session.commit()
"""

from __future__ import annotations

import secrets

from flask import Blueprint, current_app, jsonify
from flask_login import login_required

from ...audit import log_action, serialize_model
from ...errors import AuthorizationError, ValidationError
from ...extensions import db
from ...models import TEMPLATE_TYPES, EmailTemplate, Notification, Role, SystemSetting, User
from ...notifications import queue_notification
from ...security import admin_required, can_assign_role
from ...utils import clean_str, is_valid_email, json_body

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

BROADCAST_TYPES = ("general", "reminder")


def _user_to_dict(user: User) -> dict:
    data = user.to_principal()
    data.update(
        {
            "isActive": user.is_active,
            "isAvailable": user.is_available,
            "invitationPending": user.invitation_token is not None,
            "createdAt": user.created_at.isoformat() if user.created_at else None,
        }
    )
    return data


def _validate_role(role: str | None) -> str:
    if role not in Role.ALL:
        raise ValidationError({"role": f"Must be one of: {', '.join(Role.ALL)}"})
    if not can_assign_role(role):
        raise AuthorizationError("Only a SuperUser can grant administrator roles")
    return role


def _validate_permissions(value) -> list:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
        raise ValidationError({"permissions": "Must be a list of strings"})
    return value


# -------------------------------------------------------
# USERS
# -------------------------------------------------------
@admin_bp.route("/users", methods=["GET"])
@login_required
@admin_required
def list_users():
    users = User.query.order_by(User.name.asc()).all()
    return jsonify({"success": True, "data": [_user_to_dict(u) for u in users]})


@admin_bp.route("/users", methods=["POST"])
@login_required
@admin_required
def invite_user():
    """
    Invite a new user.

    Required: email, name, role. Optional: department, permissions.
    The account stays inactive until the invitation is accepted.
    """
    data = json_body()
    email = (clean_str(data.get("email")) or "").lower()
    name = clean_str(data.get("name"))

    errors = {}
    if not is_valid_email(email):
        errors["email"] = "A valid email is required"
    elif User.query.filter_by(email=email).first():
        errors["email"] = "A user with this email already exists"
    if not name:
        errors["name"] = "Name is required"
    if errors:
        raise ValidationError(errors)

    role = _validate_role(clean_str(data.get("role")) or Role.EMPLOYEE)

    user = User(
        email=email,
        name=name,
        role=role,
        department=clean_str(data.get("department")),
        permissions=_validate_permissions(data.get("permissions")),
        is_active=False,
        is_available=True,
        invitation_token=secrets.token_urlsafe(32),
    )
    db.session.add(user)
    db.session.flush()
    log_action(user, "INVITE", after=serialize_model(user))
    db.session.commit()

    queue_notification(
        user.email,
        "invitation",
        {"name": user.name, "role": user.role, "invitation_token": user.invitation_token},
    )
    current_app.logger.info("Invited user %s as %s", user.id, user.role)
    return jsonify({"success": True, "data": _user_to_dict(user)}), 201


@admin_bp.route("/users/<int:user_id>", methods=["PATCH"])
@login_required
@admin_required
def update_user(user_id: int):
    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({"success": False, "message": "User not found"}), 404

    # Administrator accounts are managed by SuperUsers only
    if user.is_administrator and not can_assign_role(user.role):
        raise AuthorizationError("Only a SuperUser can modify administrator accounts")

    data = json_body()
    before = serialize_model(user)

    if "role" in data:
        user.role = _validate_role(clean_str(data.get("role")))
    if "department" in data:
        user.department = clean_str(data.get("department"))
    if "permissions" in data:
        user.permissions = _validate_permissions(data.get("permissions"))
    for key, column in (("isActive", "is_active"), ("isAvailable", "is_available")):
        if key in data:
            if not isinstance(data[key], bool):
                raise ValidationError({key: "Must be true or false"})
            setattr(user, column, data[key])

    log_action(user, "UPDATE", before=before, after=serialize_model(user))
    db.session.commit()
    return jsonify({"success": True, "data": _user_to_dict(user)})


# -------------------------------------------------------
# EMAIL TEMPLATES
# -------------------------------------------------------
@admin_bp.route("/email-templates", methods=["GET"])
@login_required
@admin_required
def list_email_templates():
    templates = EmailTemplate.query.order_by(EmailTemplate.template_type.asc()).all()
    return jsonify({"success": True, "data": [t.to_dict() for t in templates]})


@admin_bp.route("/email-templates/<template_type>", methods=["PUT"])
@login_required
@admin_required
def upsert_email_template(template_type: str):
    if template_type not in TEMPLATE_TYPES:
        raise ValidationError({"templateType": f"Must be one of: {', '.join(TEMPLATE_TYPES)}"})

    data = json_body()
    subject = clean_str(data.get("subject"))
    body = clean_str(data.get("body"))
    errors = {}
    if not subject:
        errors["subject"] = "Subject is required"
    if not body:
        errors["body"] = "Body is required"
    if errors:
        raise ValidationError(errors)

    template = EmailTemplate.query.filter_by(template_type=template_type).first()
    before = serialize_model(template) if template else None
    if template is None:
        template = EmailTemplate(template_type=template_type, subject=subject, body=body)
        db.session.add(template)
    else:
        template.subject = subject
        template.body = body

    db.session.flush()
    log_action(template, "CREATE" if before is None else "UPDATE", before=before, after=serialize_model(template))
    db.session.commit()
    return jsonify({"success": True, "data": template.to_dict()})


# -------------------------------------------------------
# SYSTEM SETTINGS
# -------------------------------------------------------
@admin_bp.route("/settings", methods=["GET"])
@login_required
@admin_required
def list_settings():
    settings = SystemSetting.query.order_by(SystemSetting.key.asc()).all()
    return jsonify({"success": True, "data": {s.key: s.value for s in settings}})


@admin_bp.route("/settings/<key>", methods=["PUT"])
@login_required
@admin_required
def upsert_setting(key: str):
    key = (clean_str(key) or "").lower()
    if not key or len(key) > 80:
        raise ValidationError({"key": "Key is required (max 80 characters)"})

    data = json_body()
    if "value" not in data:
        raise ValidationError({"value": "Value is required"})
    value = data.get("value")
    value = None if value is None else str(value)

    setting = SystemSetting.query.filter_by(key=key).first()
    before = serialize_model(setting) if setting else None
    if setting is None:
        setting = SystemSetting(key=key, value=value)
        db.session.add(setting)
    else:
        setting.value = value

    db.session.flush()
    log_action(setting, "CREATE" if before is None else "UPDATE", before=before, after=serialize_model(setting))
    db.session.commit()
    return jsonify({"success": True, "data": {setting.key: setting.value}})


# -------------------------------------------------------
# NOTIFICATIONS
# -------------------------------------------------------
@admin_bp.route("/notifications", methods=["GET"])
@login_required
@admin_required
def list_notifications():
    rows = Notification.query.order_by(Notification.id.desc()).limit(200).all()
    return jsonify({"success": True, "data": [n.to_dict() for n in rows]})


@admin_bp.route("/notifications", methods=["POST"])
@login_required
@admin_required
def send_notifications():
    """Queue a general/reminder message for each recipient."""
    data = json_body()
    template_type = clean_str(data.get("templateType")) or "general"
    recipients = data.get("recipients")
    variables = data.get("variables") or {}

    errors = {}
    if template_type not in BROADCAST_TYPES:
        errors["templateType"] = f"Must be one of: {', '.join(BROADCAST_TYPES)}"
    if not isinstance(recipients, list) or not recipients:
        errors["recipients"] = "At least one recipient is required"
    elif not all(isinstance(r, str) and is_valid_email(r) for r in recipients):
        errors["recipients"] = "All recipients must be valid emails"
    if not isinstance(variables, dict):
        errors["variables"] = "Must be an object"
    if errors:
        raise ValidationError(errors)

    queued = [queue_notification(r, template_type, variables) for r in recipients]
    sent = [n.to_dict() for n in queued if n is not None]
    return jsonify({"success": True, "data": sent}), 201
