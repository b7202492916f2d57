"""
Authentication Routes

Provides:
- /auth/csrf-token
- /auth/login, /auth/logout, /auth/me
- /auth/me/availability (approver away / back)
- /auth/accept-invitation (invited user sets a password)
- /auth/seed-superuser (first system bootstrap)

Rules:
- Only active users may log in.
- Credentials validated via password hash.
- Invited users are inactive until they accept the invitation.
"""

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...audit import log_action, serialize_model
from ...errors import AuthorizationError, ValidationError
from ...extensions import db
from ...models import Role, User
from ...utils import clean_str, is_valid_email, json_body

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

MIN_PASSWORD_LENGTH = 8


def _validate_password(password: str | None) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError({"password": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"})
    return password


# ============================================================
# CSRF / LOGIN / LOGOUT
# ============================================================

@auth_bp.route("/csrf-token")
def csrf_token():
    """Token for the X-CSRFToken header on mutating requests."""
    return jsonify({"success": True, "data": {"csrfToken": generate_csrf()}})


@auth_bp.route("/login", methods=["POST"])
def login():
    """Authenticate a user by email + password."""
    data = json_body()
    email = (clean_str(data.get("email")) or "").lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        current_app.logger.info("Failed login for %s", email)
        return jsonify({"success": False, "message": "Invalid email or password"}), 401

    if not user.is_active:
        return jsonify({"success": False, "message": "Account is inactive"}), 403

    login_user(user)
    current_app.logger.info("User %s logged in", user.id)
    return jsonify({"success": True, "data": user.to_principal()})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True, "data": None})


@auth_bp.route("/me")
@login_required
def me():
    data = current_user.to_principal()
    data["isAvailable"] = current_user.is_available
    return jsonify({"success": True, "data": data})


@auth_bp.route("/me/availability", methods=["PUT"])
@login_required
def set_availability():
    """Approvers mark themselves away so their requisitions auto-route."""
    data = json_body()
    if not isinstance(data.get("available"), bool):
        raise ValidationError({"available": "Must be true or false"})

    user = current_user._get_current_object()
    before = serialize_model(user)
    user.is_available = data["available"]
    log_action(user, "UPDATE", actor=user, before=before, after=serialize_model(user))
    db.session.commit()

    current_app.logger.info("User %s availability set to %s", user.id, user.is_available)
    return jsonify({"success": True, "data": {"isAvailable": user.is_available}})


# ============================================================
# INVITATIONS
# ============================================================

@auth_bp.route("/accept-invitation", methods=["POST"])
def accept_invitation():
    data = json_body()
    token = clean_str(data.get("token"))
    password = _validate_password(data.get("password"))

    user = User.query.filter_by(invitation_token=token).first() if token else None
    if user is None:
        return jsonify({"success": False, "message": "Invalid or expired invitation"}), 404

    before = serialize_model(user)
    user.set_password(password)
    user.is_active = True
    user.invitation_token = None
    log_action(user, "ACTIVATE", actor=user, before=before, after=serialize_model(user))
    db.session.commit()

    return jsonify({"success": True, "data": user.to_principal()})


# ============================================================
# SEED FIRST SUPERUSER (BOOTSTRAP)
# ============================================================

@auth_bp.route("/seed-superuser", methods=["POST"])
def seed_superuser():
    """
    Bootstrap the FIRST SuperUser of the system.

    Safety Rules:
    - If ANY user already exists -> block
    """
    if User.query.count() > 0:
        raise AuthorizationError("Users already exist")

    data = json_body()
    email = (clean_str(data.get("email")) or "").lower()
    name = clean_str(data.get("name")) or "System Administrator"

    if not is_valid_email(email):
        raise ValidationError({"email": "A valid email is required"})
    password = _validate_password(data.get("password"))

    user = User(email=email, name=name, role=Role.SUPERUSER, is_active=True, permissions=[])
    user.set_password(password)

    db.session.add(user)
    db.session.flush()
    log_action(user, "CREATE", actor=user, after=serialize_model(user))
    db.session.commit()

    return jsonify({"success": True, "data": user.to_principal()}), 201
