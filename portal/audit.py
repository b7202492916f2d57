"""
portal/audit.py

Audit logging helper utilities.

Goals:
- Capture WHO did WHAT to WHICH entity, with BEFORE/AFTER snapshots.
- Store an email snapshot to preserve identity even if the user changes later.
- Store IP address for traceability (when called inside a request).

IMPORTANT:
- This helper ADDS AuditLog entries to the current SQLAlchemy session.
  The caller controls transaction boundaries (commit/rollback), so the audit
  row commits or rolls back together with the change it describes.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from flask import has_request_context, request
from flask_login import current_user

from .extensions import db
from .models import AuditLog


def _safe_str(value: Any) -> Optional[str]:
    """Stable string representation for JSON/DB storage (Decimal, datetime, ...)."""
    if value is None:
        return None
    try:
        return str(value)
    except Exception:
        return repr(value)


def serialize_model(instance: Any) -> Dict[str, Optional[str]]:
    """
    Convert a SQLAlchemy model instance to a dict snapshot based on table columns.

    Captures only scalar column values (not relationships).
    """
    data: Dict[str, Optional[str]] = {}
    for column in instance.__table__.columns:
        data[column.name] = _safe_str(getattr(instance, column.name))
    return data


def _resolve_actor(actor: Any) -> Any:
    if actor is not None:
        return actor
    if has_request_context() and current_user.is_authenticated:
        return current_user
    return None


def log_action(
    entity: Any,
    action: str,
    *,
    actor: Any = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an AuditLog entry to the current db session.

    Parameters:
        entity: model instance with .id (flush first for new rows)
        action: CREATE / UPDATE / DECIDE / INVITE ...
        actor: user performing the action (defaults to current_user)

    SECURITY NOTE:
    - request.remote_addr is as Flask sees it. Behind a reverse proxy,
      configure ProxyFix to capture the real client IP.
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    actor = _resolve_actor(actor)

    entry = AuditLog(
        user_id=getattr(actor, "id", None),
        user_email_snapshot=getattr(actor, "email", None),
        entity_type=entity.__class__.__name__,
        entity_id=int(entity_id),
        action=str(action),
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)
    return entry
