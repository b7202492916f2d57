"""
Notification outbox.

Notifications are fire-and-forget: a row is queued in the `notifications`
table (rendered from the admin-managed EmailTemplate when one exists) and
the external email provider picks it up. Failing to queue never fails the
business action that triggered it.

Template bodies are admin-edited, so they are rendered in a Jinja sandbox.
A template that does not parse or touches unsafe attributes is stored
unrendered with status "failed".
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from jinja2 import TemplateError, Undefined
from jinja2.sandbox import SandboxedEnvironment
from sqlalchemy.exc import SQLAlchemyError

from .errors import ValidationError
from .extensions import db
from .models import TEMPLATE_TYPES, EmailTemplate, Notification

logger = logging.getLogger(__name__)

STATUS_QUEUED = "queued"
STATUS_FAILED = "failed"

_sandbox = SandboxedEnvironment(undefined=Undefined, autoescape=False)


def render(template_type: str, variables: Dict[str, Any]) -> tuple[Optional[str], Optional[str]]:
    """Render subject/body from the stored template; (None, None) if none exists.

    Raises jinja2.TemplateError for malformed or unsafe templates.
    """
    template = EmailTemplate.query.filter_by(template_type=template_type).first()
    if not template:
        return None, None
    return (
        _sandbox.from_string(template.subject).render(**variables),
        _sandbox.from_string(template.body).render(**variables),
    )


def queue_notification(
    recipient_email: str,
    template_type: str,
    variables: Optional[Dict[str, Any]] = None,
) -> Optional[Notification]:
    if template_type not in TEMPLATE_TYPES:
        raise ValidationError({"templateType": f"Must be one of: {', '.join(TEMPLATE_TYPES)}"})

    variables = dict(variables or {})
    try:
        status = STATUS_QUEUED
        try:
            subject, body = render(template_type, variables)
        except TemplateError as exc:
            logger.warning("Could not render %s template for %s: %s", template_type, recipient_email, exc)
            subject, body, status = None, None, STATUS_FAILED

        notification = Notification(
            recipient_email=recipient_email,
            template_type=template_type,
            variables=variables,
            subject=subject,
            body=body,
            status=status,
        )
        db.session.add(notification)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning("Could not queue %s notification for %s: %s", template_type, recipient_email, exc)
        return None

    logger.info("Queued %s notification for %s (%s)", template_type, recipient_email, status)
    return notification
