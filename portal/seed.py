"""
portal/seed.py

Seed default email templates and system settings.

Rules:
- Safe to run multiple times (idempotent): existing rows are never overwritten,
  so admin edits survive re-seeding.
- Users are not seeded here; the first SuperUser is bootstrapped through
  /auth/seed-superuser.
"""

from __future__ import annotations

from .extensions import db
from .models import EmailTemplate, SystemSetting


DEFAULT_EMAIL_TEMPLATES = [
    # template_type, subject, body
    (
        "quote_approved",
        "Requisition {{ transaction_id }} approved at {{ stage }} stage",
        "Hello {{ name }},\n\nYour requisition for {{ item }} ({{ amount }}) was approved by "
        "{{ approver }} at the {{ stage }} stage. Current status: {{ status }}.\n\n{{ comment }}",
    ),
    (
        "quote_declined",
        "Requisition {{ transaction_id }} declined",
        "Hello {{ name }},\n\nYour requisition for {{ item }} ({{ amount }}) was declined by "
        "{{ approver }} at the {{ stage }} stage.\n\n{{ comment }}",
    ),
    (
        "invitation",
        "You have been invited to the approval portal",
        "Hello {{ name }},\n\nAn account with role {{ role }} was created for you. "
        "Use this invitation code to set your password: {{ invitation_token }}",
    ),
    ("general", "{{ subject }}", "{{ message }}"),
    (
        "reminder",
        "Reminder: {{ subject }}",
        "Hello,\n\n{{ message }}",
    ),
]


DEFAULT_SETTINGS = [
    ("company_name", "Oversight"),
    ("default_currency", "ZAR"),
    ("support_email", "support@example.com"),
]


def seed_defaults() -> None:
    existing_types = {t.template_type for t in EmailTemplate.query.all()}
    for template_type, subject, body in DEFAULT_EMAIL_TEMPLATES:
        if template_type in existing_types:
            continue
        db.session.add(EmailTemplate(template_type=template_type, subject=subject, body=body))

    existing_keys = {s.key for s in SystemSetting.query.all()}
    for key, value in DEFAULT_SETTINGS:
        if key in existing_keys:
            continue
        db.session.add(SystemSetting(key=key, value=value))

    db.session.commit()
