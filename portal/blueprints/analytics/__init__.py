"""
portal/blueprints/analytics/__init__.py

Blueprint package export. Must expose analytics_bp for app factory registration.
"""

from __future__ import annotations

from .routes import analytics_bp  # noqa: F401
