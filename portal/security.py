"""
portal/security.py

Access control helpers for the Quote Approval Portal.

Key rules:
- UI is never trusted; all permission checks are server-side.
- Requisition visibility is role-scoped (see portal.visibility); it is enforced
  in the service layer, not by these decorators.
- Admin + SuperUser: user, template and settings administration.
- Only a SuperUser may grant Admin or SuperUser roles.

IMPORTANT:
- Decorators must preserve wrapped function metadata to avoid Flask endpoint collisions.
  We use functools.wraps everywhere.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask_login import current_user

from .errors import AuthorizationError
from .models import Role


def has_role(*roles: str) -> bool:
    """Return True if current user is authenticated and holds one of `roles`."""
    return bool(current_user.is_authenticated and getattr(current_user, "role", None) in roles)


def is_admin() -> bool:
    return has_role(*Role.ADMINISTRATORS)


def is_superuser() -> bool:
    return has_role(Role.SUPERUSER)


def can_assign_role(role: str) -> bool:
    """Admins manage ordinary roles; administrator roles need a SuperUser."""
    if role in Role.ADMINISTRATORS:
        return is_superuser()
    return is_admin()


def roles_required(*roles: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator factory: restrict a view to the given roles.

    Usage:
        @roles_required(Role.HOD, Role.FINANCE)
        def view(): ...
    """
    def decorator(view_func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            if not has_role(*roles):
                raise AuthorizationError()
            return view_func(*args, **kwargs)

        return wrapper

    return decorator


def admin_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: Admin / SuperUser only."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not is_admin():
            raise AuthorizationError()
        return view_func(*args, **kwargs)

    return wrapper
