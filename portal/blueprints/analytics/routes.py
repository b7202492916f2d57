"""
Analytics routes: summary statistics over the caller's visible requisitions.

Optional query filters: dateFrom, dateTo (YYYY-MM-DD, on created_at) and department.
"""

from __future__ import annotations

from datetime import datetime, time

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ...analytics import summarize
from ...errors import ValidationError
from ...services import RequisitionService
from ...utils import clean_str, parse_date

analytics_bp = Blueprint("analytics", __name__, url_prefix="/analytics")


def _parse_range():
    errors = {}
    bounds = {}
    for key in ("dateFrom", "dateTo"):
        raw = clean_str(request.args.get(key))
        if raw is None:
            bounds[key] = None
            continue
        parsed = parse_date(raw)
        if parsed is None:
            errors[key] = "Must be YYYY-MM-DD"
        bounds[key] = parsed
    if errors:
        raise ValidationError(errors)

    start = datetime.combine(bounds["dateFrom"], time.min) if bounds["dateFrom"] else None
    end = datetime.combine(bounds["dateTo"], time.max) if bounds["dateTo"] else None
    return start, end


@analytics_bp.route("/", methods=["GET"])
@login_required
def get_analytics():
    start, end = _parse_range()
    department = clean_str(request.args.get("department"))

    items = RequisitionService().list_for(current_user._get_current_object())
    if start:
        items = [r for r in items if r.created_at and r.created_at >= start]
    if end:
        items = [r for r in items if r.created_at and r.created_at <= end]
    if department:
        items = [r for r in items if r.requested_by_department == department]

    return jsonify({"success": True, "data": summarize(items)})
