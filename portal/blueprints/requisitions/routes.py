"""
portal/blueprints/requisitions/routes.py

Requisition routes

Includes:
- Role-scoped list with search + derived-status filter
- Submit / view / edit (requester, before first approval action)
- HOD / Finance decisions
- CSV export of the visible list and per-requisition report

IMPORTANT:
- UI is never trusted. Visibility and transitions are enforced in
  RequisitionService, not here.
"""

from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify, request
from flask_login import current_user, login_required

from ...export import export_filename, to_csv, to_detail_report
from ...models import Requisition, Role
from ...security import roles_required
from ...services import RequisitionService
from ...transaction_ids import format_transaction_id
from ...utils import json_body
from ...workflow import derived_status

requisitions_bp = Blueprint("requisitions", __name__, url_prefix="/requisitions")


def _service() -> RequisitionService:
    return RequisitionService(id_prefix=current_app.config.get("TRANSACTION_ID_PREFIX", "QR"))


def _principal():
    return current_user._get_current_object()


def requisition_to_dict(r: Requisition, with_history: bool = True) -> dict:
    data = {
        "id": r.id,
        "transactionId": r.transaction_id,
        "formattedTransactionId": format_transaction_id(r.transaction_id),
        "date": r.date.isoformat() if r.date else None,
        "item": r.item,
        "amount": str(r.amount) if r.amount is not None else None,
        "currency": r.currency,
        "description": r.description,
        "comment": r.comment,
        "urgencyLevel": r.urgency_level,
        "requestedBy": r.requested_by,
        "requestedByName": r.requested_by_name,
        "requestedByRole": r.requested_by_role,
        "requestedByDepartment": r.requested_by_department,
        "hodStatus": r.hod_status,
        "financeStatus": r.finance_status,
        "status": derived_status(r),
        "documentUrl": r.document_url,
        "documentName": r.document_name,
        "documentType": r.document_type,
        "version": r.version,
        "createdAt": r.created_at.isoformat() if r.created_at else None,
        "updatedAt": r.updated_at.isoformat() if r.updated_at else None,
    }
    if with_history:
        data["history"] = [h.to_dict() for h in r.history]
    return data


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------
@requisitions_bp.route("/", methods=["GET"])
@login_required
def list_requisitions():
    items = _service().list_for(_principal(), request.args.get("q"), request.args.get("status", "all"))
    return jsonify({"success": True, "data": [requisition_to_dict(r, with_history=False) for r in items]})


@requisitions_bp.route("/export.csv", methods=["GET"])
@login_required
def export_requisitions():
    items = _service().list_for(_principal(), request.args.get("q"), request.args.get("status", "all"))
    current_app.logger.info("User %s exported %d requisitions", current_user.id, len(items))
    return _csv_response(to_csv(items), export_filename())


# ---------------------------------------------------------------------
# Create / view / edit
# ---------------------------------------------------------------------
@requisitions_bp.route("/", methods=["POST"])
@login_required
def create_requisition():
    requisition = _service().submit(_principal(), json_body())
    return jsonify({"success": True, "data": requisition_to_dict(requisition)}), 201


@requisitions_bp.route("/<int:requisition_id>", methods=["GET"])
@login_required
def get_requisition(requisition_id: int):
    requisition = _service().get_for(_principal(), requisition_id)
    return jsonify({"success": True, "data": requisition_to_dict(requisition)})


@requisitions_bp.route("/<int:requisition_id>", methods=["PUT"])
@login_required
def update_requisition(requisition_id: int):
    requisition = _service().update_content(_principal(), requisition_id, json_body())
    return jsonify({"success": True, "data": requisition_to_dict(requisition)})


@requisitions_bp.route("/<int:requisition_id>/report.csv", methods=["GET"])
@login_required
def requisition_report(requisition_id: int):
    requisition = _service().get_for(_principal(), requisition_id)
    return _csv_response(to_detail_report(requisition), f"quote_{requisition.transaction_id}.csv")


# ---------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------
@requisitions_bp.route("/<int:requisition_id>/decision", methods=["POST"])
@login_required
@roles_required(*Role.APPROVERS)
def decide_requisition(requisition_id: int):
    data = json_body()
    requisition = _service().decide(
        _principal(),
        requisition_id,
        stage=str(data.get("stage") or "").strip().lower(),
        decision=str(data.get("decision") or "").strip().lower(),
        comment=data.get("comment"),
    )
    return jsonify({"success": True, "data": requisition_to_dict(requisition)})
