from flask import Blueprint, jsonify, request
from flask_login import current_user
from db.models.user import STAFF_ROLES, UserRole
from dao import purchase_requisition as pr_dao
from utils.auth import roles_required
from utils.errors import Forbidden, ValidationFailed
from utils.serializers import (
    pr_to_dict,
    attachment_to_dict,
    event_to_dict,
    workflow_to_dict,
)
from utils.tenant import current_tenant_id

pr_bp = Blueprint("pr_api", __name__, url_prefix="/purchase-requests")

DECIDERS = (UserRole.APPROVER, UserRole.ADMIN)
FIELDS = (
    "title",
    "description",
    "justification",
    "department",
    "cost_center",
    "estimated_amount",
    "currency",
    "priority",
    "purchase_type",
    "needed_by",
    "supplier_id",
)


@pr_bp.route("", methods=["GET"])
@roles_required(*STAFF_ROLES)
def pr_list():
    prs = pr_dao.list_prs(current_tenant_id(), request.args.get("status"))
    return jsonify([pr_to_dict(pr, with_lines=False) for pr in prs])


@pr_bp.route("/<int:pr_id>", methods=["GET"])
@roles_required(*STAFF_ROLES)
def pr_get(pr_id: int):
    return jsonify(pr_to_dict(pr_dao.require_pr(current_tenant_id(), pr_id)))


@pr_bp.route("", methods=["POST"])
@roles_required(*STAFF_ROLES)
def pr_add():
    data = _body()
    pr = pr_dao.create_pr(
        current_tenant_id(),
        current_user.id,
        _fields(data),
        _extract_lines(data),
        submit=bool(data.get("submit")),
        idempotency_key=request.headers.get("Idempotency-Key"),
    )
    return jsonify(pr_to_dict(pr)), 201


@pr_bp.route("/<int:pr_id>", methods=["PUT"])
@roles_required(*STAFF_ROLES)
def pr_edit(pr_id: int):
    """Field update, or a state command when the body carries `status`."""
    data = _body()
    status = str(data.get("status") or "").strip().upper()
    if status:
        return _dispatch_status(pr_id, status, data)
    lines = _extract_lines(data) if "lines" in data else None
    pr = pr_dao.update_pr(current_tenant_id(), pr_id, _fields(data), lines)
    return jsonify(pr_to_dict(pr))


@pr_bp.route("/<int:pr_id>", methods=["DELETE"])
@roles_required(*STAFF_ROLES)
def pr_delete(pr_id: int):
    pr_dao.delete_pr(current_tenant_id(), pr_id)
    return "", 204


@pr_bp.route("/<int:pr_id>/submit", methods=["POST"])
@roles_required(*STAFF_ROLES)
def pr_submit(pr_id: int):
    return _dispatch_status(pr_id, "PENDING_APPROVAL", _body())


@pr_bp.route("/<int:pr_id>/approve", methods=["POST"])
@roles_required(*DECIDERS)
def pr_approve(pr_id: int):
    return _dispatch_status(pr_id, "APPROVED", _body())


@pr_bp.route("/<int:pr_id>/reject", methods=["POST"])
@roles_required(*DECIDERS)
def pr_reject(pr_id: int):
    return _dispatch_status(pr_id, "REJECTED", _body())


@pr_bp.route("/<int:pr_id>/cancel", methods=["POST"])
@roles_required(*STAFF_ROLES)
def pr_cancel(pr_id: int):
    return _dispatch_status(pr_id, "CANCELLED", _body())


@pr_bp.route("/<int:pr_id>/history", methods=["GET"])
@roles_required(*STAFF_ROLES)
def pr_history(pr_id: int):
    events = pr_dao.pr_history(current_tenant_id(), pr_id)
    return jsonify([event_to_dict(e) for e in events])


@pr_bp.route("/<int:pr_id>/approval", methods=["GET"])
@roles_required(*STAFF_ROLES)
def pr_approval(pr_id: int):
    wf = pr_dao.approval_of(current_tenant_id(), pr_id)
    return jsonify(workflow_to_dict(wf) if wf is not None else None)


@pr_bp.route("/<int:pr_id>/attachments", methods=["GET"])
@roles_required(*STAFF_ROLES)
def attachment_list(pr_id: int):
    items = pr_dao.list_attachments(current_tenant_id(), pr_id)
    return jsonify([attachment_to_dict(a) for a in items])


@pr_bp.route("/<int:pr_id>/attachments", methods=["POST"])
@roles_required(*STAFF_ROLES)
def attachment_add(pr_id: int):
    data = _body()
    a = pr_dao.add_attachment(
        current_tenant_id(),
        pr_id,
        data.get("file_name"),
        mime_type=data.get("mime_type"),
        size=data.get("size"),
        is_specification=bool(data.get("is_specification")),
    )
    return jsonify(attachment_to_dict(a)), 201


@pr_bp.route("/<int:pr_id>/attachments/<int:attachment_id>/decision", methods=["POST"])
@roles_required(*DECIDERS)
def attachment_decide(pr_id: int, attachment_id: int):
    data = _body()
    decision = str(data.get("decision") or "").strip().upper()
    if decision not in ("APPROVED", "REJECTED"):
        raise ValidationFailed("decision must be APPROVED or REJECTED.")
    a = pr_dao.decide_attachment(
        current_tenant_id(),
        pr_id,
        attachment_id,
        decision == "APPROVED",
        current_user.id,
        data.get("comment"),
    )
    return jsonify(attachment_to_dict(a))


@pr_bp.route("/<int:pr_id>/approve-specs", methods=["POST"])
@roles_required(*DECIDERS)
def attachment_approve_specs(pr_id: int):
    changed = pr_dao.approve_specifications(
        current_tenant_id(), pr_id, current_user.id, _body().get("comment")
    )
    return jsonify([attachment_to_dict(a) for a in changed])


def _dispatch_status(pr_id: int, status: str, data: dict):
    tenant_id = current_tenant_id()
    comment = data.get("comment")
    if status in ("APPROVED", "REJECTED") and not current_user.has_role(*DECIDERS):
        raise Forbidden("Only approvers can decide.")
    if status == "PENDING_APPROVAL":
        pr = pr_dao.submit_pr(tenant_id, pr_id, current_user.id, comment)
    elif status == "APPROVED":
        pr = pr_dao.approve_pr(
            tenant_id,
            pr_id,
            current_user.id,
            comment,
            confirm_rejected_attachments=bool(data.get("confirm_rejected_attachments")),
        )
    elif status == "REJECTED":
        pr = pr_dao.reject_pr(tenant_id, pr_id, current_user.id, data.get("reason") or comment)
    elif status == "CANCELLED":
        pr = pr_dao.cancel_pr(tenant_id, pr_id, current_user.id, comment)
    else:
        raise ValidationFailed(f"Status {status} cannot be set directly.")
    return jsonify(pr_to_dict(pr))


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _fields(data: dict) -> dict:
    return {k: data[k] for k in FIELDS if k in data}


def _extract_lines(data: dict):
    lines = data.get("lines")
    if lines is None:
        return []
    if not isinstance(lines, list):
        raise ValidationFailed("lines must be a list.")
    return [ln for ln in lines if isinstance(ln, dict)]
