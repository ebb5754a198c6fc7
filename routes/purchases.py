# routes/purchases.py
from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from db.models.user import STAFF_ROLES, UserRole
from dao import purchase as po_dao
from utils.auth import roles_required
from utils.errors import Forbidden, NotFound, ValidationFailed
from utils.serializers import po_to_dict, event_to_dict
from utils.tenant import current_tenant_id

purchase_bp = Blueprint("purchase_api", __name__, url_prefix="/purchase-orders")

ISSUERS = (UserRole.BUYER, UserRole.ADMIN)
APPROVERS = (UserRole.APPROVER, UserRole.ADMIN)


def _portal_supplier_id():
    """Supplier of a portal user; None for staff."""
    if not current_user.has_role(UserRole.SUPPLIER):
        return None
    if not current_user.supplier_id:
        raise Forbidden("User is not linked to a supplier.")
    return current_user.supplier_id


@purchase_bp.route("", methods=["GET"])
@login_required
def purchases_list():
    supplier_id = request.args.get("supplierId", type=int)
    own = _portal_supplier_id()
    if own is not None:
        supplier_id = own
    purchases = po_dao.list_purchases(
        current_tenant_id(),
        status=request.args.get("status"),
        supplier_id=supplier_id,
    )
    return jsonify([po_to_dict(po, with_items=False) for po in purchases])


@purchase_bp.route("/<int:po_id>", methods=["GET"])
@login_required
def purchases_get(po_id: int):
    po = po_dao.require_po(current_tenant_id(), po_id)
    own = _portal_supplier_id()
    if own is not None and po.supplier_id != own:
        raise NotFound(f"Purchase order #{po_id} not found.")
    return jsonify(po_to_dict(po))


@purchase_bp.route("", methods=["POST"])
@roles_required(*ISSUERS)
def purchases_add():
    data = request.get_json(silent=True) or {}
    items = data.get("items")
    if items is not None and not isinstance(items, list):
        raise ValidationFailed("items must be a list.")
    po = po_dao.create_po(
        current_tenant_id(),
        current_user.id,
        pr_id=data.get("requisition_id", data.get("pr_id")),
        supplier_id=data.get("supplier_id"),
        items=items,
        tax_amount=data.get("tax"),
        tax_rate=data.get("tax_rate"),
        currency=data.get("currency"),
        payment_terms=data.get("payment_terms"),
        delivery_place=data.get("delivery_place"),
        expected_date=data.get("expected_date"),
        notes=data.get("notes"),
        idempotency_key=request.headers.get("Idempotency-Key"),
    )
    return jsonify(po_to_dict(po)), 201


@purchase_bp.route("/<int:po_id>", methods=["PUT"])
@roles_required(*ISSUERS)
def purchases_edit(po_id: int):
    """Edit header fields and, when `status` is present, move the PO."""
    tenant_id = current_tenant_id()
    data = request.get_json(silent=True) or {}
    fields = {k: data[k] for k in po_dao.FIELD_NAMES if k in data}
    po = None
    if fields:
        po = po_dao.update_po_fields(tenant_id, po_id, **fields)
    if data.get("status"):
        po = po_dao.update_po_status(
            tenant_id, po_id, data["status"], current_user.id, data.get("comment")
        )
    if po is None:
        po = po_dao.require_po(tenant_id, po_id)
    return jsonify(po_to_dict(po))


@purchase_bp.route("/<int:po_id>", methods=["DELETE"])
@roles_required(*ISSUERS)
def purchases_delete(po_id: int):
    po_dao.delete_po(current_tenant_id(), po_id, current_user.id)
    return "", 204


@purchase_bp.route("/<int:po_id>/approve", methods=["POST"])
@roles_required(*APPROVERS)
def purchases_approve(po_id: int):
    data = request.get_json(silent=True) or {}
    po = po_dao.approve_po(current_tenant_id(), po_id, current_user.id, data.get("comment"))
    return jsonify(po_to_dict(po))


@purchase_bp.route("/<int:po_id>/reject", methods=["POST"])
@roles_required(*APPROVERS)
def purchases_reject(po_id: int):
    data = request.get_json(silent=True) or {}
    po = po_dao.reject_po(
        current_tenant_id(), po_id, current_user.id, data.get("reason") or data.get("comment")
    )
    return jsonify(po_to_dict(po))


@purchase_bp.route("/<int:po_id>/remaining", methods=["GET"])
@roles_required(*STAFF_ROLES)
def purchases_remaining(po_id: int):
    return jsonify(po_dao.po_lines_with_remaining(current_tenant_id(), po_id))


@purchase_bp.route("/<int:po_id>/history", methods=["GET"])
@roles_required(*STAFF_ROLES)
def purchases_history(po_id: int):
    return jsonify([event_to_dict(e) for e in po_dao.history(current_tenant_id(), po_id)])
