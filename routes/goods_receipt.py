# routes/goods_receipt.py
from flask import Blueprint, jsonify, request
from flask_login import current_user
from db.models.user import STAFF_ROLES, UserRole
from dao import goods_receipt as gr_dao
from utils.auth import roles_required
from utils.errors import ValidationFailed
from utils.serializers import reception_to_dict
from utils.tenant import current_tenant_id

gr_bp = Blueprint("gr_api", __name__, url_prefix="/receptions")

RECEIVERS = (UserRole.WAREHOUSE, UserRole.BUYER, UserRole.ADMIN)


@gr_bp.route("", methods=["GET"])
@roles_required(*STAFF_ROLES)
def gr_list():
    grs = gr_dao.list_grs(current_tenant_id(), request.args.get("poId", type=int))
    return jsonify([reception_to_dict(gr) for gr in grs])


@gr_bp.route("/<int:gr_id>", methods=["GET"])
@roles_required(*STAFF_ROLES)
def gr_get(gr_id: int):
    return jsonify(reception_to_dict(gr_dao.require_gr(current_tenant_id(), gr_id)))


@gr_bp.route("", methods=["POST"])
@roles_required(*RECEIVERS)
def gr_add():
    data = request.get_json(silent=True) or {}
    po_id = data.get("po_id", data.get("purchase_order_id"))
    if not po_id:
        raise ValidationFailed("Purchase order is required.")
    items = data.get("items") or data.get("lines") or []
    if not isinstance(items, list):
        raise ValidationFailed("items must be a list.")
    gr = gr_dao.record_reception(
        current_tenant_id(),
        po_id,
        items,
        current_user.id,
        reception_type=data.get("reception_type"),
        observations=data.get("observations"),
        received_at=data.get("received_at"),
        idempotency_key=request.headers.get("Idempotency-Key"),
    )
    return jsonify(reception_to_dict(gr)), 201


@gr_bp.route("/<int:gr_id>", methods=["DELETE"])
@roles_required(*RECEIVERS)
def gr_delete(gr_id: int):
    gr_dao.annul_reception(current_tenant_id(), gr_id, current_user.id)
    return "", 204
