# routes/vendor_quotation.py
from flask import Blueprint, jsonify, request
from flask_login import current_user
from db.models.user import UserRole
from dao import rfq as rfq_dao, vendor_quotation as vq_dao
from utils.auth import roles_required
from utils.errors import Forbidden, ValidationFailed
from utils.serializers import rfq_to_dict, invitation_to_dict, vq_to_dict
from utils.tenant import current_tenant_id

# Supplier portal: a SUPPLIER user only ever sees its own invitations and quotation.
vq_bp = Blueprint("vq_portal", __name__, url_prefix="/rfq/supplier-portal")


def _supplier_id() -> int:
    if not current_user.supplier_id:
        raise Forbidden("User is not linked to a supplier.")
    return int(current_user.supplier_id)


@vq_bp.route("/invitations", methods=["GET"])
@roles_required(UserRole.SUPPLIER)
def portal_invitations():
    invitations = vq_dao.invitations_for_supplier(current_tenant_id(), _supplier_id())
    out = []
    for inv in invitations:
        item = invitation_to_dict(inv)
        item["rfq"] = rfq_to_dict(inv.rfq, with_children=False)
        out.append(item)
    return jsonify(out)


@vq_bp.route("/<int:rfq_id>", methods=["GET"])
@roles_required(UserRole.SUPPLIER)
def portal_rfq(rfq_id: int):
    tenant_id = current_tenant_id()
    supplier_id = _supplier_id()
    inv = rfq_dao.mark_viewed(tenant_id, rfq_id, supplier_id)
    data = rfq_to_dict(inv.rfq)
    # other suppliers stay hidden
    data.pop("invitations", None)
    data["invitation"] = invitation_to_dict(inv)
    own = next((vq for vq in inv.rfq.vqs if vq.supplier_id == supplier_id), None)
    data["quotation"] = vq_to_dict(own) if own else None
    return jsonify(data)


@vq_bp.route("/<int:rfq_id>/quotation", methods=["POST"])
@roles_required(UserRole.SUPPLIER)
def portal_submit_quotation(rfq_id: int):
    data = request.get_json(silent=True) or {}
    lines = data.get("lines")
    if not isinstance(lines, list):
        raise ValidationFailed("lines must be a list.")
    vq = vq_dao.submit_quotation(
        current_tenant_id(),
        rfq_id,
        _supplier_id(),
        lines,
        actor_id=current_user.id,
        delivery_days=data.get("delivery_days"),
        payment_terms=data.get("payment_terms"),
        valid_until=data.get("valid_until"),
        notes=data.get("notes"),
        currency=data.get("currency"),
    )
    return jsonify(vq_to_dict(vq)), 201


@vq_bp.route("/<int:rfq_id>/decline", methods=["POST"])
@roles_required(UserRole.SUPPLIER)
def portal_decline(rfq_id: int):
    data = request.get_json(silent=True) or {}
    inv = rfq_dao.decline_invitation(
        current_tenant_id(), rfq_id, _supplier_id(), data.get("reason"), current_user.id
    )
    return jsonify(invitation_to_dict(inv))
