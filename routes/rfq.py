# routes/rfq.py
from flask import Blueprint, jsonify, request
from flask_login import current_user
from db.models.user import UserRole
from dao import rfq as rfq_dao, vendor_quotation as vq_dao
from dao.comparison import build_comparison
from utils.auth import roles_required
from utils.errors import ValidationFailed
from utils.serializers import rfq_to_dict, invitation_to_dict, vq_to_dict, po_to_dict
from utils.tenant import current_tenant_id

rfq_bp = Blueprint("rfq_api", __name__, url_prefix="/rfq")

BUYERS = (UserRole.BUYER, UserRole.ADMIN)
RFQ_FIELDS = ("title", "description", "deadline", "currency", "budget", "payment_terms", "notes")


@rfq_bp.route("", methods=["GET"])
@roles_required(*BUYERS)
def rfq_list():
    rfqs = rfq_dao.list_rfqs(current_tenant_id(), request.args.get("status"))
    return jsonify([rfq_to_dict(r, with_children=False) for r in rfqs])


@rfq_bp.route("/stats", methods=["GET"])
@roles_required(*BUYERS)
def rfq_stats():
    return jsonify(rfq_dao.rfq_stats(current_tenant_id()))


@rfq_bp.route("/<int:rfq_id>", methods=["GET"])
@roles_required(*BUYERS)
def rfq_get(rfq_id: int):
    return jsonify(rfq_to_dict(rfq_dao.require_rfq(current_tenant_id(), rfq_id)))


@rfq_bp.route("", methods=["POST"])
@roles_required(*BUYERS)
def rfq_add():
    data = _body()
    r = rfq_dao.create_rfq(
        current_tenant_id(),
        current_user.id,
        title=data.get("title"),
        deadline=data.get("deadline"),
        lines=_list(data, "lines"),
        pr_id=data.get("requisition_id", data.get("pr_id")),
        description=data.get("description"),
        currency=data.get("currency"),
        budget=data.get("budget"),
        payment_terms=data.get("payment_terms"),
        notes=data.get("notes"),
        supplier_ids=_list(data, "supplier_ids"),
    )
    return jsonify(rfq_to_dict(r)), 201


@rfq_bp.route("/<int:rfq_id>", methods=["PUT"])
@roles_required(*BUYERS)
def rfq_edit(rfq_id: int):
    data = _body()
    fields = {k: data[k] for k in RFQ_FIELDS if k in data}
    r = rfq_dao.update_rfq(current_tenant_id(), rfq_id, fields, _list(data, "lines"))
    return jsonify(rfq_to_dict(r))


@rfq_bp.route("/<int:rfq_id>", methods=["DELETE"])
@roles_required(*BUYERS)
def rfq_delete(rfq_id: int):
    rfq_dao.delete_rfq(current_tenant_id(), rfq_id)
    return "", 204


@rfq_bp.route("/<int:rfq_id>/invite", methods=["POST"])
@roles_required(*BUYERS)
def rfq_invite(rfq_id: int):
    supplier_ids = _list(_body(), "supplier_ids")
    if not supplier_ids:
        raise ValidationFailed("supplier_ids is required.")
    added = rfq_dao.invite_suppliers(current_tenant_id(), rfq_id, supplier_ids, current_user.id)
    return jsonify([invitation_to_dict(i) for i in added]), 201


@rfq_bp.route("/<int:rfq_id>/suppliers/<int:supplier_id>", methods=["DELETE"])
@roles_required(*BUYERS)
def rfq_remove_supplier(rfq_id: int, supplier_id: int):
    rfq_dao.remove_supplier(current_tenant_id(), rfq_id, supplier_id)
    return "", 204


@rfq_bp.route("/<int:rfq_id>/publish", methods=["POST"])
@roles_required(*BUYERS)
def rfq_publish(rfq_id: int):
    return jsonify(rfq_to_dict(rfq_dao.publish_rfq(current_tenant_id(), rfq_id, current_user.id)))


@rfq_bp.route("/<int:rfq_id>/close", methods=["POST"])
@roles_required(*BUYERS)
def rfq_close(rfq_id: int):
    return jsonify(rfq_to_dict(rfq_dao.close_rfq(current_tenant_id(), rfq_id, current_user.id)))


@rfq_bp.route("/<int:rfq_id>/cancel", methods=["POST"])
@roles_required(*BUYERS)
def rfq_cancel(rfq_id: int):
    r = rfq_dao.cancel_rfq(current_tenant_id(), rfq_id, current_user.id, _body().get("reason"))
    return jsonify(rfq_to_dict(r))


@rfq_bp.route("/<int:rfq_id>/award", methods=["POST"])
@roles_required(*BUYERS)
def rfq_award(rfq_id: int):
    data = _body()
    vq_id = data.get("quotation_id", data.get("vq_id"))
    if not vq_id:
        raise ValidationFailed("quotation_id is required.")
    r = vq_dao.award_rfq(
        current_tenant_id(), rfq_id, vq_id, current_user.id, data.get("supplier_id")
    )
    return jsonify(rfq_to_dict(r))


@rfq_bp.route("/<int:rfq_id>/generate-po", methods=["POST"])
@roles_required(*BUYERS)
def rfq_generate_po(rfq_id: int):
    data = _body()
    po = vq_dao.generate_po_from_rfq(
        current_tenant_id(),
        rfq_id,
        current_user.id,
        tax_rate=data.get("tax_rate"),
        tax_amount=data.get("tax"),
        payment_terms=data.get("payment_terms"),
        delivery_place=data.get("delivery_place"),
        expected_date=data.get("expected_date"),
        notes=data.get("notes"),
    )
    return jsonify(po_to_dict(po)), 201


@rfq_bp.route("/<int:rfq_id>/comparison", methods=["GET"])
@roles_required(*BUYERS)
def rfq_comparison(rfq_id: int):
    return jsonify(build_comparison(current_tenant_id(), rfq_id))


@rfq_bp.route("/<int:rfq_id>/quotations", methods=["GET"])
@roles_required(*BUYERS)
def rfq_quotations(rfq_id: int):
    return jsonify([vq_to_dict(vq) for vq in vq_dao.list_vqs(current_tenant_id(), rfq_id)])


@rfq_bp.route("/<int:rfq_id>/quotations/<int:vq_id>/review", methods=["POST"])
@roles_required(*BUYERS)
def rfq_review_quotation(rfq_id: int, vq_id: int):
    data = _body()
    tenant_id = current_tenant_id()
    vq = vq_dao.require_vq(tenant_id, vq_id)
    if vq.rfq_id != rfq_id:
        raise ValidationFailed("Quotation does not belong to this RFQ.")
    vq = vq_dao.review_quotation(
        tenant_id, vq_id, data.get("decision"), current_user.id, data.get("comment")
    )
    return jsonify(vq_to_dict(vq))


@rfq_bp.route("/expire", methods=["POST"])
@roles_required(*BUYERS)
def rfq_expire():
    expired = rfq_dao.expire_overdue_rfqs(current_tenant_id())
    return jsonify([r.id for r in expired])


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _list(data: dict, key: str):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValidationFailed(f"{key} must be a list.")
    return value
