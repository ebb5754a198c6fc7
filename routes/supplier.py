from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from db.models.user import STAFF_ROLES, UserRole
from dao import supplier as supplier_dao
from utils.auth import roles_required
from utils.errors import Forbidden
from utils.serializers import supplier_to_dict, supplier_document_to_dict
from utils.tenant import current_tenant_id

supplier_bp = Blueprint("supplier_api", __name__, url_prefix="/suppliers")

MANAGERS = (UserRole.BUYER, UserRole.ADMIN)
DECIDERS = (UserRole.APPROVER, UserRole.ADMIN)


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _ensure_own_or_manager(supplier_id: int):
    """Suppliers can only touch their own record during onboarding."""
    if current_user.has_role(*MANAGERS):
        return
    if current_user.has_role(UserRole.SUPPLIER) and current_user.supplier_id == supplier_id:
        return
    raise Forbidden("Not allowed to act on this supplier.")


@supplier_bp.route("", methods=["GET"])
@roles_required(*STAFF_ROLES)
def suppliers_list():
    suppliers = supplier_dao.list_suppliers(current_tenant_id(), request.args.get("status"))
    return jsonify([supplier_to_dict(s) for s in suppliers])


@supplier_bp.route("/<int:supplier_id>", methods=["GET"])
@login_required
def suppliers_get(supplier_id: int):
    tenant_id = current_tenant_id()
    if current_user.has_role(UserRole.SUPPLIER):
        _ensure_own_or_manager(supplier_id)
    return jsonify(supplier_to_dict(supplier_dao.require_supplier(tenant_id, supplier_id)))


@supplier_bp.route("", methods=["POST"])
@roles_required(*MANAGERS)
def suppliers_add():
    data = _body()
    s = supplier_dao.create_supplier(
        current_tenant_id(),
        name=data.get("name"),
        tax_id=data.get("tax_id"),
        code=data.get("code"),
        email=data.get("email"),
        phone=data.get("phone"),
        address=data.get("address"),
        actor_id=current_user.id,
    )
    return jsonify(supplier_to_dict(s)), 201


@supplier_bp.route("/<int:supplier_id>", methods=["PUT"])
@roles_required(*MANAGERS)
def suppliers_edit(supplier_id: int):
    data = _body()
    fields = {k: data.get(k) for k in supplier_dao.EDITABLE_FIELDS if k in data}
    s = supplier_dao.update_supplier(current_tenant_id(), supplier_id, **fields)
    return jsonify(supplier_to_dict(s))


@supplier_bp.route("/<int:supplier_id>/onboarding", methods=["POST"])
@roles_required(*MANAGERS)
def suppliers_start_onboarding(supplier_id: int):
    s = supplier_dao.start_onboarding(current_tenant_id(), supplier_id, current_user.id)
    return jsonify(supplier_to_dict(s))


@supplier_bp.route("/<int:supplier_id>/company-data", methods=["PUT"])
@login_required
def suppliers_company_data(supplier_id: int):
    _ensure_own_or_manager(supplier_id)
    s = supplier_dao.update_company_data(
        current_tenant_id(), supplier_id, _body(), current_user.id
    )
    return jsonify(supplier_to_dict(s))


@supplier_bp.route("/<int:supplier_id>/bank-data", methods=["PUT"])
@login_required
def suppliers_bank_data(supplier_id: int):
    _ensure_own_or_manager(supplier_id)
    s = supplier_dao.update_bank_data(current_tenant_id(), supplier_id, _body(), current_user.id)
    return jsonify(supplier_to_dict(s))


@supplier_bp.route("/<int:supplier_id>/submit", methods=["POST"])
@login_required
def suppliers_submit(supplier_id: int):
    _ensure_own_or_manager(supplier_id)
    s = supplier_dao.submit_supplier(current_tenant_id(), supplier_id, current_user.id)
    return jsonify(supplier_to_dict(s))


@supplier_bp.route("/<int:supplier_id>/approve", methods=["POST"])
@roles_required(*DECIDERS)
def suppliers_approve(supplier_id: int):
    s = supplier_dao.approve_supplier(
        current_tenant_id(), supplier_id, current_user.id, _body().get("comment")
    )
    return jsonify(supplier_to_dict(s))


@supplier_bp.route("/<int:supplier_id>/reject", methods=["POST"])
@roles_required(*DECIDERS)
def suppliers_reject(supplier_id: int):
    s = supplier_dao.reject_supplier(
        current_tenant_id(), supplier_id, _body().get("reason"), current_user.id
    )
    return jsonify(supplier_to_dict(s))


@supplier_bp.route("/<int:supplier_id>/suspend", methods=["POST"])
@roles_required(*DECIDERS)
def suppliers_suspend(supplier_id: int):
    s = supplier_dao.suspend_supplier(
        current_tenant_id(), supplier_id, _body().get("reason"), current_user.id
    )
    return jsonify(supplier_to_dict(s))


@supplier_bp.route("/<int:supplier_id>/reactivate", methods=["POST"])
@roles_required(*DECIDERS)
def suppliers_reactivate(supplier_id: int):
    s = supplier_dao.reactivate_supplier(current_tenant_id(), supplier_id, current_user.id)
    return jsonify(supplier_to_dict(s))


@supplier_bp.route("/<int:supplier_id>/documents", methods=["GET"])
@login_required
def suppliers_documents(supplier_id: int):
    _ensure_own_or_manager(supplier_id)
    docs = supplier_dao.list_supplier_documents(current_tenant_id(), supplier_id)
    return jsonify([supplier_document_to_dict(d) for d in docs])


@supplier_bp.route("/<int:supplier_id>/documents", methods=["POST"])
@login_required
def suppliers_add_document(supplier_id: int):
    _ensure_own_or_manager(supplier_id)
    data = _body()
    d = supplier_dao.add_supplier_document(
        current_tenant_id(),
        supplier_id,
        data.get("doc_type"),
        data.get("file_name"),
        mime_type=data.get("mime_type"),
        size=data.get("size"),
        expires_on=data.get("expires_on"),
    )
    return jsonify(supplier_document_to_dict(d)), 201
