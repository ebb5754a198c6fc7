from flask import Blueprint, jsonify, request
from flask_login import current_user
from db.models.user import STAFF_ROLES, UserRole
from dao import approval as approval_dao
from utils.auth import roles_required
from utils.serializers import approval_rule_to_dict, workflow_to_dict
from utils.tenant import current_tenant_id

approval_bp = Blueprint("approval_api", __name__)

RULE_FIELDS = ("name", "purchase_type", "min_amount", "max_amount", "priority", "is_active", "levels")


def _body() -> dict:
    return request.get_json(silent=True) or {}


@approval_bp.route("/approval-rules", methods=["GET"])
@roles_required(*STAFF_ROLES)
def rules_list():
    active_only = request.args.get("active") in ("1", "true", "yes")
    rules = approval_dao.list_rules(current_tenant_id(), active_only=active_only)
    return jsonify([approval_rule_to_dict(r) for r in rules])


@approval_bp.route("/approval-rules/<int:rule_id>", methods=["GET"])
@roles_required(*STAFF_ROLES)
def rules_get(rule_id: int):
    return jsonify(approval_rule_to_dict(approval_dao.require_rule(current_tenant_id(), rule_id)))


@approval_bp.route("/approval-rules", methods=["POST"])
@roles_required(UserRole.ADMIN)
def rules_add():
    data = _body()
    rule = approval_dao.create_rule(
        current_tenant_id(),
        data.get("name"),
        data.get("levels"),
        purchase_type=data.get("purchase_type"),
        min_amount=data.get("min_amount"),
        max_amount=data.get("max_amount"),
        priority=data.get("priority", 0),
    )
    return jsonify(approval_rule_to_dict(rule)), 201


@approval_bp.route("/approval-rules/<int:rule_id>", methods=["PUT"])
@roles_required(UserRole.ADMIN)
def rules_edit(rule_id: int):
    data = _body()
    fields = {k: data[k] for k in RULE_FIELDS if k in data}
    rule = approval_dao.update_rule(current_tenant_id(), rule_id, fields)
    return jsonify(approval_rule_to_dict(rule))


@approval_bp.route("/approval-rules/<int:rule_id>", methods=["DELETE"])
@roles_required(UserRole.ADMIN)
def rules_delete(rule_id: int):
    if approval_dao.delete_rule(current_tenant_id(), rule_id):
        return "", 204
    # still referenced by workflows, only deactivated
    rule = approval_dao.require_rule(current_tenant_id(), rule_id)
    return jsonify(approval_rule_to_dict(rule))


@approval_bp.route("/approvals/pending", methods=["GET"])
@roles_required(*approval_dao.SIGNERS)
def approvals_pending():
    """Requisitions whose current level the caller can sign."""
    flows = approval_dao.pending_for_user(current_tenant_id(), current_user)
    return jsonify(
        [
            dict(workflow_to_dict(wf), number=wf.pr.number, title=wf.pr.title)
            for wf in flows
        ]
    )
