from flask import Blueprint, jsonify, request
from db.models.user import STAFF_ROLES
from dao.circuit import build_circuit
from utils.auth import roles_required
from utils.serializers import circuit_to_dict
from utils.tenant import current_tenant_id

circuit_bp = Blueprint("circuit_api", __name__)


@circuit_bp.route("/circuit", methods=["GET"])
@roles_required(*STAFF_ROLES)
def circuit():
    """Requisition, purchase order and receptions linked to any one of them."""
    result = build_circuit(
        current_tenant_id(),
        requisition_id=request.args.get("requisitionId", type=int),
        po_id=request.args.get("poId", type=int),
        reception_id=request.args.get("receptionId", type=int),
    )
    return jsonify(circuit_to_dict(result))
