from flask import request
from flask_login import current_user

from utils.errors import Forbidden


def requested_tenant_id():
    """Tenant named by the caller, if any (header first, then query string)."""
    raw = request.headers.get("X-Tenant-Id") or request.args.get("tenantId")
    raw = str(raw or "").strip()
    return raw or None


def current_tenant_id() -> int:
    if not current_user.is_authenticated:
        raise Forbidden("Authentication required.")
    tenant_id = int(current_user.tenant_id)
    asked = requested_tenant_id()
    if asked is not None and asked != str(tenant_id):
        raise Forbidden("Tenant mismatch.", tenant=asked)
    return tenant_id
