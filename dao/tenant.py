from decimal import Decimal
from typing import Optional
from flask import current_app
from db.models.tenant import Tenant
from utils.errors import NotFound
from utils.money import dec


def get_tenant(tenant_id: int) -> Optional[Tenant]:
    return Tenant.query.filter_by(id=int(tenant_id)).first()


def require_tenant(tenant_id: int) -> Tenant:
    t = get_tenant(tenant_id)
    if not t or not t.is_active:
        raise NotFound(f"Tenant #{tenant_id} not found.")
    return t


def tax_rate(tenant_id: int) -> Decimal:
    """Tenant rate when configured, else the application default (IVA 21%)."""
    t = get_tenant(tenant_id)
    if t is not None and t.tax_rate is not None:
        return dec(t.tax_rate)
    return dec(current_app.config.get("DEFAULT_TAX_RATE", "0.21"))


def currency(tenant_id: int) -> str:
    t = get_tenant(tenant_id)
    if t is not None and t.currency:
        return t.currency
    return current_app.config.get("DEFAULT_CURRENCY", "ARS")
