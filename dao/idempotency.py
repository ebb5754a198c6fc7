from typing import Optional
from configs import db
from db.models.idempotency import IdempotencyKey

REQUISITION = "requisition"
PURCHASE_ORDER = "purchase_order"
RECEPTION = "reception"


def _norm(key) -> Optional[str]:
    key = str(key or "").strip()
    return key[:120] or None


def lookup(tenant_id: int, scope: str, key) -> Optional[int]:
    """Id of the resource already created under this key, if any."""
    key = _norm(key)
    if not key:
        return None
    row = IdempotencyKey.query.filter_by(
        tenant_id=int(tenant_id), scope=scope, key=key
    ).first()
    return row.resource_id if row else None


def remember(tenant_id: int, scope: str, key, resource_id: int) -> None:
    key = _norm(key)
    if not key:
        return
    db.session.add(
        IdempotencyKey(
            tenant_id=int(tenant_id), scope=scope, key=key, resource_id=int(resource_id)
        )
    )


def forget(tenant_id: int, scope: str, resource_id: int) -> None:
    """Drop the keys of a deleted resource so a retry creates it again."""
    IdempotencyKey.query.filter_by(
        tenant_id=int(tenant_id), scope=scope, resource_id=int(resource_id)
    ).delete()
