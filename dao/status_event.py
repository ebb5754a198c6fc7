from typing import List
from db.models.status_event import StatusEvent
from configs import db

REQUISITION = "REQUISITION"
ATTACHMENT = "ATTACHMENT"
PURCHASE_ORDER = "PURCHASE_ORDER"
PO_APPROVAL = "PO_APPROVAL"
RECEPTION = "RECEPTION"
RFQ = "RFQ"
INVITATION = "RFQ_INVITATION"
QUOTATION = "QUOTATION"
SUPPLIER = "SUPPLIER"
APPROVAL_WORKFLOW = "APPROVAL_WORKFLOW"
APPROVAL_STEP = "APPROVAL_STEP"


def _value(s):
    return getattr(s, "value", s)


def record(tenant_id, entity_type, entity_id, from_status, to_status, actor_id=None, comment=None):
    """Stage an audit row; the calling command commits it with its own changes."""
    ev = StatusEvent(
        tenant_id=int(tenant_id),
        entity_type=entity_type,
        entity_id=int(entity_id),
        from_status=_value(from_status),
        to_status=_value(to_status),
        actor_id=actor_id,
        comment=comment,
    )
    db.session.add(ev)
    return ev


def history(tenant_id: int, entity_type: str, entity_id: int) -> List[StatusEvent]:
    return (
        StatusEvent.query.filter_by(
            tenant_id=int(tenant_id), entity_type=entity_type, entity_id=int(entity_id)
        )
        .order_by(StatusEvent.id.asc())
        .all()
    )
