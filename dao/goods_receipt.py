# dao/goods_receipt.py
from typing import List, Dict, Optional
from collections import defaultdict
from decimal import Decimal
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from configs import db
from db.models.goods_receipt import GoodsReceipt, GRLine, ReceptionType
from db.models.purchase import PurchaseOrder, POStatus
from db.models.purchase_requisition import PurchaseRequisitionStatus as PRS
from dao import numbering, status_event as ev_dao, idempotency as idem_dao
from dao import purchase as po_dao, purchase_requisition as pr_dao
from utils.dates import parse_date, utcnow
from utils.errors import NotFound, PreconditionFailed, ValidationFailed
from utils.money import qty as to_qty, dec
from utils.parsing import as_id

ZERO = Decimal(0)


def _to_reception_type(v) -> Optional[ReceptionType]:
    if v in (None, ""):
        return None
    if isinstance(v, ReceptionType):
        return v
    try:
        return ReceptionType[str(v).strip().upper()]
    except KeyError:
        raise ValidationFailed(f"Unknown reception type: {v}")


# ---------- public APIs ----------
def list_grs(tenant_id: int, po_id: int | None = None) -> List[GoodsReceipt]:
    q = GoodsReceipt.query.filter_by(tenant_id=int(tenant_id))
    if po_id:
        q = q.filter(GoodsReceipt.po_id == as_id(po_id, "po_id"))
    return q.order_by(GoodsReceipt.id.desc()).all()


def get_gr(tenant_id: int, gr_id: int) -> Optional[GoodsReceipt]:
    return GoodsReceipt.query.filter_by(
        tenant_id=int(tenant_id), id=as_id(gr_id, "reception_id")
    ).first()


def require_gr(tenant_id: int, gr_id) -> GoodsReceipt:
    gr = get_gr(tenant_id, gr_id)
    if not gr:
        raise NotFound(f"Reception #{gr_id} not found.")
    return gr


def record_reception(
    tenant_id: int,
    po_id: int,
    items: List[Dict],
    receiver_id: int,
    reception_type=None,
    observations: str | None = None,
    received_at=None,
    idempotency_key: str | None = None,
) -> GoodsReceipt:
    """Record goods received against a purchase order.

    The reception type is computed: TOTAL when every PO line ends with nothing
    pending, PARCIAL otherwise. Asking for TOTAL on an incomplete delivery is
    rejected; asking for PARCIAL on a delivery that completes the PO yields TOTAL.
    """
    existing = idem_dao.lookup(tenant_id, idem_dao.RECEPTION, idempotency_key)
    if existing:
        return require_gr(tenant_id, existing)

    po: PurchaseOrder = po_dao.require_po(tenant_id, po_id)
    if po.status not in po_dao.RECEIVABLE:
        raise PreconditionFailed(
            f"PO {po.po_no} is {po.status.value}; receptions are not accepted."
        )
    requested = _to_reception_type(reception_type)
    try:
        when = parse_date(received_at) or utcnow()
    except ValueError:
        raise ValidationFailed("Reception date is not valid.")

    po_lines = {it.id: it for it in po.items}
    received_now = _normalize_and_validate_lines(items, po_lines)

    after = {
        line_id: dec(it.received_qty) + received_now.get(line_id, ZERO)
        for line_id, it in po_lines.items()
    }
    complete = all(after[line_id] >= dec(it.qty) for line_id, it in po_lines.items())
    computed = ReceptionType.TOTAL if complete else ReceptionType.PARCIAL
    if requested == ReceptionType.TOTAL and computed != ReceptionType.TOTAL:
        pending = {
            line_id: float(dec(it.qty) - after[line_id])
            for line_id, it in po_lines.items()
            if after[line_id] < dec(it.qty)
        }
        raise PreconditionFailed(
            "Delivery is incomplete; it cannot be recorded as TOTAL.",
            code="incomplete_delivery",
            pending=pending,
        )

    gr = GoodsReceipt(
        tenant_id=int(tenant_id),
        number=numbering.next_number(
            GoodsReceipt.number, GoodsReceipt.tenant_id, tenant_id, numbering.RECEPTION
        ),
        po_id=po.id,
        receiver_id=receiver_id,
        reception_type=computed,
        observations=observations,
        received_at=when,
    )
    db.session.add(gr)
    db.session.flush()  # need gr.id

    for line_id, it in po_lines.items():
        now = received_now.get(line_id, ZERO)
        if now <= 0:
            continue
        it.received_qty = after[line_id]
        db.session.add(
            GRLine(
                gr_id=gr.id,
                po_line_id=line_id,
                description=it.description,
                unit=it.unit,
                expected_qty=it.qty,
                qty=now,
                pending_qty=max(ZERO, dec(it.qty) - after[line_id]),
            )
        )

    ev_dao.record(tenant_id, ev_dao.RECEPTION, gr.id, None, computed, receiver_id, observations)
    if computed == ReceptionType.TOTAL:
        po_dao.set_status(po, POStatus.FINALIZADA, receiver_id, f"Reception {gr.number}")
        if po.pr is not None and po.pr.status == PRS.PO_GENERATED:
            pr_dao.transition(po.pr, PRS.RECEIVED, receiver_id, f"Reception {gr.number}")
    else:
        po_dao.set_status(
            po, POStatus.PARCIALMENTE_RECIBIDA, receiver_id, f"Reception {gr.number}"
        )
    idem_dao.remember(tenant_id, idem_dao.RECEPTION, idempotency_key, gr.id)
    _commit()
    current_app.logger.info(
        "reception %s recorded for PO %s (%s)", gr.number, po.po_no, computed.value
    )
    return gr


def annul_reception(tenant_id: int, gr_id: int, actor_id: int | None = None) -> None:
    """Undo a reception: give back its quantities and recompute the PO state."""
    gr = require_gr(tenant_id, gr_id)
    po = gr.po
    if po is not None and po.status == POStatus.FINALIZADA:
        raise PreconditionFailed(
            f"PO {po.po_no} is finalized; its receptions cannot be annulled."
        )
    number = gr.number
    if po is not None:
        items = {it.id: it for it in po.items}
        for ln in gr.lines:
            it = items.get(ln.po_line_id)
            if it is not None:
                it.received_qty = max(ZERO, dec(it.received_qty) - dec(ln.qty))
        if po_dao.any_received(po):
            po_dao.set_status(po, POStatus.PARCIALMENTE_RECIBIDA, actor_id, f"{number} annulled")
        elif po.status in (POStatus.PARCIALMENTE_RECIBIDA, POStatus.ENTREGADA):
            po_dao.set_status(po, POStatus.APROBADA, actor_id, f"{number} annulled")
    ev_dao.record(
        tenant_id, ev_dao.RECEPTION, gr.id, gr.reception_type, "ANNULLED", actor_id
    )
    idem_dao.forget(tenant_id, idem_dao.RECEPTION, gr.id)
    db.session.delete(gr)
    _commit()
    current_app.logger.info("reception %s annulled", number)


# ---------- helpers ----------
def _normalize_and_validate_lines(
    lines: List[Dict], po_lines: Dict[int, object]
) -> Dict[int, Decimal]:
    """
    - item_id (or po_line_id) must belong to the PO
    - quantities >= 0, at least one > 0
    - cumulative received never exceeds ordered
    Returns {po_line_id: qty received now}.
    """
    if not po_lines:
        raise PreconditionFailed("PO has no lines.")
    if not lines:
        raise ValidationFailed("At least one received item is required.")

    sum_by_po_line: Dict[int, Decimal] = defaultdict(lambda: ZERO)
    for idx, ln in enumerate(lines, 1):
        raw_id = ln.get("item_id", ln.get("po_line_id"))
        try:
            po_line_id = int(raw_id)
        except (TypeError, ValueError):
            raise ValidationFailed(f"Line {idx}: item_id is missing or invalid.")
        if po_line_id not in po_lines:
            raise ValidationFailed(f"Line {idx}: item #{po_line_id} is not on this PO.")
        try:
            q = to_qty(ln.get("received_qty", ln.get("qty")))
        except ValueError:
            raise ValidationFailed(f"Line {idx}: received quantity must be a number.")
        if q < 0:
            raise ValidationFailed(f"Line {idx}: received quantity cannot be negative.")
        sum_by_po_line[po_line_id] += q

    if not any(q > 0 for q in sum_by_po_line.values()):
        raise ValidationFailed("At least one item must have a received quantity > 0.")

    over = {}
    for po_line_id, total_qty in sum_by_po_line.items():
        it = po_lines[po_line_id]
        remaining = dec(it.qty) - dec(it.received_qty)
        if total_qty > remaining:
            over[po_line_id] = float(remaining)
    if over:
        raise PreconditionFailed(
            "Received quantity exceeds what is pending on the PO.",
            code="over_receipt",
            remaining=over,
        )
    return dict(sum_by_po_line)


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
