# dao/purchase.py
from typing import Optional, List, Dict
from decimal import Decimal
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import func
from configs import db
from db.models.purchase import (
    PurchaseOrder,
    PurchaseOrderItem,
    POStatus,
    POApprovalStatus,
)
from db.models.goods_receipt import GoodsReceipt, GRLine
from db.models.purchase_requisition import PurchaseRequisitionStatus as PRS
from dao import numbering, status_event as ev_dao, idempotency as idem_dao
from dao import tenant as tenant_dao, supplier as supplier_dao
from dao import purchase_requisition as pr_dao
from utils.dates import utcnow, parse_date
from utils.errors import NotFound, PreconditionFailed, ValidationFailed
from utils.money import money, qty as to_qty, dec
from utils.parsing import as_id
from utils.transitions import check_transition

# reception is accepted in these states
RECEIVABLE = (
    POStatus.APROBADA,
    POStatus.EN_PROCESO,
    POStatus.PARCIALMENTE_RECIBIDA,
    POStatus.ENTREGADA,
)
FIELD_NAMES = ("payment_terms", "delivery_place", "notes", "expected_date")


def _to_po_status(value) -> POStatus:
    if isinstance(value, POStatus):
        return value
    value = str(value or "").strip().upper()
    try:
        return POStatus[value]
    except KeyError:
        raise ValidationFailed(f"Unknown purchase order status: {value or '-'}")


# ---------------- queries ----------------
def list_purchases(
    tenant_id: int, status: str | None = None, supplier_id: int | None = None
) -> List[PurchaseOrder]:
    q = PurchaseOrder.query.filter_by(tenant_id=int(tenant_id))
    if status:
        q = q.filter(PurchaseOrder.status == _to_po_status(status))
    if supplier_id:
        q = q.filter(PurchaseOrder.supplier_id == as_id(supplier_id, "supplier_id"))
    return q.order_by(PurchaseOrder.id.desc()).all()


def get_po(tenant_id: int, po_id: int) -> Optional[PurchaseOrder]:
    return PurchaseOrder.query.filter_by(tenant_id=int(tenant_id), id=as_id(po_id, "po_id")).first()


def require_po(tenant_id: int, po_id) -> PurchaseOrder:
    if not po_id:
        raise ValidationFailed("Purchase order is required.")
    po = get_po(tenant_id, po_id)
    if not po:
        raise NotFound(f"Purchase order #{po_id} not found.")
    return po


def po_lines_with_remaining(tenant_id: int, po_id: int) -> List[dict]:
    """
    One dict per PO line: {po_line_id, description, ordered, received, remaining}
    - received = sum of GRLine.qty over every reception of the PO
    """
    po = require_po(tenant_id, po_id)
    q = (
        db.session.query(
            PurchaseOrderItem.id.label("po_line_id"),
            PurchaseOrderItem.description,
            PurchaseOrderItem.unit,
            PurchaseOrderItem.qty.label("ordered"),
            func.coalesce(func.sum(GRLine.qty), 0).label("received"),
        )
        .select_from(PurchaseOrderItem)
        .outerjoin(GRLine, GRLine.po_line_id == PurchaseOrderItem.id)
        .filter(PurchaseOrderItem.po_id == po.id)
        .group_by(PurchaseOrderItem.id)
        .order_by(PurchaseOrderItem.id)
    )

    rows = []
    for r in q:
        ordered = dec(r.ordered)
        received = dec(r.received)
        rows.append(
            {
                "po_line_id": r.po_line_id,
                "description": r.description,
                "unit": r.unit,
                "ordered": float(ordered),
                "received": float(received),
                "remaining": float(max(Decimal(0), ordered - received)),
            }
        )
    return rows


def history(tenant_id: int, po_id: int):
    po = require_po(tenant_id, po_id)
    events = ev_dao.history(tenant_id, ev_dao.PURCHASE_ORDER, po.id)
    events += ev_dao.history(tenant_id, ev_dao.PO_APPROVAL, po.id)
    return sorted(events, key=lambda e: e.id)


# ---------------- helpers ----------------
def _ensure_pr_free(pr):
    if pr.status != PRS.APPROVED:
        raise PreconditionFailed(
            f"Requisition {pr.number} must be APPROVED (is {pr.status.value})."
        )
    if pr.purchase_order is not None:
        raise PreconditionFailed(
            f"Requisition {pr.number} already has PO {pr.purchase_order.po_no}."
        )


def _normalize_items(items: List[Dict]) -> List[Dict]:
    if not items:
        raise ValidationFailed("A purchase order needs at least one item.")
    out = []
    for idx, it in enumerate(items, 1):
        description = str(it.get("description") or "").strip()
        if not description:
            raise ValidationFailed(f"Item {idx}: description is required.")
        try:
            q = to_qty(it.get("qty", it.get("quantity")))
            price = money(it.get("price", it.get("unit_price")))
        except ValueError:
            raise ValidationFailed(f"Item {idx}: quantity and price must be numbers.")
        if q <= 0:
            raise ValidationFailed(f"Item {idx}: quantity must be > 0.")
        if price < 0:
            raise ValidationFailed(f"Item {idx}: price cannot be negative.")
        out.append(
            {
                "description": description,
                "unit": (it.get("unit") or "unidad").strip(),
                "qty": q,
                "price": price,
                "line_total": money(q * price),
                "pr_line_id": it.get("pr_line_id"),
            }
        )
    return out


def compute_tax(tenant_id, subtotal: Decimal, tax_amount=None, tax_rate=None) -> Decimal:
    try:
        if tax_amount not in (None, ""):
            tax = money(tax_amount)
        elif tax_rate not in (None, ""):
            tax = money(subtotal * dec(tax_rate))
        else:
            tax = money(subtotal * tenant_dao.tax_rate(tenant_id))
    except ValueError:
        raise ValidationFailed("Tax must be a number.")
    if tax < 0:
        raise ValidationFailed("Tax cannot be negative.")
    return tax


def stage_po(
    tenant_id: int,
    supplier,
    items: List[Dict],
    subtotal: Decimal,
    tax: Decimal,
    actor_id=None,
    pr=None,
    rfq=None,
    vq=None,
    currency: str | None = None,
    payment_terms=None,
    delivery_place=None,
    expected_date=None,
    notes=None,
) -> PurchaseOrder:
    """Add a PO with its items to the session. Validation is the caller's job."""
    po = PurchaseOrder(
        tenant_id=int(tenant_id),
        po_no=numbering.next_number(
            PurchaseOrder.po_no,
            PurchaseOrder.tenant_id,
            tenant_id,
            numbering.PURCHASE_ORDER,
        ),
        supplier_id=supplier.id,
        supplier_name=supplier.name,
        supplier_tax_id=supplier.tax_id,
        supplier_email=supplier.email,
        status=POStatus.PENDIENTE,
        approval_status=POApprovalStatus.PENDIENTE_APROBACION,
        order_date=utcnow(),
        expected_date=expected_date,
        subtotal=subtotal,
        tax=tax,
        total=money(subtotal + tax),
        currency=currency or tenant_dao.currency(tenant_id),
        payment_terms=payment_terms,
        delivery_place=delivery_place,
        notes=notes,
        pr=pr,
        rfq=rfq,
        vq=vq,
        created_by_id=actor_id,
    )
    db.session.add(po)
    db.session.flush()
    for it in items:
        db.session.add(PurchaseOrderItem(po_id=po.id, received_qty=0, **it))
    ev_dao.record(tenant_id, ev_dao.PURCHASE_ORDER, po.id, None, po.status, actor_id)
    return po


def stage_po_from_requisition(pr, supplier, actor_id) -> PurchaseOrder:
    """PO mirroring the requisition: subtotal is its estimated amount."""
    items = [
        {
            "description": ln.description,
            "unit": ln.unit,
            "qty": ln.qty,
            "price": ln.unit_price,
            "line_total": ln.line_total,
            "pr_line_id": ln.id,
        }
        for ln in pr.lines
    ]
    subtotal = money(pr.estimated_amount)
    tax = money(subtotal * tenant_dao.tax_rate(pr.tenant_id))
    return stage_po(
        pr.tenant_id,
        supplier,
        items,
        subtotal,
        tax,
        actor_id=actor_id,
        pr=pr,
        currency=pr.currency,
        expected_date=pr.needed_by,
    )


def set_status(po: PurchaseOrder, target: POStatus, actor_id=None, comment=None):
    """Transition without commit; same-state calls are a no-op."""
    previous = po.status
    if previous == target:
        return po
    check_transition("PurchaseOrder", previous, target)
    po.status = target
    ev_dao.record(
        po.tenant_id, ev_dao.PURCHASE_ORDER, po.id, previous, target, actor_id, comment
    )
    return po


def fully_received(po: PurchaseOrder) -> bool:
    return bool(po.items) and all(
        dec(it.received_qty) >= dec(it.qty) for it in po.items
    )


def any_received(po: PurchaseOrder) -> bool:
    return any(dec(it.received_qty) > 0 for it in po.items)


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise


# ---------------- mutations ----------------
def create_po(
    tenant_id: int,
    actor_id: int,
    pr_id: int,
    supplier_id: int,
    items: List[Dict] | None = None,
    tax_amount=None,
    tax_rate=None,
    currency: str | None = None,
    payment_terms: str | None = None,
    delivery_place: str | None = None,
    expected_date=None,
    notes: str | None = None,
    idempotency_key: str | None = None,
) -> PurchaseOrder:
    existing = idem_dao.lookup(tenant_id, idem_dao.PURCHASE_ORDER, idempotency_key)
    if existing:
        return require_po(tenant_id, existing)

    # everything is validated before the first write
    pr = pr_dao.require_pr(tenant_id, pr_id)
    _ensure_pr_free(pr)
    supplier = supplier_dao.require_active_supplier(tenant_id, supplier_id)
    if items is None:
        items = [
            {
                "description": ln.description,
                "unit": ln.unit,
                "qty": ln.qty,
                "price": ln.unit_price,
                "pr_line_id": ln.id,
            }
            for ln in pr.lines
        ]
    norm_items = _normalize_items(items)
    subtotal = money(sum((it["line_total"] for it in norm_items), Decimal(0)))
    tax = compute_tax(tenant_id, subtotal, tax_amount, tax_rate)
    try:
        expected = parse_date(expected_date)
    except ValueError:
        raise ValidationFailed("expected_date is not a valid date.")

    po = stage_po(
        tenant_id,
        supplier,
        norm_items,
        subtotal,
        tax,
        actor_id=actor_id,
        pr=pr,
        currency=currency or pr.currency,
        payment_terms=payment_terms,
        delivery_place=delivery_place,
        expected_date=expected,
        notes=notes,
    )
    pr_dao.transition(pr, PRS.PO_GENERATED, actor_id, f"PO {po.po_no}")
    idem_dao.remember(tenant_id, idem_dao.PURCHASE_ORDER, idempotency_key, po.id)
    _commit()
    current_app.logger.info(
        "purchase order %s created for %s (total %s)", po.po_no, pr.number, po.total
    )
    return po


def update_po_status(
    tenant_id: int, po_id: int, new_status, actor_id: int, comment: str | None = None
) -> PurchaseOrder:
    po = require_po(tenant_id, po_id)
    target = _to_po_status(new_status)
    check_transition("PurchaseOrder", po.status, target)

    if target != POStatus.PENDIENTE and po.approval_status != POApprovalStatus.APROBADA:
        raise PreconditionFailed(
            f"PO {po.po_no} is not approved ({po.approval_status.value})."
        )
    if target == POStatus.APROBADA and any_received(po):
        raise PreconditionFailed(f"PO {po.po_no} already has received quantities.")
    if target == POStatus.PARCIALMENTE_RECIBIDA and not any_received(po):
        raise PreconditionFailed(f"PO {po.po_no} has nothing received yet.")
    if target == POStatus.FINALIZADA and not fully_received(po):
        raise PreconditionFailed(f"PO {po.po_no} is not fully received.")

    set_status(po, target, actor_id, comment)
    _commit()
    return po


def update_po_fields(tenant_id: int, po_id: int, **fields) -> PurchaseOrder:
    po = require_po(tenant_id, po_id)
    if po.status == POStatus.FINALIZADA:
        raise PreconditionFailed(f"PO {po.po_no} is finalized.")
    for k, v in fields.items():
        if k not in FIELD_NAMES:
            continue
        if k == "expected_date":
            try:
                v = parse_date(v)
            except ValueError:
                raise ValidationFailed("expected_date is not a valid date.")
        setattr(po, k, v)
    _commit()
    return po


def approve_po(tenant_id: int, po_id: int, approver_id: int, comment=None):
    po = require_po(tenant_id, po_id)
    previous = po.approval_status
    check_transition("PurchaseOrderApproval", previous, POApprovalStatus.APROBADA)
    po.approval_status = POApprovalStatus.APROBADA
    po.approver_id = approver_id
    po.approved_at = utcnow()
    po.approval_comment = comment
    ev_dao.record(
        tenant_id, ev_dao.PO_APPROVAL, po.id, previous, po.approval_status,
        approver_id, comment,
    )
    if po.status == POStatus.PENDIENTE:
        set_status(po, POStatus.APROBADA, approver_id, comment)
    _commit()
    current_app.logger.info("purchase order %s approved by %s", po.po_no, approver_id)
    return po


def reject_po(tenant_id: int, po_id: int, approver_id: int, reason: str):
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed("A rejection reason is required.")
    po = require_po(tenant_id, po_id)
    previous = po.approval_status
    check_transition("PurchaseOrderApproval", previous, POApprovalStatus.RECHAZADA)
    po.approval_status = POApprovalStatus.RECHAZADA
    po.approver_id = approver_id
    po.approved_at = utcnow()
    po.approval_comment = reason
    ev_dao.record(
        tenant_id, ev_dao.PO_APPROVAL, po.id, previous, po.approval_status,
        approver_id, reason,
    )
    _commit()
    current_app.logger.info("purchase order %s rejected by %s", po.po_no, approver_id)
    return po


def delete_po(tenant_id: int, po_id: int, actor_id: int | None = None) -> None:
    po = require_po(tenant_id, po_id)
    has_receptions = db.session.query(
        GoodsReceipt.query.filter(GoodsReceipt.po_id == po.id).exists()
    ).scalar()
    if has_receptions:
        raise PreconditionFailed(f"PO {po.po_no} already has receptions.")
    po_no = po.po_no
    pr = po.pr
    if pr is not None and pr.status == PRS.PO_GENERATED:
        pr_dao.transition(pr, PRS.APPROVED, actor_id, f"PO {po_no} deleted")
    idem_dao.forget(tenant_id, idem_dao.PURCHASE_ORDER, po.id)
    db.session.delete(po)
    _commit()
    current_app.logger.info("purchase order %s deleted", po_no)
