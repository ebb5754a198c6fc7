from typing import List, Dict, Optional
from decimal import Decimal
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from configs import db
from db.models.vendor_quotation import (
    VendorQuotation,
    VendorQuotationLine,
    VendorQuotationStatus,
)
from db.models.rfq import RFQ, RFQSupplier, RFQStatus, InvitationStatus
from db.models.purchase import PurchaseOrder
from db.models.purchase_requisition import PurchaseRequisitionStatus as PRS
from dao import rfq as rfq_dao, purchase as po_dao, purchase_requisition as pr_dao
from dao import supplier as supplier_dao, numbering, status_event as ev_dao
from utils.dates import utcnow, parse_date
from utils.errors import NotFound, PreconditionFailed, ValidationFailed
from utils.money import money, qty as to_qty
from utils.parsing import as_id, as_count
from utils.transitions import check_transition, can_transition

VQS = VendorQuotationStatus
REVIEW_DECISIONS = {
    "UNDER_REVIEW": VQS.UNDER_REVIEW,
    "ACCEPTED": VQS.ACCEPTED,
    "REJECTED": VQS.REJECTED,
}


# ======== Queries ========
def list_vqs(tenant_id: int, rfq_id: int) -> List[VendorQuotation]:
    r = rfq_dao.require_rfq(tenant_id, rfq_id)
    return (
        VendorQuotation.query.filter_by(rfq_id=r.id)
        .order_by(VendorQuotation.id.asc())
        .all()
    )


def get_vq(tenant_id: int, vq_id: int) -> Optional[VendorQuotation]:
    return (
        VendorQuotation.query.join(RFQ, RFQ.id == VendorQuotation.rfq_id)
        .filter(
            RFQ.tenant_id == int(tenant_id),
            VendorQuotation.id == as_id(vq_id, "quotation_id"),
        )
        .first()
    )


def require_vq(tenant_id: int, vq_id) -> VendorQuotation:
    vq = get_vq(tenant_id, vq_id)
    if not vq:
        raise NotFound(f"Quotation #{vq_id} not found.")
    return vq


def invitations_for_supplier(tenant_id: int, supplier_id: int) -> List[RFQSupplier]:
    """Supplier portal inbox: invitations on RFQs that left DRAFT."""
    return (
        RFQSupplier.query.join(RFQ, RFQ.id == RFQSupplier.rfq_id)
        .filter(
            RFQ.tenant_id == int(tenant_id),
            RFQSupplier.supplier_id == int(supplier_id),
            RFQ.status != RFQStatus.DRAFT,
        )
        .order_by(RFQ.deadline.asc())
        .all()
    )


def _move(vq: VendorQuotation, target: VQS, actor_id=None, comment=None):
    previous = vq.status
    check_transition("Quotation", previous, target)
    vq.status = target
    ev_dao.record(
        vq.rfq.tenant_id, ev_dao.QUOTATION, vq.id, previous, target, actor_id, comment
    )
    return vq


# ======== Mutations ========
def submit_quotation(
    tenant_id: int,
    rfq_id: int,
    supplier_id: int,
    lines: List[Dict],
    actor_id: int | None = None,
    delivery_days: int | None = None,
    payment_terms: str | None = None,
    valid_until=None,
    notes: str | None = None,
    currency: str | None = None,
) -> VendorQuotation:
    """Create or replace the supplier's quotation on an open RFQ.

    Resubmission is allowed while the RFQ is still collecting quotes and the
    previous quotation has not been reviewed.
    """
    r = rfq_dao.require_rfq(tenant_id, rfq_id)
    if r.status not in rfq_dao.OPEN_FOR_QUOTES:
        raise PreconditionFailed(
            f"RFQ {r.number} is not accepting quotations ({r.status.value})."
        )
    if utcnow() > r.deadline:
        raise PreconditionFailed(f"RFQ {r.number} deadline has passed.", code="deadline_passed")
    supplier_dao.require_active_supplier(tenant_id, supplier_id)
    inv = rfq_dao.require_invitation(r, supplier_id)
    if inv.status not in (
        InvitationStatus.INVITED,
        InvitationStatus.VIEWED,
        InvitationStatus.QUOTED,
    ):
        raise PreconditionFailed(
            f"Invitation is {inv.status.value}; a quotation cannot be submitted."
        )
    norm_lines = _normalize_vq_lines(lines, r)
    try:
        valid = parse_date(valid_until)
    except ValueError:
        raise ValidationFailed("valid_until is not a valid date.")
    days = as_count(delivery_days, "delivery_days")

    vq = VendorQuotation.query.filter_by(rfq_id=r.id, supplier_id=int(supplier_id)).first()
    if vq is None:
        vq = VendorQuotation(
            rfq=r,
            supplier_id=int(supplier_id),
            number=numbering.quotation_number(r),
            status=VQS.DRAFT,
            currency=currency or r.currency,
        )
        db.session.add(vq)
        db.session.flush()
    elif vq.status != VQS.SUBMITTED:
        raise PreconditionFailed(f"Quotation {vq.number} is {vq.status.value}.")
    else:
        vq.lines.clear()
        db.session.flush()

    for ln in norm_lines:
        vq.lines.append(VendorQuotationLine(**ln))
    vq.total_amount = money(sum((ln["line_total"] for ln in norm_lines), Decimal(0)))
    vq.delivery_days = days
    vq.payment_terms = payment_terms
    vq.valid_until = valid
    vq.notes = notes
    if currency:
        vq.currency = currency
    vq.submitted_at = utcnow()
    if vq.status == VQS.DRAFT:
        _move(vq, VQS.SUBMITTED, actor_id)

    if inv.status != InvitationStatus.QUOTED:
        rfq_dao.move_invitation(inv, InvitationStatus.QUOTED, actor_id)
    inv.responded_at = vq.submitted_at
    if r.status == RFQStatus.PUBLISHED:
        rfq_dao.move(r, RFQStatus.IN_QUOTATION, actor_id, f"first quotation {vq.number}")
    _commit()
    current_app.logger.info(
        "quotation %s submitted for RFQ %s (total %s)", vq.number, r.number, vq.total_amount
    )
    return vq


def review_quotation(tenant_id: int, vq_id: int, decision: str, actor_id=None, comment=None):
    vq = require_vq(tenant_id, vq_id)
    target = REVIEW_DECISIONS.get(str(decision or "").strip().upper())
    if target is None:
        raise ValidationFailed(f"Unknown review decision: {decision}")
    if vq.rfq.status not in (RFQStatus.IN_QUOTATION, RFQStatus.EVALUATION):
        raise PreconditionFailed(f"RFQ {vq.rfq.number} is {vq.rfq.status.value}.")
    _move(vq, target, actor_id, comment)
    _commit()
    return vq


def award_rfq(
    tenant_id: int,
    rfq_id: int,
    vq_id: int,
    actor_id: int | None = None,
    supplier_id: int | None = None,
) -> RFQ:
    """Award the RFQ to one quotation.

    Awarding the already-awarded quotation again changes nothing.
    """
    r = rfq_dao.require_rfq(tenant_id, rfq_id)
    vq = require_vq(tenant_id, vq_id)
    if vq.rfq_id != r.id:
        raise ValidationFailed(f"Quotation {vq.number} does not belong to RFQ {r.number}.")
    if supplier_id and as_id(supplier_id, "supplier_id") != vq.supplier_id:
        raise ValidationFailed("Supplier does not match the quotation.")

    if r.status == RFQStatus.AWARDED:
        if vq.status == VQS.AWARDED:
            return r
        raise PreconditionFailed(f"RFQ {r.number} is already awarded.", code="already_awarded")

    check_transition("RFQ", r.status, RFQStatus.AWARDED)
    live = rfq_dao.live_quotations(r)
    if not live:
        raise PreconditionFailed(f"RFQ {r.number} has no submitted quotations.")
    if vq not in live:
        raise PreconditionFailed(f"Quotation {vq.number} is {vq.status.value}.")

    _move(vq, VQS.AWARDED, actor_id)
    for other in live:
        if other.id != vq.id:
            _move(other, VQS.REJECTED, actor_id, f"RFQ awarded to {vq.number}")
    for inv in r.invitations:
        target = (
            InvitationStatus.AWARDED
            if inv.supplier_id == vq.supplier_id
            else InvitationStatus.NOT_AWARDED
        )
        if can_transition(inv.status, target):
            rfq_dao.move_invitation(inv, target, actor_id)
    r.awarded_supplier_id = vq.supplier_id
    r.awarded_at = utcnow()
    rfq_dao.move(r, RFQStatus.AWARDED, actor_id, vq.number)
    _commit()
    current_app.logger.info("RFQ %s awarded to %s", r.number, vq.number)
    return r


def create_po_from_vq(
    tenant_id: int,
    vq: VendorQuotation,
    actor_id: int | None = None,
    *,
    tax_rate=None,
    tax_amount=None,
    payment_terms: str | None = None,
    delivery_place: str | None = None,
    expected_date=None,
    notes: str | None = None,
) -> PurchaseOrder:
    if vq.status != VQS.AWARDED:
        raise PreconditionFailed("Only an awarded quotation can become a purchase order.")
    if not vq.lines:
        raise PreconditionFailed(f"Quotation {vq.number} has no lines.")
    supplier = supplier_dao.require_active_supplier(tenant_id, vq.supplier_id)
    try:
        expected = parse_date(expected_date)
    except ValueError:
        raise ValidationFailed("expected_date is not a valid date.")

    items = [
        {
            "description": ln.rfq_line.description,
            "unit": ln.rfq_line.unit,
            "qty": ln.qty,
            "price": ln.price,
            "line_total": ln.line_total,
            "pr_line_id": ln.rfq_line.pr_line_id,
        }
        for ln in vq.lines
    ]
    subtotal = money(sum((it["line_total"] for it in items), Decimal(0)))
    tax = po_dao.compute_tax(tenant_id, subtotal, tax_amount, tax_rate)

    r = vq.rfq
    pr = r.pr
    link_pr = pr is not None and pr.status == PRS.APPROVED and pr.purchase_order is None
    po = po_dao.stage_po(
        tenant_id,
        supplier,
        items,
        subtotal,
        tax,
        actor_id=actor_id,
        pr=pr if link_pr else None,
        rfq=r,
        vq=vq,
        currency=vq.currency,
        payment_terms=payment_terms or vq.payment_terms or r.payment_terms,
        delivery_place=delivery_place,
        expected_date=expected,
        notes=notes,
    )
    if link_pr:
        pr_dao.transition(pr, PRS.PO_GENERATED, actor_id, f"PO {po.po_no}")
    return po


def generate_po_from_rfq(tenant_id: int, rfq_id: int, actor_id: int | None = None, **kw):
    """PO from the awarded quotation; returns the existing one when already generated."""
    r = rfq_dao.require_rfq(tenant_id, rfq_id)
    if r.status != RFQStatus.AWARDED:
        raise PreconditionFailed(f"RFQ {r.number} is not awarded ({r.status.value}).")
    if r.po is not None:
        return r.po
    winner = next((vq for vq in r.vqs if vq.status == VQS.AWARDED), None)
    if winner is None:
        raise PreconditionFailed(f"RFQ {r.number} has no awarded quotation.")
    po = create_po_from_vq(tenant_id, winner, actor_id, **kw)
    _commit()
    current_app.logger.info("PO %s generated from RFQ %s", po.po_no, r.number)
    return po


def _normalize_vq_lines(lines: List[Dict], r: RFQ) -> List[Dict]:
    if not lines:
        raise ValidationFailed("At least one quoted line is required.")
    rfq_lines = {ln.id: ln for ln in r.lines}
    seen = set()
    out = []
    for idx, ln in enumerate(lines, 1):
        try:
            rfq_line_id = int(ln["rfq_line_id"])
        except (KeyError, TypeError, ValueError):
            raise ValidationFailed(f"Line {idx}: rfq_line_id is missing or invalid.")
        rfq_line = rfq_lines.get(rfq_line_id)
        if rfq_line is None:
            raise ValidationFailed(f"Line {idx}: RFQ line #{rfq_line_id} is not on this RFQ.")
        if rfq_line_id in seen:
            raise ValidationFailed(f"Line {idx}: RFQ line #{rfq_line_id} quoted twice.")
        seen.add(rfq_line_id)
        try:
            q = to_qty(ln.get("qty") if ln.get("qty") not in (None, "") else rfq_line.qty)
            price = money(ln.get("price", ln.get("unit_price")))
        except ValueError:
            raise ValidationFailed(f"Line {idx}: qty and price must be numbers.")
        if q <= 0:
            raise ValidationFailed(f"Line {idx}: qty must be > 0.")
        if price < 0:
            raise ValidationFailed(f"Line {idx}: price cannot be negative.")
        out.append(
            {
                "rfq_line_id": rfq_line_id,
                "qty": q,
                "price": price,
                "line_total": money(q * price),
                "brand": ln.get("brand"),
                "model": ln.get("model"),
                "notes": ln.get("notes"),
            }
        )
    return out


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
