from datetime import timedelta
from typing import Optional, List, Dict
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from configs import db
from db.models.rfq import RFQ, RFQLine, RFQSupplier, RFQStatus, InvitationStatus
from db.models.vendor_quotation import VendorQuotation, VendorQuotationStatus
from db.models.purchase_requisition import PurchaseRequisitionStatus
from dao import numbering, status_event as ev_dao
from dao import purchase_requisition as pr_dao, supplier as supplier_dao
from dao import tenant as tenant_dao
from utils.dates import utcnow, parse_date
from utils.errors import NotFound, PreconditionFailed, ValidationFailed
from utils.money import money, qty as to_qty
from utils.parsing import as_id
from utils.transitions import check_transition, can_transition

# quotations that count as "received" for closing, comparing and awarding
LIVE_QUOTATIONS = (
    VendorQuotationStatus.SUBMITTED,
    VendorQuotationStatus.UNDER_REVIEW,
    VendorQuotationStatus.ACCEPTED,
)
OPEN_FOR_QUOTES = (RFQStatus.PUBLISHED, RFQStatus.IN_QUOTATION)


def _to_rfq_status(value) -> RFQStatus:
    try:
        return RFQStatus[str(value).strip().upper()]
    except KeyError:
        raise ValidationFailed(f"Unknown RFQ status: {value}")


# -------- helpers --------
def _require_approved_pr(tenant_id: int, pr_id: int):
    """Requisition backing an RFQ must be APPROVED."""
    pr = pr_dao.require_pr(tenant_id, pr_id)
    if pr.status != PurchaseRequisitionStatus.APPROVED:
        raise PreconditionFailed(
            f"RFQs can only be created from APPROVED requisitions ({pr.number} is {pr.status.value})."
        )
    return pr


def _normalize_lines(lines: List[Dict]) -> List[Dict]:
    out: List[Dict] = []
    for idx, ln in enumerate(lines or [], 1):
        description = str(ln.get("description") or "").strip()
        if not description:
            raise ValidationFailed(f"Line {idx}: description is required.")
        try:
            q = to_qty(ln.get("qty", ln.get("quantity")))
        except ValueError:
            raise ValidationFailed(f"Line {idx}: qty is not a number.")
        if q <= 0:
            raise ValidationFailed(f"Line {idx}: qty must be > 0.")
        out.append(
            {
                "description": description,
                "qty": q,
                "unit": (ln.get("unit") or "unidad").strip(),
                "specifications": ln.get("specifications"),
                "pr_line_id": ln.get("pr_line_id"),
            }
        )
    return out


def _parse_deadline(value):
    try:
        deadline = parse_date(value)
    except ValueError:
        raise ValidationFailed("Deadline is not a valid date.")
    if deadline is None:
        raise ValidationFailed("Deadline is required.")
    return deadline


def _require_state(r: RFQ, *states: RFQStatus):
    if r.status not in states:
        names = "/".join(s.value for s in states)
        raise PreconditionFailed(f"RFQ {r.number} must be {names} (is {r.status.value}).")


def move(r: RFQ, target: RFQStatus, actor_id=None, comment=None):
    """Transition without commit."""
    previous = r.status
    check_transition("RFQ", previous, target)
    r.status = target
    ev_dao.record(r.tenant_id, ev_dao.RFQ, r.id, previous, target, actor_id, comment)
    return r


def move_invitation(inv: RFQSupplier, target: InvitationStatus, actor_id=None, comment=None):
    previous = inv.status
    check_transition("Invitation", previous, target)
    inv.status = target
    ev_dao.record(
        inv.rfq.tenant_id, ev_dao.INVITATION, inv.id, previous, target, actor_id, comment
    )
    return inv


def live_quotations(r: RFQ) -> List[VendorQuotation]:
    return [vq for vq in r.vqs if vq.status in LIVE_QUOTATIONS]


# -------- APIs --------
def build_lines_from_pr(pr) -> List[Dict]:
    """RFQ lines mirroring the requisition lines."""
    return [
        {
            "description": ln.description,
            "qty": ln.qty,
            "unit": ln.unit,
            "specifications": ln.specifications,
            "pr_line_id": ln.id,
        }
        for ln in pr.lines
    ]


def list_rfqs(tenant_id: int, status: str | None = None) -> List[RFQ]:
    q = RFQ.query.filter_by(tenant_id=int(tenant_id))
    if status:
        q = q.filter(RFQ.status == _to_rfq_status(status))
    return q.order_by(RFQ.id.desc()).all()


def rfq_stats(tenant_id: int, now=None, soon_days: int = 3) -> Dict:
    """Counts per status, plus open RFQs whose deadline falls in the next few days."""
    now = now or utcnow()
    rows = (
        db.session.query(RFQ.status, func.count(RFQ.id))
        .filter(RFQ.tenant_id == int(tenant_id))
        .group_by(RFQ.status)
        .all()
    )
    by_status = {s.value: 0 for s in RFQStatus}
    for status, n in rows:
        by_status[status.value] = n
    expiring = RFQ.query.filter(
        RFQ.tenant_id == int(tenant_id),
        RFQ.status.in_(OPEN_FOR_QUOTES),
        RFQ.deadline >= now,
        RFQ.deadline <= now + timedelta(days=soon_days),
    ).count()
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "active": sum(by_status[s.value] for s in (*OPEN_FOR_QUOTES, RFQStatus.EVALUATION)),
        "expiring_soon": expiring,
    }


def get_rfq(tenant_id: int, rfq_id: int) -> Optional[RFQ]:
    return RFQ.query.filter_by(tenant_id=int(tenant_id), id=as_id(rfq_id, "rfq_id")).first()


def require_rfq(tenant_id: int, rfq_id) -> RFQ:
    if not rfq_id:
        raise ValidationFailed("RFQ is required.")
    r = get_rfq(tenant_id, rfq_id)
    if not r:
        raise NotFound(f"RFQ #{rfq_id} not found.")
    return r


def require_invitation(r: RFQ, supplier_id) -> RFQSupplier:
    inv = RFQSupplier.query.filter_by(
        rfq_id=r.id, supplier_id=as_id(supplier_id, "supplier_id")
    ).first()
    if not inv:
        raise NotFound(f"Supplier #{supplier_id} is not invited to RFQ {r.number}.")
    return inv


def create_rfq(
    tenant_id: int,
    actor_id: int,
    title: str,
    deadline,
    lines: List[Dict] | None = None,
    pr_id: int | None = None,
    description: str | None = None,
    currency: str | None = None,
    budget=None,
    payment_terms: str | None = None,
    notes: str | None = None,
    supplier_ids: List[int] | None = None,
) -> RFQ:
    title = (title or "").strip()
    if not title:
        raise ValidationFailed("Title is required.")
    deadline = _parse_deadline(deadline)
    pr = _require_approved_pr(tenant_id, pr_id) if pr_id else None
    if lines is None and pr is not None:
        lines = build_lines_from_pr(pr)
    norm_lines = _normalize_lines(lines)
    suppliers = [
        supplier_dao.require_active_supplier(tenant_id, sid) for sid in supplier_ids or []
    ]
    try:
        budget = money(budget) if budget not in (None, "") else None
    except ValueError:
        raise ValidationFailed("Budget is not a number.")

    r = RFQ(
        tenant_id=int(tenant_id),
        number=numbering.next_number(RFQ.number, RFQ.tenant_id, tenant_id, numbering.RFQ),
        title=title,
        description=description,
        pr_id=pr.id if pr else None,
        deadline=deadline,
        currency=currency or (pr.currency if pr else tenant_dao.currency(tenant_id)),
        budget=budget,
        payment_terms=payment_terms,
        notes=notes,
        status=RFQStatus.DRAFT,
        created_by_id=actor_id,
    )
    db.session.add(r)
    db.session.flush()  # r.id for the lines

    for ln in norm_lines:
        db.session.add(RFQLine(rfq_id=r.id, **ln))
    for s in suppliers:
        if not any(inv.supplier_id == s.id for inv in r.invitations):
            r.invitations.append(RFQSupplier(supplier_id=s.id, status=InvitationStatus.PENDING))
    ev_dao.record(tenant_id, ev_dao.RFQ, r.id, None, r.status, actor_id)
    _commit()
    current_app.logger.info("RFQ %s created", r.number)
    return r


def update_rfq(tenant_id: int, rfq_id: int, fields: Dict, lines: List[Dict] | None = None) -> RFQ:
    """Only drafts can be edited. Lines, when given, replace the current ones."""
    r = require_rfq(tenant_id, rfq_id)
    _require_state(r, RFQStatus.DRAFT)

    if "title" in fields:
        title = str(fields.get("title") or "").strip()
        if not title:
            raise ValidationFailed("Title is required.")
        r.title = title
    if fields.get("deadline"):
        r.deadline = _parse_deadline(fields["deadline"])
    if "budget" in fields:
        try:
            r.budget = money(fields["budget"]) if fields["budget"] not in (None, "") else None
        except ValueError:
            raise ValidationFailed("Budget is not a number.")
    for k in ("description", "currency", "payment_terms", "notes"):
        if k in fields:
            setattr(r, k, fields[k])

    if lines is not None:
        norm_lines = _normalize_lines(lines)
        RFQLine.query.filter_by(rfq_id=r.id).delete()
        db.session.expire(r, ["lines"])
        for ln in norm_lines:
            db.session.add(RFQLine(rfq_id=r.id, **ln))
    _commit()
    return r


def delete_rfq(tenant_id: int, rfq_id: int) -> None:
    r = require_rfq(tenant_id, rfq_id)
    _require_state(r, RFQStatus.DRAFT)
    db.session.delete(r)
    _commit()


def invite_suppliers(tenant_id: int, rfq_id: int, supplier_ids: List[int], actor_id=None):
    r = require_rfq(tenant_id, rfq_id)
    _require_state(r, RFQStatus.DRAFT, RFQStatus.PUBLISHED)
    if not supplier_ids:
        raise ValidationFailed("At least one supplier is required.")
    suppliers = [supplier_dao.require_active_supplier(tenant_id, sid) for sid in supplier_ids]

    invited = {inv.supplier_id for inv in r.invitations}
    added = []
    for s in suppliers:
        if s.id in invited:
            continue
        inv = RFQSupplier(supplier_id=s.id, status=InvitationStatus.PENDING)
        r.invitations.append(inv)
        invited.add(s.id)
        added.append(inv)
    db.session.flush()
    if r.status == RFQStatus.PUBLISHED:
        now = utcnow()
        for inv in added:
            move_invitation(inv, InvitationStatus.INVITED, actor_id)
            inv.invited_at = now
    _commit()
    return added


def remove_supplier(tenant_id: int, rfq_id: int, supplier_id: int) -> None:
    r = require_rfq(tenant_id, rfq_id)
    _require_state(r, RFQStatus.DRAFT)
    inv = require_invitation(r, supplier_id)
    r.invitations.remove(inv)
    _commit()


def publish_rfq(tenant_id: int, rfq_id: int, actor_id=None) -> RFQ:
    r = require_rfq(tenant_id, rfq_id)
    check_transition("RFQ", r.status, RFQStatus.PUBLISHED)
    if not r.lines:
        raise PreconditionFailed(f"RFQ {r.number} has no lines.")
    if not r.invitations:
        raise PreconditionFailed(f"RFQ {r.number} has no invited suppliers.")
    now = utcnow()
    if r.deadline <= now:
        raise PreconditionFailed(f"RFQ {r.number} deadline is already past.")

    move(r, RFQStatus.PUBLISHED, actor_id)
    r.published_at = now
    for inv in r.invitations:
        if inv.status == InvitationStatus.PENDING:
            move_invitation(inv, InvitationStatus.INVITED, actor_id)
            inv.invited_at = now
    _commit()
    current_app.logger.info(
        "RFQ %s published to %d suppliers", r.number, len(r.invitations)
    )
    return r


def mark_viewed(tenant_id: int, rfq_id: int, supplier_id: int) -> RFQSupplier:
    r = require_rfq(tenant_id, rfq_id)
    if r.status == RFQStatus.DRAFT:
        # unpublished RFQs do not exist for suppliers yet
        raise NotFound(f"RFQ #{rfq_id} not found.")
    inv = require_invitation(r, supplier_id)
    if inv.status == InvitationStatus.INVITED:
        move_invitation(inv, InvitationStatus.VIEWED)
        inv.viewed_at = utcnow()
        _commit()
    return inv


def decline_invitation(tenant_id: int, rfq_id: int, supplier_id: int, reason=None, actor_id=None):
    r = require_rfq(tenant_id, rfq_id)
    _require_state(r, *OPEN_FOR_QUOTES)
    inv = require_invitation(r, supplier_id)
    move_invitation(inv, InvitationStatus.DECLINED, actor_id, reason)
    inv.responded_at = utcnow()
    inv.decline_reason = reason
    _commit()
    return inv


def close_rfq(tenant_id: int, rfq_id: int, actor_id=None) -> RFQ:
    """Stop receiving quotations: EVALUATION when any arrived, CLOSED otherwise."""
    r = require_rfq(tenant_id, rfq_id)
    _require_state(r, *OPEN_FOR_QUOTES)
    target = RFQStatus.EVALUATION if live_quotations(r) else RFQStatus.CLOSED
    move(r, target, actor_id)
    r.closed_at = utcnow()
    _commit()
    return r


def cancel_rfq(tenant_id: int, rfq_id: int, actor_id=None, reason=None) -> RFQ:
    r = require_rfq(tenant_id, rfq_id)
    move(r, RFQStatus.CANCELLED, actor_id, reason)
    r.closed_at = utcnow()
    _commit()
    return r


def expire_overdue_rfqs(tenant_id: int | None = None, now=None) -> List[RFQ]:
    """Open RFQs past their deadline with no quotation received become EXPIRED."""
    now = now or utcnow()
    q = RFQ.query.filter(RFQ.status.in_(OPEN_FOR_QUOTES), RFQ.deadline < now)
    if tenant_id is not None:
        q = q.filter(RFQ.tenant_id == int(tenant_id))
    expired = []
    for r in q.all():
        if live_quotations(r) or not can_transition(r.status, RFQStatus.EXPIRED):
            continue
        move(r, RFQStatus.EXPIRED, comment="deadline passed")
        r.closed_at = now
        expired.append(r)
    if expired:
        _commit()
        current_app.logger.info("expired %d overdue RFQs", len(expired))
    return expired


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
