from typing import Optional, List, Dict
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from configs import db
from db.models.purchase_requisition import (
    PurchaseRequisition,
    PRLine,
    PurchaseRequisitionStatus,
    Priority,
    PurchaseType,
)
from db.models.attachment import Attachment, AttachmentStatus
from dao import numbering, status_event as ev_dao, idempotency as idem_dao
from dao import tenant as tenant_dao, supplier as supplier_dao
from dao import approval as approval_dao, user as user_dao
from utils.dates import utcnow, parse_date
from utils.errors import NotFound, PreconditionFailed, ValidationFailed
from utils.money import money, qty as to_qty, dec
from utils.parsing import as_id, as_count
from utils.transitions import check_transition

PRS = PurchaseRequisitionStatus
EDITABLE = (PRS.DRAFT, PRS.PENDING_APPROVAL)


# ---------------- queries ----------------
def list_prs(tenant_id: int, status: str | None = None) -> List[PurchaseRequisition]:
    q = PurchaseRequisition.query.filter_by(tenant_id=int(tenant_id))
    if status:
        q = q.filter(PurchaseRequisition.status == _to_status(status))
    return q.order_by(PurchaseRequisition.id.desc()).all()


def get_pr(tenant_id: int, pr_id: int) -> Optional[PurchaseRequisition]:
    return PurchaseRequisition.query.filter_by(
        tenant_id=int(tenant_id), id=as_id(pr_id, "requisition_id")
    ).first()


def require_pr(tenant_id: int, pr_id) -> PurchaseRequisition:
    if not pr_id:
        raise ValidationFailed("Purchase requisition is required.")
    pr = get_pr(tenant_id, pr_id)
    if not pr:
        raise NotFound(f"Purchase requisition #{pr_id} not found.")
    return pr


def pr_history(tenant_id: int, pr_id: int):
    pr = require_pr(tenant_id, pr_id)
    return ev_dao.history(tenant_id, ev_dao.REQUISITION, pr.id)


# ---------------- mutations ----------------
def create_pr(
    tenant_id: int,
    requester_id: int,
    fields: Dict,
    lines: List[Dict],
    submit: bool = False,
    idempotency_key: str | None = None,
) -> PurchaseRequisition:
    existing = idem_dao.lookup(tenant_id, idem_dao.REQUISITION, idempotency_key)
    if existing:
        return require_pr(tenant_id, existing)

    title = str(fields.get("title") or "").strip()
    if not title:
        raise ValidationFailed("Title is required.")
    norm_lines = _normalize_lines(lines)
    supplier_id = fields.get("supplier_id")
    if supplier_id:
        supplier_dao.require_supplier(tenant_id, supplier_id)

    pr = PurchaseRequisition(
        tenant_id=int(tenant_id),
        number=numbering.next_number(
            PurchaseRequisition.number,
            PurchaseRequisition.tenant_id,
            tenant_id,
            numbering.REQUISITION,
        ),
        title=title,
        requester_id=int(requester_id),
        currency=fields.get("currency") or tenant_dao.currency(tenant_id),
        status=PRS.DRAFT,
        purchase_type=PurchaseType.DIRECT,
    )
    _apply_fields(pr, fields)
    db.session.add(pr)
    db.session.flush()
    _replace_lines(pr, norm_lines, fields.get("estimated_amount"))
    ev_dao.record(tenant_id, ev_dao.REQUISITION, pr.id, None, PRS.DRAFT, requester_id)
    if submit:
        _submit(pr, requester_id)
    idem_dao.remember(tenant_id, idem_dao.REQUISITION, idempotency_key, pr.id)
    _commit()
    current_app.logger.info("requisition %s created (%s)", pr.number, pr.status.value)
    return pr


def update_pr(
    tenant_id: int,
    pr_id: int,
    fields: Dict,
    lines: List[Dict] | None = None,
) -> PurchaseRequisition:
    pr = require_pr(tenant_id, pr_id)
    if pr.status not in EDITABLE:
        raise PreconditionFailed(
            f"Requisition {pr.number} is {pr.status.value} and can no longer be edited."
        )
    if "title" in fields:
        title = str(fields.get("title") or "").strip()
        if not title:
            raise ValidationFailed("Title is required.")
        pr.title = title
    norm_lines = _normalize_lines(lines) if lines is not None else None
    if fields.get("supplier_id"):
        supplier_dao.require_supplier(tenant_id, fields["supplier_id"])

    _apply_fields(pr, fields)
    if fields.get("currency"):
        pr.currency = fields["currency"]
    if norm_lines is not None:
        PRLine.query.filter_by(pr_id=pr.id).delete()
        db.session.expire(pr, ["lines"])
        _replace_lines(pr, norm_lines, fields.get("estimated_amount"))
    elif fields.get("estimated_amount") not in (None, ""):
        pr.estimated_amount = _non_negative_money(fields["estimated_amount"])

    # amount or type changes may pick another rule; signatures start over
    wf = approval_dao.active_workflow(pr)
    if pr.status == PRS.PENDING_APPROVAL and (
        norm_lines is not None
        or fields.get("estimated_amount") not in (None, "")
        or fields.get("purchase_type")
    ):
        if wf is not None:
            approval_dao.cancel_workflow(wf, None, "requisition edited")
        approval_dao.start_workflow(pr, pr.requester_id)
    _commit()
    return pr


def submit_pr(tenant_id: int, pr_id: int, actor_id: int, comment=None):
    pr = require_pr(tenant_id, pr_id)
    if not pr.lines:
        raise PreconditionFailed("A requisition needs at least one line.")
    _submit(pr, actor_id, comment)
    _commit()
    return pr


def approve_pr(
    tenant_id: int,
    pr_id: int,
    approver_id: int,
    comment: str | None = None,
    confirm_rejected_attachments: bool = False,
) -> PurchaseRequisition:
    """Approve a requisition waiting for approval.

    Every attachment must have been decided first. Rejected attachments only
    pass when the approver confirms them explicitly. Under an approval rule
    each call signs the current level, and the requisition stays
    PENDING_APPROVAL until the last level signs. A requisition that names an
    active supplier gets its purchase order right away.
    """
    from dao import purchase as po_dao

    pr = require_pr(tenant_id, pr_id)
    check_transition("Requisition", pr.status, PRS.APPROVED)

    pending = [a.id for a in pr.attachments if a.status == AttachmentStatus.PENDING]
    if pending:
        raise PreconditionFailed(
            "Attachments are still pending approval.",
            code="pending_attachments",
            attachments=pending,
        )
    rejected = [a.id for a in pr.attachments if a.status == AttachmentStatus.REJECTED]
    if rejected and not confirm_rejected_attachments:
        raise PreconditionFailed(
            "Some attachments were rejected; confirm to approve anyway.",
            code="rejected_attachments",
            attachments=rejected,
        )

    wf = approval_dao.active_workflow(pr)
    if wf is not None:
        level = wf.current_level
        done = approval_dao.sign(wf, user_dao.get_user(approver_id), True, comment)
        if not done:
            pr.updated_at = utcnow()
            _commit()
            current_app.logger.info(
                "requisition %s level %s signed by %s, waiting for level %s",
                pr.number, level, approver_id, wf.current_level,
            )
            return pr

    pr.approver_id = int(approver_id)
    pr.decided_at = utcnow()
    pr.decision_comment = comment
    transition(pr, PRS.APPROVED, approver_id, comment)

    supplier = pr.supplier
    if supplier is not None and supplier.is_active and pr.purchase_order is None:
        po = po_dao.stage_po_from_requisition(pr, supplier, approver_id)
        transition(pr, PRS.PO_GENERATED, approver_id, f"PO {po.po_no}")
    _commit()
    current_app.logger.info(
        "requisition %s approved by %s -> %s", pr.number, approver_id, pr.status.value
    )
    return pr


def reject_pr(tenant_id: int, pr_id: int, approver_id: int, reason: str):
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed("A rejection reason is required.")
    pr = require_pr(tenant_id, pr_id)
    check_transition("Requisition", pr.status, PRS.REJECTED)
    wf = approval_dao.active_workflow(pr)
    if wf is not None:
        approval_dao.sign(wf, user_dao.get_user(approver_id), False, reason)
    pr.approver_id = int(approver_id)
    pr.decided_at = utcnow()
    pr.decision_comment = reason
    transition(pr, PRS.REJECTED, approver_id, reason)
    _commit()
    current_app.logger.info("requisition %s rejected by %s", pr.number, approver_id)
    return pr


def cancel_pr(tenant_id: int, pr_id: int, actor_id: int, comment=None):
    pr = require_pr(tenant_id, pr_id)
    transition(pr, PRS.CANCELLED, actor_id, comment)
    wf = approval_dao.active_workflow(pr)
    if wf is not None:
        approval_dao.cancel_workflow(wf, actor_id, comment)
    _commit()
    return pr


def approval_of(tenant_id: int, pr_id: int):
    """The running workflow, else the last one; None for single sign-off."""
    pr = require_pr(tenant_id, pr_id)
    return approval_dao.active_workflow(pr) or approval_dao.latest_workflow(pr)


def delete_pr(tenant_id: int, pr_id: int) -> None:
    pr = require_pr(tenant_id, pr_id)
    if pr.status != PRS.DRAFT:
        raise PreconditionFailed("Only draft requisitions can be deleted.")
    idem_dao.forget(tenant_id, idem_dao.REQUISITION, pr.id)
    db.session.delete(pr)
    _commit()


def _submit(pr: PurchaseRequisition, actor_id, comment=None):
    transition(pr, PRS.PENDING_APPROVAL, actor_id, comment)
    pr.submitted_at = utcnow()
    approval_dao.start_workflow(pr, actor_id)


def transition(pr: PurchaseRequisition, target: PRS, actor_id=None, comment=None):
    """Move pr to target and stage the audit row. Does not commit."""
    previous = pr.status
    check_transition("Requisition", previous, target)
    pr.status = target
    pr.updated_at = utcnow()
    ev_dao.record(
        pr.tenant_id, ev_dao.REQUISITION, pr.id, previous, target, actor_id, comment
    )
    return pr


# ---------------- attachments ----------------
def list_attachments(tenant_id: int, pr_id: int) -> List[Attachment]:
    return list(require_pr(tenant_id, pr_id).attachments)


def add_attachment(
    tenant_id: int,
    pr_id: int,
    file_name: str,
    mime_type: str | None = None,
    size: int | None = None,
    is_specification: bool = False,
) -> Attachment:
    pr = require_pr(tenant_id, pr_id)
    if pr.status not in EDITABLE:
        raise PreconditionFailed(
            f"Cannot attach files to a {pr.status.value} requisition."
        )
    file_name = (file_name or "").strip()
    if not file_name:
        raise ValidationFailed("File name is required.")
    a = Attachment(
        pr_id=pr.id,
        file_name=file_name,
        mime_type=mime_type,
        size=as_count(size, "size") or 0,
        is_specification=bool(is_specification),
        status=AttachmentStatus.PENDING,
    )
    db.session.add(a)
    _commit()
    return a


def decide_attachment(
    tenant_id: int,
    pr_id: int,
    attachment_id: int,
    approved: bool,
    approver_id: int,
    comment: str | None = None,
) -> Attachment:
    pr = require_pr(tenant_id, pr_id)
    a = Attachment.query.filter_by(
        id=as_id(attachment_id, "attachment_id"), pr_id=pr.id
    ).first()
    if not a:
        raise NotFound(f"Attachment #{attachment_id} not found.")
    _decide(pr, a, AttachmentStatus.APPROVED if approved else AttachmentStatus.REJECTED,
            approver_id, comment)
    _commit()
    return a


def approve_specifications(tenant_id: int, pr_id: int, approver_id: int, comment=None):
    """Approve every specification attachment not yet approved."""
    pr = require_pr(tenant_id, pr_id)
    changed = [
        a
        for a in pr.attachments
        if a.is_specification and a.status != AttachmentStatus.APPROVED
    ]
    for a in changed:
        _decide(pr, a, AttachmentStatus.APPROVED, approver_id, comment)
    _commit()
    return changed


def _decide(pr, a: Attachment, target: AttachmentStatus, approver_id, comment):
    previous = a.status
    if previous != target:
        check_transition("Attachment", previous, target)
    a.status = target
    a.approver_id = approver_id
    a.decided_at = utcnow()
    a.comment = comment
    ev_dao.record(
        pr.tenant_id, ev_dao.ATTACHMENT, a.id, previous, target, approver_id, comment
    )


# ---------------- helpers ----------------
def _to_status(value: str) -> PRS:
    try:
        return PRS[str(value).strip().upper()]
    except KeyError:
        raise ValidationFailed(f"Unknown requisition status: {value}")


def _apply_fields(pr: PurchaseRequisition, fields: Dict):
    for k in ("description", "justification", "department", "cost_center"):
        if k in fields:
            setattr(pr, k, fields.get(k))
    if fields.get("priority"):
        try:
            pr.priority = Priority[str(fields["priority"]).strip().upper()]
        except KeyError:
            raise ValidationFailed(f"Unknown priority: {fields['priority']}")
    if fields.get("purchase_type"):
        try:
            pr.purchase_type = PurchaseType[str(fields["purchase_type"]).strip().upper()]
        except KeyError:
            raise ValidationFailed(f"Unknown purchase type: {fields['purchase_type']}")
    if "needed_by" in fields:
        try:
            pr.needed_by = parse_date(fields.get("needed_by"))
        except ValueError:
            raise ValidationFailed("needed_by is not a valid date.")
    if "supplier_id" in fields:
        pr.supplier_id = (
            as_id(fields["supplier_id"], "supplier_id") if fields["supplier_id"] else None
        )


def _normalize_lines(lines: List[Dict] | None) -> List[Dict]:
    if not lines:
        raise ValidationFailed("At least one line is required.")
    out: List[Dict] = []
    for idx, ln in enumerate(lines, 1):
        description = str(ln.get("description") or "").strip()
        if not description:
            raise ValidationFailed(f"Line {idx}: description is required.")
        try:
            q = to_qty(ln.get("qty", ln.get("quantity")))
            price = money(ln.get("unit_price", ln.get("price")))
        except ValueError:
            raise ValidationFailed(f"Line {idx}: quantity and unit price must be numbers.")
        if q <= 0:
            raise ValidationFailed(f"Line {idx}: quantity must be > 0.")
        if price < 0:
            raise ValidationFailed(f"Line {idx}: unit price cannot be negative.")
        out.append(
            {
                "description": description,
                "qty": q,
                "unit": (ln.get("unit") or "unidad").strip(),
                "unit_price": price,
                "line_total": money(q * price),
                "specifications": ln.get("specifications"),
            }
        )
    return out


def _non_negative_money(value):
    try:
        amount = money(value)
    except ValueError:
        raise ValidationFailed("estimated_amount must be a number.")
    if amount < 0:
        raise ValidationFailed("estimated_amount cannot be negative.")
    return amount


def _replace_lines(pr: PurchaseRequisition, norm_lines: List[Dict], estimated=None):
    for ln in norm_lines:
        db.session.add(PRLine(pr_id=pr.id, **ln))
    if estimated not in (None, ""):
        pr.estimated_amount = _non_negative_money(estimated)
    else:
        pr.estimated_amount = money(sum((ln["line_total"] for ln in norm_lines), dec(0)))


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
