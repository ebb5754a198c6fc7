from decimal import Decimal

import pytest

from configs import db
from dao import purchase_requisition as pr_dao
from db.models.attachment import AttachmentStatus
from db.models.purchase import POApprovalStatus, POStatus
from db.models.purchase_requisition import PurchaseRequisition
from db.models.purchase_requisition import PurchaseRequisitionStatus as PRS
from dao import status_event as ev_dao
from utils.errors import IllegalTransition, NotFound, PreconditionFailed, ValidationFailed

LINES = [{"description": "Notebook 14in", "qty": 2, "unit_price": 500}]


def _pending(env, **fields):
    fields.setdefault("title", "Notebooks for sales")
    return pr_dao.create_pr(
        env.tenant_id, env.users["requester"], fields, LINES, submit=True
    )


def test_create_computes_estimated_amount_and_number(ctx, env):
    pr = pr_dao.create_pr(env.tenant_id, env.users["requester"], {"title": "Chairs"}, LINES)
    assert pr.status == PRS.DRAFT
    assert pr.estimated_amount == Decimal("1000.00")
    assert pr.number.startswith("REQ-") and pr.number.endswith("-00001")
    assert pr.currency == "ARS"

    second = pr_dao.create_pr(env.tenant_id, env.users["requester"], {"title": "Desks"}, LINES)
    assert second.number.endswith("-00002")


def test_create_requires_title_and_lines(ctx, env):
    with pytest.raises(ValidationFailed):
        pr_dao.create_pr(env.tenant_id, env.users["requester"], {"title": " "}, LINES)
    with pytest.raises(ValidationFailed):
        pr_dao.create_pr(env.tenant_id, env.users["requester"], {"title": "x"}, [])
    with pytest.raises(ValidationFailed):
        pr_dao.create_pr(
            env.tenant_id,
            env.users["requester"],
            {"title": "x"},
            [{"description": "Pens", "qty": 0, "unit_price": 1}],
        )


def test_idempotency_key_returns_the_first_requisition(ctx, env):
    first = pr_dao.create_pr(
        env.tenant_id, env.users["requester"], {"title": "Toner"}, LINES, idempotency_key="k-1"
    )
    again = pr_dao.create_pr(
        env.tenant_id, env.users["requester"], {"title": "Toner"}, LINES, idempotency_key="k-1"
    )
    assert again.id == first.id
    assert PurchaseRequisition.query.filter_by(tenant_id=env.tenant_id).count() == 1


def test_approval_waits_for_attachments_then_generates_the_po(ctx, env):
    pr = _pending(env, supplier_id=env.supplier_id)
    spec = pr_dao.add_attachment(
        env.tenant_id, pr.id, "datasheet.pdf", "application/pdf", 2048, is_specification=True
    )

    with pytest.raises(PreconditionFailed) as exc:
        pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    assert exc.value.code == "pending_attachments"
    assert exc.value.details["attachments"] == [spec.id]

    changed = pr_dao.approve_specifications(env.tenant_id, pr.id, env.users["approver"])
    assert [a.id for a in changed] == [spec.id]
    assert spec.status == AttachmentStatus.APPROVED

    pr = pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"], "ok")
    assert pr.status == PRS.PO_GENERATED
    po = pr.purchase_order
    assert po is not None
    assert po.subtotal == Decimal("1000.00")
    assert po.tax == Decimal("210.00")
    assert po.total == Decimal("1210.00")
    assert po.status == POStatus.PENDIENTE
    assert po.approval_status == POApprovalStatus.PENDIENTE_APROBACION
    assert po.supplier_name == "Proveedor Uno"

    steps = [(e.from_status, e.to_status) for e in pr_dao.pr_history(env.tenant_id, pr.id)]
    assert steps == [
        (None, "DRAFT"),
        ("DRAFT", "PENDING_APPROVAL"),
        ("PENDING_APPROVAL", "APPROVED"),
        ("APPROVED", "PO_GENERATED"),
    ]


def test_rejected_attachment_needs_confirmation(ctx, env):
    pr = _pending(env)
    a = pr_dao.add_attachment(env.tenant_id, pr.id, "quote.xlsx")
    pr_dao.decide_attachment(env.tenant_id, pr.id, a.id, False, env.users["approver"], "blurry")

    with pytest.raises(PreconditionFailed) as exc:
        pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    assert exc.value.code == "rejected_attachments"

    pr = pr_dao.approve_pr(
        env.tenant_id, pr.id, env.users["approver"], confirm_rejected_attachments=True
    )
    # no preferred supplier, so no PO yet
    assert pr.status == PRS.APPROVED
    assert pr.purchase_order is None


def test_suspended_preferred_supplier_does_not_get_a_po(ctx, env):
    from dao import supplier as supplier_dao

    supplier_dao.suspend_supplier(env.tenant_id, env.supplier_id, "audit")
    pr = _pending(env, supplier_id=env.supplier_id)
    pr = pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    assert pr.status == PRS.APPROVED


def test_reject_requires_a_reason(ctx, env):
    pr = _pending(env)
    with pytest.raises(ValidationFailed):
        pr_dao.reject_pr(env.tenant_id, pr.id, env.users["approver"], "  ")
    pr = pr_dao.reject_pr(env.tenant_id, pr.id, env.users["approver"], "over budget")
    assert pr.status == PRS.REJECTED
    assert pr.decision_comment == "over budget"

    with pytest.raises(IllegalTransition):
        pr_dao.cancel_pr(env.tenant_id, pr.id, env.users["requester"])


def test_editing_is_closed_after_approval(ctx, env):
    pr = _pending(env)
    pr = pr_dao.update_pr(
        env.tenant_id, pr.id, {"title": "Notebooks x3"}, [{"description": "NB", "qty": 3, "price": 500}]
    )
    assert pr.estimated_amount == Decimal("1500.00")
    assert len(pr.lines) == 1

    pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    with pytest.raises(PreconditionFailed):
        pr_dao.update_pr(env.tenant_id, pr.id, {"title": "late"})
    with pytest.raises(PreconditionFailed):
        pr_dao.add_attachment(env.tenant_id, pr.id, "late.pdf")


def test_only_drafts_can_be_deleted(ctx, env):
    draft = pr_dao.create_pr(env.tenant_id, env.users["requester"], {"title": "Cables"}, LINES)
    pending = _pending(env)
    with pytest.raises(PreconditionFailed):
        pr_dao.delete_pr(env.tenant_id, pending.id)
    pr_dao.delete_pr(env.tenant_id, draft.id)
    assert db.session.get(PurchaseRequisition, draft.id) is None


def test_other_tenant_cannot_see_the_requisition(ctx, env):
    pr = _pending(env)
    assert pr_dao.get_pr(env.other_tenant_id, pr.id) is None
    with pytest.raises(NotFound):
        pr_dao.require_pr(env.other_tenant_id, pr.id)
    assert ev_dao.history(env.other_tenant_id, ev_dao.REQUISITION, pr.id) == []
