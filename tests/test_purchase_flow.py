from decimal import Decimal

import pytest

from dao import goods_receipt as gr_dao
from dao import purchase as po_dao
from dao import purchase_requisition as pr_dao
from db.models.goods_receipt import GoodsReceipt, ReceptionType
from db.models.purchase import POApprovalStatus, POStatus
from db.models.purchase_requisition import PurchaseRequisitionStatus as PRS
from utils.errors import IllegalTransition, PreconditionFailed, ValidationFailed


@pytest.fixture()
def approved_po(ctx, env):
    """Approved PO for 100 units at 10 each, created from an approved requisition."""
    pr = pr_dao.create_pr(
        env.tenant_id,
        env.users["requester"],
        {"title": "Paper reams"},
        [{"description": "A4 paper ream", "qty": 100, "unit_price": 10, "unit": "ream"}],
        submit=True,
    )
    pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    po = po_dao.create_po(env.tenant_id, env.users["buyer"], pr.id, env.supplier_id)
    return po_dao.approve_po(env.tenant_id, po.id, env.users["approver"], "go")


def _receive(env, po, amount, **kw):
    item = po.items[0]
    return gr_dao.record_reception(
        env.tenant_id,
        po.id,
        [{"item_id": item.id, "received_qty": amount}],
        env.users["warehouse"],
        **kw,
    )


def test_create_po_from_requisition_lines(approved_po):
    po = approved_po
    assert po.po_no.startswith("OC-")
    assert po.subtotal == Decimal("1000.00")
    assert po.total == Decimal("1210.00")
    assert po.status == POStatus.APROBADA
    assert po.approval_status == POApprovalStatus.APROBADA
    assert po.pr.status == PRS.PO_GENERATED
    assert po.items[0].pr_line_id == po.pr.lines[0].id


def test_a_requisition_gets_only_one_po(approved_po, env):
    with pytest.raises(PreconditionFailed):
        po_dao.create_po(env.tenant_id, env.users["buyer"], approved_po.pr_id, env.supplier_id)


def test_po_needs_an_approved_requisition(ctx, env):
    pr = pr_dao.create_pr(
        env.tenant_id, env.users["requester"], {"title": "x"}, [{"description": "y", "qty": 1, "price": 1}]
    )
    with pytest.raises(PreconditionFailed):
        po_dao.create_po(env.tenant_id, env.users["buyer"], pr.id, env.supplier_id)


def test_partial_then_total_reception(approved_po, env):
    po = approved_po
    first = _receive(env, po, 60)
    assert first.reception_type == ReceptionType.PARCIAL
    assert first.number.startswith("REC-")
    assert po.status == POStatus.PARCIALMENTE_RECIBIDA
    assert first.lines[0].pending_qty == Decimal("40.000")

    remaining = po_dao.po_lines_with_remaining(env.tenant_id, po.id)
    assert remaining[0]["received"] == 60
    assert remaining[0]["remaining"] == 40

    second = _receive(env, po, 40)
    assert second.reception_type == ReceptionType.TOTAL
    assert po.status == POStatus.FINALIZADA
    assert po.pr.status == PRS.RECEIVED

    with pytest.raises(PreconditionFailed):
        _receive(env, po, 1)


def test_over_receipt_is_rejected(approved_po, env):
    po = approved_po
    _receive(env, po, 60)
    with pytest.raises(PreconditionFailed) as exc:
        _receive(env, po, 50)
    assert exc.value.code == "over_receipt"
    assert exc.value.details["remaining"] == {po.items[0].id: 40.0}
    assert po.items[0].received_qty == Decimal("60.000")


def test_total_requested_on_incomplete_delivery(approved_po, env):
    with pytest.raises(PreconditionFailed) as exc:
        _receive(env, approved_po, 30, reception_type="TOTAL")
    assert exc.value.code == "incomplete_delivery"
    assert GoodsReceipt.query.count() == 0


def test_partial_requested_on_completing_delivery_is_total(approved_po, env):
    gr = _receive(env, approved_po, 100, reception_type="PARCIAL")
    assert gr.reception_type == ReceptionType.TOTAL
    assert approved_po.status == POStatus.FINALIZADA


def test_reception_line_validation(approved_po, env):
    with pytest.raises(ValidationFailed):
        gr_dao.record_reception(env.tenant_id, approved_po.id, [], env.users["warehouse"])
    with pytest.raises(ValidationFailed):
        gr_dao.record_reception(
            env.tenant_id,
            approved_po.id,
            [{"item_id": 99999, "received_qty": 1}],
            env.users["warehouse"],
        )
    with pytest.raises(ValidationFailed):
        _receive(env, approved_po, 0)


def test_unapproved_po_does_not_accept_receptions(ctx, env):
    pr = pr_dao.create_pr(
        env.tenant_id,
        env.users["requester"],
        {"title": "Ink"},
        [{"description": "Ink", "qty": 5, "price": 3}],
        submit=True,
    )
    pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    po = po_dao.create_po(env.tenant_id, env.users["buyer"], pr.id, env.supplier_id)
    with pytest.raises(PreconditionFailed):
        _receive(env, po, 1)
    with pytest.raises(PreconditionFailed):
        po_dao.update_po_status(env.tenant_id, po.id, "EN_PROCESO", env.users["buyer"])


def test_annulling_the_only_reception_reopens_the_po(approved_po, env):
    po = approved_po
    gr = _receive(env, po, 60)
    gr_dao.annul_reception(env.tenant_id, gr.id, env.users["warehouse"])
    assert po.status == POStatus.APROBADA
    assert po.items[0].received_qty == Decimal("0.000")
    assert gr_dao.list_grs(env.tenant_id, po.id) == []


def test_finalized_receptions_cannot_be_annulled(approved_po, env):
    gr = _receive(env, approved_po, 100)
    with pytest.raises(PreconditionFailed):
        gr_dao.annul_reception(env.tenant_id, gr.id)


def test_manual_status_rules(approved_po, env):
    po = approved_po
    with pytest.raises(PreconditionFailed):
        po_dao.update_po_status(env.tenant_id, po.id, "FINALIZADA", env.users["buyer"])
    with pytest.raises(PreconditionFailed):
        po_dao.update_po_status(env.tenant_id, po.id, "PARCIALMENTE_RECIBIDA", env.users["buyer"])
    po = po_dao.update_po_status(env.tenant_id, po.id, "EN_PROCESO", env.users["buyer"])
    assert po.status == POStatus.EN_PROCESO
    with pytest.raises(IllegalTransition):
        po_dao.update_po_status(env.tenant_id, po.id, "PENDIENTE", env.users["buyer"])
    with pytest.raises(ValidationFailed):
        po_dao.update_po_status(env.tenant_id, po.id, "SHIPPED", env.users["buyer"])


def test_rejected_po_cannot_be_approved(ctx, env):
    pr = pr_dao.create_pr(
        env.tenant_id,
        env.users["requester"],
        {"title": "Mugs"},
        [{"description": "Mug", "qty": 10, "price": 4}],
        submit=True,
    )
    pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    po = po_dao.create_po(env.tenant_id, env.users["buyer"], pr.id, env.supplier_id, tax_rate="0.105")
    assert po.tax == Decimal("4.20")
    with pytest.raises(ValidationFailed):
        po_dao.reject_po(env.tenant_id, po.id, env.users["approver"], "")
    po_dao.reject_po(env.tenant_id, po.id, env.users["approver"], "wrong supplier")
    with pytest.raises(IllegalTransition):
        po_dao.approve_po(env.tenant_id, po.id, env.users["approver"])


def test_deleting_a_po_returns_the_requisition_to_approved(approved_po, env):
    pr = approved_po.pr
    po_dao.delete_po(env.tenant_id, approved_po.id, env.users["buyer"])
    assert pr.status == PRS.APPROVED
    assert pr.purchase_order is None


def test_po_with_receptions_cannot_be_deleted(approved_po, env):
    _receive(env, approved_po, 10)
    with pytest.raises(PreconditionFailed):
        po_dao.delete_po(env.tenant_id, approved_po.id)


def test_history_merges_status_and_approval_events(approved_po, env):
    entries = [(e.entity_type, e.to_status) for e in po_dao.history(env.tenant_id, approved_po.id)]
    assert entries == [
        ("PURCHASE_ORDER", "PENDIENTE"),
        ("PO_APPROVAL", "APROBADA"),
        ("PURCHASE_ORDER", "APROBADA"),
    ]


def test_annulling_the_last_reception_of_a_delivered_po(approved_po, env):
    po = approved_po
    gr = _receive(env, po, 60)
    po_dao.update_po_status(env.tenant_id, po.id, "ENTREGADA", env.users["buyer"])
    gr_dao.annul_reception(env.tenant_id, gr.id, env.users["warehouse"])
    assert po.status == POStatus.APROBADA
    assert not po_dao.any_received(po)


def test_deleted_po_frees_its_idempotency_key(ctx, env):
    pr = pr_dao.create_pr(
        env.tenant_id,
        env.users["requester"],
        {"title": "Chairs"},
        [{"description": "Chair", "qty": 4, "price": 50}],
        submit=True,
    )
    pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    first = po_dao.create_po(
        env.tenant_id, env.users["buyer"], pr.id, env.supplier_id, idempotency_key="oc-chairs"
    )
    first_id = first.id
    po_dao.delete_po(env.tenant_id, first_id, env.users["buyer"])

    again = po_dao.create_po(
        env.tenant_id, env.users["buyer"], pr.id, env.supplier_id, idempotency_key="oc-chairs"
    )
    assert again.pr_id == pr.id
    assert po_dao.get_po(env.tenant_id, first_id) is None
    assert po_dao.create_po(
        env.tenant_id, env.users["buyer"], pr.id, env.supplier_id, idempotency_key="oc-chairs"
    ).id == again.id
