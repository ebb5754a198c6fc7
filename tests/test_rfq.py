from datetime import timedelta
from decimal import Decimal

import pytest

from dao import purchase_requisition as pr_dao
from dao import rfq as rfq_dao
from dao import vendor_quotation as vq_dao
from dao.comparison import build_comparison
from db.models.purchase_requisition import PurchaseRequisitionStatus as PRS
from db.models.rfq import InvitationStatus, RFQStatus
from db.models.vendor_quotation import VendorQuotationStatus as VQS
from utils.dates import utcnow
from utils.errors import IllegalTransition, NotFound, PreconditionFailed, ValidationFailed


@pytest.fixture()
def published(ctx, env, future):
    r = rfq_dao.create_rfq(
        env.tenant_id,
        env.users["buyer"],
        "Office chairs",
        future,
        lines=[{"description": "Ergonomic chair", "qty": 10, "unit": "unidad"}],
        supplier_ids=[env.supplier_id, env.supplier2_id],
    )
    return rfq_dao.publish_rfq(env.tenant_id, r.id, env.users["buyer"])


def _quote(env, r, supplier_id, price, days):
    return vq_dao.submit_quotation(
        env.tenant_id,
        r.id,
        supplier_id,
        [{"rfq_line_id": r.lines[0].id, "price": price}],
        delivery_days=days,
    )


def test_publish_invites_every_supplier(published):
    assert published.status == RFQStatus.PUBLISHED
    assert published.number.startswith("RFQ-")
    assert {inv.status for inv in published.invitations} == {InvitationStatus.INVITED}


def test_publish_needs_a_future_deadline_and_suppliers(ctx, env):
    past = (utcnow() - timedelta(days=1)).isoformat()
    r = rfq_dao.create_rfq(
        env.tenant_id,
        env.users["buyer"],
        "Late",
        past,
        lines=[{"description": "x", "qty": 1}],
        supplier_ids=[env.supplier_id],
    )
    with pytest.raises(PreconditionFailed):
        rfq_dao.publish_rfq(env.tenant_id, r.id)

    lonely = rfq_dao.create_rfq(
        env.tenant_id,
        env.users["buyer"],
        "Nobody",
        (utcnow() + timedelta(days=2)).isoformat(),
        lines=[{"description": "x", "qty": 1}],
    )
    with pytest.raises(PreconditionFailed):
        rfq_dao.publish_rfq(env.tenant_id, lonely.id)


def test_rfq_from_requisition_copies_lines(ctx, env, future):
    pr = pr_dao.create_pr(
        env.tenant_id,
        env.users["requester"],
        {"title": "Monitors"},
        [{"description": "27in monitor", "qty": 4, "unit_price": 300}],
        submit=True,
    )
    with pytest.raises(PreconditionFailed):
        rfq_dao.create_rfq(env.tenant_id, env.users["buyer"], "Monitors", future, pr_id=pr.id)
    pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    r = rfq_dao.create_rfq(env.tenant_id, env.users["buyer"], "Monitors", future, pr_id=pr.id)
    assert [(ln.description, ln.qty, ln.pr_line_id) for ln in r.lines] == [
        ("27in monitor", Decimal("4.000"), pr.lines[0].id)
    ]


def test_first_quotation_moves_rfq_to_in_quotation(published, env):
    vq = _quote(env, published, env.supplier_id, 100, 10)
    assert vq.status == VQS.SUBMITTED
    assert vq.number == f"{published.number}-COT-001"
    assert vq.total_amount == Decimal("1000.00")
    assert published.status == RFQStatus.IN_QUOTATION
    inv = rfq_dao.require_invitation(published, env.supplier_id)
    assert inv.status == InvitationStatus.QUOTED


def test_resubmission_replaces_lines(published, env):
    first = _quote(env, published, env.supplier_id, 100, 10)
    again = _quote(env, published, env.supplier_id, 90, 8)
    assert again.id == first.id
    assert again.total_amount == Decimal("900.00")
    assert len(again.lines) == 1


def test_uninvited_supplier_cannot_quote(ctx, env, future):
    r = rfq_dao.create_rfq(
        env.tenant_id,
        env.users["buyer"],
        "Desks",
        future,
        lines=[{"description": "Desk", "qty": 2}],
        supplier_ids=[env.supplier_id],
    )
    rfq_dao.publish_rfq(env.tenant_id, r.id)
    with pytest.raises(NotFound):
        _quote(env, r, env.supplier2_id, 50, 3)


def test_quote_lines_must_belong_to_the_rfq(published, env):
    with pytest.raises(ValidationFailed):
        vq_dao.submit_quotation(
            env.tenant_id, published.id, env.supplier_id, [{"rfq_line_id": 424242, "price": 1}]
        )


def test_comparison_ranks_price_and_delivery(published, env):
    cheap = _quote(env, published, env.supplier_id, 100, 10)
    fast = _quote(env, published, env.supplier2_id, 120, 5)

    result = build_comparison(env.tenant_id, published.id)
    assert result["best_total"]["vq_id"] == cheap.id
    assert result["best_total"]["total"] == 1000.0
    assert result["fastest_delivery"]["vq_id"] == fast.id
    ranks = {s["vq_id"]: (s["rank_total"], s["rank_delivery"]) for s in result["suppliers"]}
    assert ranks == {cheap.id: (1, 2), fast.id: (2, 1)}
    line = result["lines"][0]
    assert [o["price"] for o in line["offers"]] == [100.0, 120.0]
    assert line["best"]["supplier_id"] == env.supplier_id


def test_award_rejects_the_rest_and_is_idempotent(published, env):
    winner = _quote(env, published, env.supplier_id, 100, 10)
    loser = _quote(env, published, env.supplier2_id, 120, 5)
    r = rfq_dao.close_rfq(env.tenant_id, published.id)
    assert r.status == RFQStatus.EVALUATION

    r = vq_dao.award_rfq(env.tenant_id, r.id, winner.id, env.users["buyer"])
    assert r.status == RFQStatus.AWARDED
    assert r.awarded_supplier_id == env.supplier_id
    assert winner.status == VQS.AWARDED
    assert loser.status == VQS.REJECTED
    statuses = {inv.supplier_id: inv.status for inv in r.invitations}
    assert statuses == {
        env.supplier_id: InvitationStatus.AWARDED,
        env.supplier2_id: InvitationStatus.NOT_AWARDED,
    }

    again = vq_dao.award_rfq(env.tenant_id, r.id, winner.id, env.users["buyer"])
    assert again.status == RFQStatus.AWARDED
    with pytest.raises(PreconditionFailed) as exc:
        vq_dao.award_rfq(env.tenant_id, r.id, loser.id, env.users["buyer"])
    assert exc.value.code == "already_awarded"


def test_award_needs_evaluation(published, env):
    vq = _quote(env, published, env.supplier_id, 100, 10)
    with pytest.raises(IllegalTransition):
        vq_dao.award_rfq(env.tenant_id, published.id, vq.id)


def test_generate_po_from_awarded_rfq(published, env):
    vq = _quote(env, published, env.supplier_id, 100, 10)
    rfq_dao.close_rfq(env.tenant_id, published.id)
    vq_dao.award_rfq(env.tenant_id, published.id, vq.id)

    po = vq_dao.generate_po_from_rfq(env.tenant_id, published.id, env.users["buyer"])
    assert po.rfq_id == published.id
    assert po.vq_id == vq.id
    assert po.subtotal == Decimal("1000.00")
    assert po.total == Decimal("1210.00")
    assert po.items[0].description == "Ergonomic chair"

    same = vq_dao.generate_po_from_rfq(env.tenant_id, published.id, env.users["buyer"])
    assert same.id == po.id


def test_po_from_rfq_links_the_requisition(ctx, env, future):
    pr = pr_dao.create_pr(
        env.tenant_id,
        env.users["requester"],
        {"title": "Printers"},
        [{"description": "Laser printer", "qty": 2, "unit_price": 800}],
        submit=True,
    )
    pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    r = rfq_dao.create_rfq(
        env.tenant_id, env.users["buyer"], "Printers", future, pr_id=pr.id,
        supplier_ids=[env.supplier_id],
    )
    rfq_dao.publish_rfq(env.tenant_id, r.id)
    vq = _quote(env, r, env.supplier_id, 750, 15)
    rfq_dao.close_rfq(env.tenant_id, r.id)
    vq_dao.award_rfq(env.tenant_id, r.id, vq.id)
    po = vq_dao.generate_po_from_rfq(env.tenant_id, r.id)
    assert po.pr_id == pr.id
    assert pr.status == PRS.PO_GENERATED


def test_close_without_quotations_and_decline(published, env):
    inv = rfq_dao.decline_invitation(
        env.tenant_id, published.id, env.supplier2_id, "no stock"
    )
    assert inv.status == InvitationStatus.DECLINED
    r = rfq_dao.close_rfq(env.tenant_id, published.id)
    assert r.status == RFQStatus.CLOSED


def test_expire_overdue(published, env):
    later = utcnow() + timedelta(days=30)
    expired = rfq_dao.expire_overdue_rfqs(env.tenant_id, now=later)
    assert [r.id for r in expired] == [published.id]
    assert published.status == RFQStatus.EXPIRED
    assert rfq_dao.expire_overdue_rfqs(env.tenant_id, now=later) == []


def test_drafts_only_edits(published, env):
    with pytest.raises(PreconditionFailed):
        rfq_dao.update_rfq(env.tenant_id, published.id, {"title": "new"})
    with pytest.raises(PreconditionFailed):
        rfq_dao.delete_rfq(env.tenant_id, published.id)


def test_draft_rfq_is_invisible_to_invited_suppliers(ctx, env, future):
    r = rfq_dao.create_rfq(
        env.tenant_id,
        env.users["buyer"],
        "Secret budget",
        future,
        lines=[{"description": "Desk", "qty": 2}],
        supplier_ids=[env.supplier_id],
        budget=99999,
    )
    with pytest.raises(NotFound):
        rfq_dao.mark_viewed(env.tenant_id, r.id, env.supplier_id)
    assert r.invitations[0].status == InvitationStatus.PENDING

    rfq_dao.publish_rfq(env.tenant_id, r.id, env.users["buyer"])
    inv = rfq_dao.mark_viewed(env.tenant_id, r.id, env.supplier_id)
    assert inv.status == InvitationStatus.VIEWED


def test_rfq_stats_count_by_status(published, env):
    soon = (utcnow() + timedelta(days=2)).isoformat()
    draft = rfq_dao.create_rfq(
        env.tenant_id, env.users["buyer"], "Draft", soon, lines=[{"description": "x", "qty": 1}]
    )
    urgent = rfq_dao.create_rfq(
        env.tenant_id,
        env.users["buyer"],
        "Urgent",
        soon,
        lines=[{"description": "x", "qty": 1}],
        supplier_ids=[env.supplier_id],
    )
    rfq_dao.publish_rfq(env.tenant_id, urgent.id)
    rfq_dao.cancel_rfq(env.tenant_id, draft.id, reason="duplicate")

    stats = rfq_dao.rfq_stats(env.tenant_id)
    assert stats["total"] == 3
    assert stats["by_status"]["PUBLISHED"] == 2
    assert stats["by_status"]["CANCELLED"] == 1
    assert stats["by_status"]["AWARDED"] == 0
    assert stats["active"] == 2
    # only the published one due in two days
    assert stats["expiring_soon"] == 1
    assert rfq_dao.rfq_stats(env.other_tenant_id)["total"] == 0
