import pytest

from configs import db
from dao import goods_receipt as gr_dao
from dao import purchase as po_dao
from dao import purchase_requisition as pr_dao
from dao.circuit import build_circuit
from db.models.goods_receipt import GoodsReceipt, ReceptionType
from utils.dates import utcnow
from utils.errors import NotFound, ValidationFailed


@pytest.fixture()
def chain(ctx, env):
    pr = pr_dao.create_pr(
        env.tenant_id,
        env.users["requester"],
        {"title": "Gloves", "supplier_id": env.supplier_id},
        [{"description": "Work gloves", "qty": 20, "unit_price": 5}],
        submit=True,
    )
    pr = pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    po = po_dao.approve_po(env.tenant_id, pr.purchase_order.id, env.users["approver"])
    item = po.items[0]
    first = gr_dao.record_reception(
        env.tenant_id, po.id, [{"item_id": item.id, "qty": 5}], env.users["warehouse"]
    )
    second = gr_dao.record_reception(
        env.tenant_id, po.id, [{"item_id": item.id, "qty": 5}], env.users["warehouse"]
    )
    return pr, po, first, second


def test_from_requisition(chain, env):
    pr, po, first, second = chain
    c = build_circuit(env.tenant_id, requisition_id=pr.id)
    assert c["requisition"].id == pr.id
    assert c["purchase_order"].id == po.id
    assert [r.id for r in c["receptions"]] == [first.id, second.id]
    assert c["reception"].id == second.id


def test_from_reception_walks_back(chain, env):
    pr, po, first, _ = chain
    c = build_circuit(env.tenant_id, reception_id=first.id)
    assert c["reception"].id == first.id
    assert c["purchase_order"].id == po.id
    assert c["requisition"].id == pr.id


def test_from_po_without_receptions(ctx, env):
    pr = pr_dao.create_pr(
        env.tenant_id,
        env.users["requester"],
        {"title": "Tape", "supplier_id": env.supplier_id},
        [{"description": "Tape", "qty": 1, "unit_price": 2}],
        submit=True,
    )
    pr = pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    c = build_circuit(env.tenant_id, po_id=pr.purchase_order.id)
    assert c["requisition"].id == pr.id
    assert c["reception"] is None
    assert c["receptions"] == []


def test_dangling_reception(ctx, env):
    rec = GoodsReceipt(
        tenant_id=env.tenant_id,
        number="REC-2024-00099",
        po_id=None,
        reception_type=ReceptionType.PARCIAL,
        received_at=utcnow(),
    )
    db.session.add(rec)
    db.session.commit()

    c = build_circuit(env.tenant_id, reception_id=rec.id)
    assert c["requisition"] is None
    assert c["purchase_order"] is None
    assert c["reception"].id == rec.id
    assert c["receptions"] == [rec]


def test_requisition_without_po(ctx, env):
    pr = pr_dao.create_pr(
        env.tenant_id, env.users["requester"], {"title": "Solo"}, [{"description": "x", "qty": 1, "price": 1}]
    )
    c = build_circuit(env.tenant_id, requisition_id=pr.id)
    assert c["requisition"].id == pr.id
    assert c["purchase_order"] is None
    assert c["reception"] is None


def test_exactly_one_entry_point(ctx, env):
    with pytest.raises(ValidationFailed):
        build_circuit(env.tenant_id)
    with pytest.raises(ValidationFailed):
        build_circuit(env.tenant_id, requisition_id=1, po_id=1)
    with pytest.raises(NotFound):
        build_circuit(env.tenant_id, po_id=12345)
