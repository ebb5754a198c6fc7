# dao/circuit.py
"""Traceability of one purchase: requisition -> purchase order -> receptions."""
from typing import Dict, List, Optional
from db.models.goods_receipt import GoodsReceipt
from db.models.purchase import PurchaseOrder
from db.models.purchase_requisition import PurchaseRequisition
from db.models.rfq import RFQ
from utils.errors import NotFound, ValidationFailed
from utils.parsing import as_id


class _Indexes:
    """Lookups built at most once per build_circuit call."""

    def __init__(self, tenant_id: int):
        self.tenant_id = int(tenant_id)
        self._po_by_pr = None
        self._pr_by_rfq = None
        self._receptions_by_po = None

    def po_by_pr(self) -> Dict[int, PurchaseOrder]:
        if self._po_by_pr is None:
            self._po_by_pr = {}
            for po in PurchaseOrder.query.filter_by(tenant_id=self.tenant_id):
                if po.pr_id is not None:
                    self._po_by_pr.setdefault(po.pr_id, po)
                elif po.rfq is not None and po.rfq.pr_id is not None:
                    self._po_by_pr.setdefault(po.rfq.pr_id, po)
        return self._po_by_pr

    def pr_by_rfq(self) -> Dict[int, int]:
        if self._pr_by_rfq is None:
            rows = RFQ.query.filter(
                RFQ.tenant_id == self.tenant_id, RFQ.pr_id.isnot(None)
            ).with_entities(RFQ.id, RFQ.pr_id)
            self._pr_by_rfq = {rfq_id: pr_id for rfq_id, pr_id in rows}
        return self._pr_by_rfq

    def receptions_by_po(self) -> Dict[int, List[GoodsReceipt]]:
        if self._receptions_by_po is None:
            self._receptions_by_po = {}
            q = GoodsReceipt.query.filter_by(tenant_id=self.tenant_id).order_by(
                GoodsReceipt.received_at.asc(), GoodsReceipt.id.asc()
            )
            for gr in q:
                if gr.po_id is not None:
                    self._receptions_by_po.setdefault(gr.po_id, []).append(gr)
        return self._receptions_by_po


def _pr_of_po(po: PurchaseOrder, idx: _Indexes) -> Optional[PurchaseRequisition]:
    if po.pr is not None:
        return po.pr
    if po.rfq_id is None:
        return None
    pr_id = idx.pr_by_rfq().get(po.rfq_id)
    if pr_id is None:
        return None
    return PurchaseRequisition.query.filter_by(tenant_id=idx.tenant_id, id=pr_id).first()


def _po_of_pr(pr: PurchaseRequisition, idx: _Indexes) -> Optional[PurchaseOrder]:
    return pr.purchase_order or idx.po_by_pr().get(pr.id)


def build_circuit(
    tenant_id: int,
    requisition_id: int | None = None,
    po_id: int | None = None,
    reception_id: int | None = None,
) -> Dict:
    """Resolve the circuit from any one of its documents.

    Returns {requisition, purchase_order, reception, receptions}; `reception`
    is the latest one. Links that point nowhere come back as None.
    """
    given = [x for x in (requisition_id, po_id, reception_id) if x is not None]
    if len(given) != 1:
        raise ValidationFailed("Give exactly one of requisitionId, poId, receptionId.")
    idx = _Indexes(tenant_id)
    pr = po = rec = None
    receptions: List[GoodsReceipt] = []

    if requisition_id is not None:
        pr = PurchaseRequisition.query.filter_by(
            tenant_id=idx.tenant_id, id=as_id(requisition_id, "requisitionId")
        ).first()
        if pr is None:
            raise NotFound(f"Purchase requisition #{requisition_id} not found.")
        po = _po_of_pr(pr, idx)
    elif po_id is not None:
        po = PurchaseOrder.query.filter_by(
            tenant_id=idx.tenant_id, id=as_id(po_id, "poId")
        ).first()
        if po is None:
            raise NotFound(f"Purchase order #{po_id} not found.")
        pr = _pr_of_po(po, idx)
    else:
        rec = GoodsReceipt.query.filter_by(
            tenant_id=idx.tenant_id, id=as_id(reception_id, "receptionId")
        ).first()
        if rec is None:
            raise NotFound(f"Reception #{reception_id} not found.")
        po = rec.po
        pr = _pr_of_po(po, idx) if po is not None else None

    if po is not None:
        receptions = idx.receptions_by_po().get(po.id, [])
    elif rec is not None:
        receptions = [rec]
    if rec is None and receptions:
        rec = receptions[-1]
    return {
        "requisition": pr,
        "purchase_order": po,
        "reception": rec,
        "receptions": receptions,
    }
