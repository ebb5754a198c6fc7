# dao/comparison.py
"""Side-by-side view of the quotations received for an RFQ."""
from typing import Dict, List
from db.models.vendor_quotation import VendorQuotationStatus
from dao import rfq as rfq_dao

COMPARABLE = rfq_dao.LIVE_QUOTATIONS + (VendorQuotationStatus.AWARDED,)


def _rank(entries: List[Dict], key: str) -> Dict[int, int]:
    """1-based rank by `key` ascending; missing values go last, ties by quotation id."""
    ordered = sorted(
        entries, key=lambda e: (e[key] is None, e[key] if e[key] is not None else 0, e["vq_id"])
    )
    return {e["vq_id"]: pos for pos, e in enumerate(ordered, 1)}


def build_comparison(tenant_id: int, rfq_id: int) -> Dict:
    r = rfq_dao.require_rfq(tenant_id, rfq_id)
    quotes = sorted(
        (vq for vq in r.vqs if vq.status in COMPARABLE), key=lambda vq: vq.id
    )

    suppliers = [
        {
            "vq_id": vq.id,
            "number": vq.number,
            "supplier_id": vq.supplier_id,
            "supplier_name": vq.supplier.name if vq.supplier else None,
            "status": vq.status.value,
            "total": float(vq.total_amount or 0),
            "delivery_days": vq.delivery_days,
            "payment_terms": vq.payment_terms,
            "lines_quoted": len(vq.lines),
        }
        for vq in quotes
    ]
    by_total = _rank(suppliers, "total")
    by_delivery = _rank(suppliers, "delivery_days")
    for s in suppliers:
        s["rank_total"] = by_total[s["vq_id"]]
        s["rank_delivery"] = by_delivery[s["vq_id"]]

    lines = []
    for rl in r.lines:
        offers = []
        for vq in quotes:
            for ln in vq.lines:
                if ln.rfq_line_id == rl.id:
                    offers.append(
                        {
                            "vq_id": vq.id,
                            "supplier_id": vq.supplier_id,
                            "price": float(ln.price),
                            "qty": float(ln.qty),
                            "line_total": float(ln.line_total),
                            "brand": ln.brand,
                            "model": ln.model,
                        }
                    )
        best = min(offers, key=lambda o: (o["price"], o["vq_id"])) if offers else None
        lines.append(
            {
                "rfq_line_id": rl.id,
                "description": rl.description,
                "qty": float(rl.qty),
                "unit": rl.unit,
                "offers": offers,
                "best": best,
            }
        )

    best_total = min(suppliers, key=lambda s: (s["total"], s["vq_id"])) if suppliers else None
    with_days = [s for s in suppliers if s["delivery_days"] is not None]
    fastest = min(with_days, key=lambda s: (s["delivery_days"], s["vq_id"])) if with_days else None
    return {
        "rfq_id": r.id,
        "number": r.number,
        "status": r.status.value,
        "suppliers": suppliers,
        "lines": lines,
        "best_total": best_total,
        "fastest_delivery": fastest,
    }
