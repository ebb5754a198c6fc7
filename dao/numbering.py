# dao/numbering.py
from configs import db
from utils.dates import utcnow

REQUISITION = "REQ"
PURCHASE_ORDER = "OC"
RECEPTION = "REC"
RFQ = "RFQ"


def next_number(column, tenant_column, tenant_id: int, prefix: str) -> str:
    """Next `<prefix>-<year>-<5 digits>` for the tenant, e.g. OC-2025-00007.

    Sequences restart each year; gaps left by deleted drafts are not reused.
    """
    year = utcnow().year
    head = f"{prefix}-{year}-"
    rows = (
        db.session.query(column)
        .filter(tenant_column == int(tenant_id), column.like(f"{head}%"))
        .all()
    )
    last = 0
    for (value,) in rows:
        try:
            last = max(last, int(str(value)[len(head):]))
        except ValueError:
            continue
    return f"{head}{last + 1:05d}"


def quotation_number(rfq) -> str:
    return f"{rfq.number}-COT-{len(rfq.vqs) + 1:03d}"
