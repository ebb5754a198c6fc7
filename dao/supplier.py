from typing import Optional, List
from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from configs import db
from db.models.supplier import Supplier, SupplierDocument, SupplierStatus
from dao import status_event as ev_dao
from utils.dates import utcnow
from utils.errors import NotFound, PreconditionFailed, ValidationFailed
from utils.parsing import as_id, as_count, as_date
from utils.transitions import check_transition

COMPANY_REQUIRED = ("legal_name", "tax_id", "address")
BANK_REQUIRED = ("bank_name", "account_holder", "cbu")
EDITABLE_FIELDS = ("name", "email", "phone", "address")


def list_suppliers(tenant_id: int, status: str | None = None) -> List[Supplier]:
    q = Supplier.query.filter_by(tenant_id=int(tenant_id))
    if status:
        q = q.filter(Supplier.status == _to_status(status))
    return q.order_by(Supplier.name.asc()).all()


def get_supplier(tenant_id: int, supplier_id: int) -> Optional[Supplier]:
    return Supplier.query.filter_by(
        tenant_id=int(tenant_id), id=as_id(supplier_id, "supplier_id")
    ).first()


def require_supplier(tenant_id: int, supplier_id) -> Supplier:
    if not supplier_id:
        raise ValidationFailed("Supplier is required.")
    s = get_supplier(tenant_id, supplier_id)
    if not s:
        raise NotFound(f"Supplier #{supplier_id} not found.")
    return s


def require_active_supplier(tenant_id: int, supplier_id) -> Supplier:
    s = require_supplier(tenant_id, supplier_id)
    if s.status != SupplierStatus.ACTIVE:
        raise PreconditionFailed(
            f"Supplier {s.name} is not active ({s.status.value}).",
            supplier_id=s.id,
        )
    return s


def create_supplier(
    tenant_id: int,
    name: str,
    tax_id: str,
    code: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    address: str | None = None,
    actor_id: int | None = None,
) -> Supplier:
    name = (name or "").strip()
    tax_id = (tax_id or "").strip()
    if not name or not tax_id:
        raise ValidationFailed("Supplier name and tax id are required.")
    code = (code or "").strip() or tax_id
    dup = Supplier.query.filter(
        Supplier.tenant_id == int(tenant_id),
        or_(Supplier.code == code, Supplier.tax_id == tax_id),
    ).first()
    if dup:
        raise PreconditionFailed("A supplier with that code or tax id already exists.")

    s = Supplier(
        tenant_id=int(tenant_id),
        code=code,
        name=name,
        tax_id=tax_id,
        email=email,
        phone=phone,
        address=address,
        status=SupplierStatus.INVITED,
    )
    db.session.add(s)
    db.session.flush()
    ev_dao.record(tenant_id, ev_dao.SUPPLIER, s.id, None, s.status, actor_id)
    _commit()
    current_app.logger.info("supplier %s created (tenant %s)", s.code, tenant_id)
    return s


def update_supplier(tenant_id: int, supplier_id: int, **fields) -> Supplier:
    s = require_supplier(tenant_id, supplier_id)
    for k, v in fields.items():
        if k in EDITABLE_FIELDS and v is not None:
            setattr(s, k, v)
    _commit()
    return s


def start_onboarding(tenant_id: int, supplier_id: int, actor_id=None) -> Supplier:
    return _move(tenant_id, supplier_id, SupplierStatus.PENDING_COMPLETION, actor_id)


def update_company_data(tenant_id: int, supplier_id: int, data: dict, actor_id=None):
    s = require_supplier(tenant_id, supplier_id)
    _ensure_editable(s)
    s.company_data = dict(data or {})
    s.company_data_complete = _complete(s.company_data, COMPANY_REQUIRED)
    if s.company_data.get("tax_id"):
        s.tax_id = str(s.company_data["tax_id"]).strip()
    _commit()
    return s


def update_bank_data(tenant_id: int, supplier_id: int, data: dict, actor_id=None):
    s = require_supplier(tenant_id, supplier_id)
    _ensure_editable(s)
    s.bank_data = dict(data or {})
    s.bank_data_complete = _complete(s.bank_data, BANK_REQUIRED)
    _commit()
    return s


def submit_supplier(tenant_id: int, supplier_id: int, actor_id=None) -> Supplier:
    s = require_supplier(tenant_id, supplier_id)
    missing = []
    if not s.company_data_complete:
        missing.append("company_data")
    if not s.bank_data_complete:
        missing.append("bank_data")
    if missing:
        raise PreconditionFailed("Onboarding data incomplete.", missing=missing)
    return _move(tenant_id, supplier_id, SupplierStatus.PENDING_APPROVAL, actor_id)


def approve_supplier(tenant_id: int, supplier_id: int, actor_id=None, comment=None):
    return _move(tenant_id, supplier_id, SupplierStatus.ACTIVE, actor_id, comment)


def reject_supplier(tenant_id: int, supplier_id: int, reason: str, actor_id=None):
    if not (reason or "").strip():
        raise ValidationFailed("A rejection reason is required.")
    return _move(tenant_id, supplier_id, SupplierStatus.REJECTED, actor_id, reason)


def suspend_supplier(tenant_id: int, supplier_id: int, reason=None, actor_id=None):
    return _move(tenant_id, supplier_id, SupplierStatus.SUSPENDED, actor_id, reason)


def reactivate_supplier(tenant_id: int, supplier_id: int, actor_id=None):
    s = require_supplier(tenant_id, supplier_id)
    if s.status != SupplierStatus.SUSPENDED:
        # ACTIVE is also reached from PENDING_APPROVAL, which is approve_supplier
        raise PreconditionFailed("Only a suspended supplier can be reactivated.")
    return _move(tenant_id, supplier_id, SupplierStatus.ACTIVE, actor_id)


def add_supplier_document(
    tenant_id: int,
    supplier_id: int,
    doc_type: str,
    file_name: str,
    mime_type: str | None = None,
    size: int | None = None,
    expires_on=None,
) -> SupplierDocument:
    s = require_supplier(tenant_id, supplier_id)
    if not (doc_type or "").strip() or not (file_name or "").strip():
        raise ValidationFailed("Document type and file name are required.")
    expires = as_date(expires_on, "expires_on")
    d = SupplierDocument(
        supplier_id=s.id,
        doc_type=doc_type.strip().upper(),
        file_name=file_name.strip(),
        mime_type=mime_type,
        size=as_count(size, "size") or 0,
        expires_on=expires.date() if expires else None,
    )
    db.session.add(d)
    _commit()
    return d


def list_supplier_documents(tenant_id: int, supplier_id: int) -> List[SupplierDocument]:
    s = require_supplier(tenant_id, supplier_id)
    return (
        SupplierDocument.query.filter_by(supplier_id=s.id)
        .order_by(SupplierDocument.id.asc())
        .all()
    )


# ---------------- helpers ----------------
def _to_status(value: str) -> SupplierStatus:
    try:
        return SupplierStatus[str(value).strip().upper()]
    except KeyError:
        raise ValidationFailed(f"Unknown supplier status: {value}")


def _complete(data: dict, required) -> bool:
    return all(str(data.get(k) or "").strip() for k in required)


def _ensure_editable(s: Supplier):
    if s.status not in (SupplierStatus.INVITED, SupplierStatus.PENDING_COMPLETION):
        raise PreconditionFailed(
            f"Onboarding data is locked while the supplier is {s.status.value}."
        )


def _move(tenant_id, supplier_id, target: SupplierStatus, actor_id, comment=None):
    s = require_supplier(tenant_id, supplier_id)
    previous = s.status
    check_transition("Supplier", previous, target)
    s.status = target
    if target in (
        SupplierStatus.ACTIVE,
        SupplierStatus.REJECTED,
        SupplierStatus.SUSPENDED,
    ):
        s.decided_by_id = actor_id
        s.decided_at = utcnow()
        s.status_reason = comment
    ev_dao.record(tenant_id, ev_dao.SUPPLIER, s.id, previous, target, actor_id, comment)
    _commit()
    current_app.logger.info(
        "supplier %s: %s -> %s", s.id, previous.value, target.value
    )
    return s


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
