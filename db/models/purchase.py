from configs import db
from utils.dates import utcnow
import enum


class POStatus(enum.Enum):
    PENDIENTE = "PENDIENTE"
    APROBADA = "APROBADA"
    EN_PROCESO = "EN_PROCESO"
    PARCIALMENTE_RECIBIDA = "PARCIALMENTE_RECIBIDA"
    ENTREGADA = "ENTREGADA"
    FINALIZADA = "FINALIZADA"


class POApprovalStatus(enum.Enum):
    PENDIENTE_APROBACION = "PENDIENTE_APROBACION"
    APROBADA = "APROBADA"
    RECHAZADA = "RECHAZADA"


class PurchaseOrder(db.Model):
    __tablename__ = "purchase_order"
    __table_args__ = (db.UniqueConstraint("tenant_id", "po_no"),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False)
    po_no = db.Column(db.String(40), nullable=False)  # OC-2025-00001

    supplier_id = db.Column(db.Integer, db.ForeignKey("supplier.id"), nullable=False)
    supplier = db.relationship("Supplier", backref="purchase_orders")
    # snapshot at issue time
    supplier_name = db.Column(db.String(255), nullable=False)
    supplier_tax_id = db.Column(db.String(20))
    supplier_email = db.Column(db.String(255))

    status = db.Column(
        db.Enum(POStatus, name="postatus"), default=POStatus.PENDIENTE, nullable=False
    )
    approval_status = db.Column(
        db.Enum(POApprovalStatus, name="poapprovalstatus"),
        default=POApprovalStatus.PENDIENTE_APROBACION,
        nullable=False,
    )
    approver_id = db.Column(db.Integer, db.ForeignKey("user_account.id"))
    approved_at = db.Column(db.DateTime)
    approval_comment = db.Column(db.Text)

    order_date = db.Column(db.DateTime, default=utcnow)
    expected_date = db.Column(db.DateTime)

    subtotal = db.Column(db.Numeric(18, 2), default=0)
    tax = db.Column(db.Numeric(18, 2), default=0)
    total = db.Column(db.Numeric(18, 2), default=0)
    currency = db.Column(db.String(3), default="ARS", nullable=False)
    payment_terms = db.Column(db.String(255))
    delivery_place = db.Column(db.String(255))
    notes = db.Column(db.Text)

    pr_id = db.Column(
        db.Integer, db.ForeignKey("purchase_requisition.id"), unique=True
    )
    rfq_id = db.Column(db.Integer, db.ForeignKey("rfq.id"), unique=True)
    vq_id = db.Column(db.Integer, db.ForeignKey("vendor_quotation.id"), unique=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("user_account.id"))

    pr = db.relationship(
        "PurchaseRequisition",
        backref=db.backref("purchase_order", uselist=False),
    )
    rfq = db.relationship("RFQ", backref=db.backref("po", uselist=False))
    vq = db.relationship("VendorQuotation", backref=db.backref("po", uselist=False))
    approver = db.relationship("User", foreign_keys=[approver_id])


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_item"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)

    po_id = db.Column(
        db.Integer,
        db.ForeignKey("purchase_order.id", ondelete="CASCADE"),
        nullable=False,
    )
    pr_line_id = db.Column(db.Integer, db.ForeignKey("pr_line.id"))
    description = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(30), default="unidad", nullable=False)

    qty = db.Column(db.Numeric(18, 3), nullable=False)
    price = db.Column(db.Numeric(18, 2), nullable=False)
    line_total = db.Column(db.Numeric(18, 2), nullable=False)
    received_qty = db.Column(db.Numeric(18, 3), default=0, nullable=False)

    po = db.relationship(
        "PurchaseOrder",
        backref=db.backref(
            "items", cascade="all, delete-orphan", order_by="PurchaseOrderItem.id"
        ),
    )
