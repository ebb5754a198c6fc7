from configs import db
from utils.dates import utcnow
import enum


class PurchaseRequisitionStatus(enum.Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PO_GENERATED = "PO_GENERATED"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"


class PurchaseType(enum.Enum):
    DIRECT = "DIRECT"
    WITH_QUOTE = "WITH_QUOTE"
    WITH_BID = "WITH_BID"


class Priority(enum.Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class PurchaseRequisition(db.Model):
    __tablename__ = "purchase_requisition"
    __table_args__ = (db.UniqueConstraint("tenant_id", "number"),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False)
    number = db.Column(db.String(20), nullable=False)  # REQ-2025-00001

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    justification = db.Column(db.Text)
    department = db.Column(db.String(120))
    cost_center = db.Column(db.String(60))
    estimated_amount = db.Column(db.Numeric(18, 2), default=0)
    currency = db.Column(db.String(3), default="ARS", nullable=False)
    priority = db.Column(db.Enum(Priority), default=Priority.NORMAL, nullable=False)
    purchase_type = db.Column(
        db.Enum(PurchaseType), default=PurchaseType.DIRECT, nullable=False
    )
    needed_by = db.Column(db.DateTime)

    requester_id = db.Column(
        db.Integer, db.ForeignKey("user_account.id"), nullable=False
    )
    approver_id = db.Column(db.Integer, db.ForeignKey("user_account.id"))
    submitted_at = db.Column(db.DateTime)
    decided_at = db.Column(db.DateTime)
    decision_comment = db.Column(db.Text)
    # preferred supplier: approval synthesizes the PO directly when set
    supplier_id = db.Column(db.Integer, db.ForeignKey("supplier.id"))

    status = db.Column(
        db.Enum(PurchaseRequisitionStatus),
        default=PurchaseRequisitionStatus.DRAFT,
        nullable=False,
    )
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    requester = db.relationship("User", foreign_keys=[requester_id])
    approver = db.relationship("User", foreign_keys=[approver_id])
    supplier = db.relationship("Supplier")


class PRLine(db.Model):
    __tablename__ = "pr_line"
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    pr_id = db.Column(
        db.Integer,
        db.ForeignKey("purchase_requisition.id", ondelete="CASCADE"),
        nullable=False,
    )
    description = db.Column(db.String(255), nullable=False)
    qty = db.Column(db.Numeric(18, 3), nullable=False)
    unit = db.Column(db.String(30), default="unidad", nullable=False)
    unit_price = db.Column(db.Numeric(18, 2), default=0, nullable=False)
    line_total = db.Column(db.Numeric(18, 2), default=0, nullable=False)
    specifications = db.Column(db.Text)

    pr = db.relationship(
        "PurchaseRequisition",
        backref=db.backref(
            "lines", cascade="all, delete-orphan", order_by="PRLine.id"
        ),
    )
