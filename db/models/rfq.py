from configs import db
from utils.dates import utcnow
import enum


class RFQStatus(enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    IN_QUOTATION = "IN_QUOTATION"
    EVALUATION = "EVALUATION"
    AWARDED = "AWARDED"
    CANCELLED = "CANCELLED"
    CLOSED = "CLOSED"
    EXPIRED = "EXPIRED"


class InvitationStatus(enum.Enum):
    PENDING = "PENDING"
    INVITED = "INVITED"
    VIEWED = "VIEWED"
    QUOTED = "QUOTED"
    DECLINED = "DECLINED"
    AWARDED = "AWARDED"
    NOT_AWARDED = "NOT_AWARDED"


class RFQ(db.Model):
    __tablename__ = "rfq"
    __table_args__ = (db.UniqueConstraint("tenant_id", "number"),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False)
    number = db.Column(db.String(20), nullable=False)  # RFQ-2025-00001
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    pr_id = db.Column(db.Integer, db.ForeignKey("purchase_requisition.id"))
    deadline = db.Column(db.DateTime, nullable=False)
    currency = db.Column(db.String(3), default="ARS", nullable=False)
    budget = db.Column(db.Numeric(18, 2))
    payment_terms = db.Column(db.String(255))
    notes = db.Column(db.Text)

    status = db.Column(db.Enum(RFQStatus), default=RFQStatus.DRAFT, nullable=False)
    created_by_id = db.Column(db.Integer, db.ForeignKey("user_account.id"))
    published_at = db.Column(db.DateTime)
    closed_at = db.Column(db.DateTime)
    awarded_supplier_id = db.Column(db.Integer, db.ForeignKey("supplier.id"))
    awarded_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)

    pr = db.relationship("PurchaseRequisition")
    awarded_supplier = db.relationship("Supplier")

    vqs = db.relationship(
        "VendorQuotation",
        back_populates="rfq",
        cascade="all, delete-orphan",
        lazy="select",
        passive_deletes=True,
    )


class RFQLine(db.Model):
    __tablename__ = "rfq_line"
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    rfq_id = db.Column(
        db.Integer, db.ForeignKey("rfq.id", ondelete="CASCADE"), nullable=False
    )
    description = db.Column(db.String(255), nullable=False)
    qty = db.Column(db.Numeric(18, 3), nullable=False)
    unit = db.Column(db.String(30), default="unidad", nullable=False)
    specifications = db.Column(db.Text)
    pr_line_id = db.Column(db.Integer, db.ForeignKey("pr_line.id"))

    rfq = db.relationship(
        "RFQ",
        backref=db.backref(
            "lines",
            cascade="all, delete-orphan",
            lazy="select",
            passive_deletes=True,
            order_by="RFQLine.id",
        ),
    )


class RFQSupplier(db.Model):
    """Invitation of one supplier to one RFQ."""

    __tablename__ = "rfq_supplier"
    __table_args__ = (db.UniqueConstraint("rfq_id", "supplier_id"),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    rfq_id = db.Column(
        db.Integer, db.ForeignKey("rfq.id", ondelete="CASCADE"), nullable=False
    )
    supplier_id = db.Column(db.Integer, db.ForeignKey("supplier.id"), nullable=False)
    status = db.Column(
        db.Enum(InvitationStatus, name="invitationstatus"),
        default=InvitationStatus.PENDING,
        nullable=False,
    )
    invited_at = db.Column(db.DateTime)
    viewed_at = db.Column(db.DateTime)
    responded_at = db.Column(db.DateTime)
    decline_reason = db.Column(db.Text)

    rfq = db.relationship(
        "RFQ",
        backref=db.backref(
            "invitations",
            cascade="all, delete-orphan",
            passive_deletes=True,
            order_by="RFQSupplier.id",
        ),
    )
    supplier = db.relationship("Supplier")
