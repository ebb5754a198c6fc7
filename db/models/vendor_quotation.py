from configs import db
from utils.dates import utcnow
import enum


class VendorQuotationStatus(enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    AWARDED = "AWARDED"


class VendorQuotation(db.Model):
    __tablename__ = "vendor_quotation"
    __table_args__ = (db.UniqueConstraint("rfq_id", "supplier_id"),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    rfq_id = db.Column(
        db.Integer, db.ForeignKey("rfq.id", ondelete="CASCADE"), nullable=False
    )
    supplier_id = db.Column(db.Integer, db.ForeignKey("supplier.id"), nullable=False)
    number = db.Column(db.String(40), nullable=False)  # RFQ-2025-00001-COT-001
    status = db.Column(
        db.Enum(VendorQuotationStatus),
        default=VendorQuotationStatus.DRAFT,
        nullable=False,
    )
    currency = db.Column(db.String(3), default="ARS", nullable=False)
    total_amount = db.Column(db.Numeric(18, 2), default=0, nullable=False)
    delivery_days = db.Column(db.Integer)
    payment_terms = db.Column(db.String(255))
    valid_until = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    submitted_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)

    # paired with RFQ.vqs
    rfq = db.relationship("RFQ", back_populates="vqs")
    supplier = db.relationship("Supplier")


class VendorQuotationLine(db.Model):
    __tablename__ = "vendor_quotation_line"
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    vq_id = db.Column(
        db.Integer,
        db.ForeignKey("vendor_quotation.id", ondelete="CASCADE"),
        nullable=False,
    )
    rfq_line_id = db.Column(db.Integer, db.ForeignKey("rfq_line.id"), nullable=False)
    qty = db.Column(db.Numeric(18, 3), nullable=False)
    price = db.Column(db.Numeric(18, 2), nullable=False)
    line_total = db.Column(db.Numeric(18, 2), nullable=False)
    brand = db.Column(db.String(120))
    model = db.Column(db.String(120))
    notes = db.Column(db.Text)

    vq = db.relationship(
        "VendorQuotation",
        backref=db.backref(
            "lines",
            cascade="all, delete-orphan",
            lazy="select",
            passive_deletes=True,
            order_by="VendorQuotationLine.id",
        ),
    )
    rfq_line = db.relationship("RFQLine")
