from configs import db
from utils.dates import utcnow
import enum


class ReceptionType(enum.Enum):
    TOTAL = "TOTAL"
    PARCIAL = "PARCIAL"


class GoodsReceipt(db.Model):
    __tablename__ = "goods_receipt"
    __table_args__ = (db.UniqueConstraint("tenant_id", "number"),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False)
    number = db.Column(db.String(20), nullable=False)  # REC-2025-00001
    # nullable: a reception outlives a PO removed from the back office
    po_id = db.Column(
        db.Integer, db.ForeignKey("purchase_order.id", ondelete="SET NULL")
    )
    receiver_id = db.Column(db.Integer, db.ForeignKey("user_account.id"))
    reception_type = db.Column(
        db.Enum(ReceptionType, name="receptiontype"), nullable=False
    )
    observations = db.Column(db.Text)
    received_at = db.Column(db.DateTime, default=utcnow)
    created_at = db.Column(db.DateTime, default=utcnow)

    po = db.relationship("PurchaseOrder", backref="receptions")
    receiver = db.relationship("User")


class GRLine(db.Model):
    __tablename__ = "gr_line"
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    gr_id = db.Column(
        db.Integer,
        db.ForeignKey("goods_receipt.id", ondelete="CASCADE"),
        nullable=False,
    )
    po_line_id = db.Column(
        db.Integer, db.ForeignKey("purchase_order_item.id", ondelete="SET NULL")
    )
    description = db.Column(db.String(255))
    unit = db.Column(db.String(30))
    expected_qty = db.Column(db.Numeric(18, 3), nullable=False)
    qty = db.Column(db.Numeric(18, 3), nullable=False)  # received now
    pending_qty = db.Column(db.Numeric(18, 3), nullable=False)

    gr = db.relationship(
        "GoodsReceipt",
        backref=db.backref("lines", cascade="all, delete-orphan", order_by="GRLine.id"),
    )
    po_line = db.relationship("PurchaseOrderItem")
