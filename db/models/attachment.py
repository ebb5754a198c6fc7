from configs import db
from utils.dates import utcnow
import enum


class AttachmentStatus(enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Attachment(db.Model):
    __tablename__ = "pr_attachment"
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    pr_id = db.Column(
        db.Integer,
        db.ForeignKey("purchase_requisition.id", ondelete="CASCADE"),
        nullable=False,
    )
    file_name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(100))
    size = db.Column(db.Integer, default=0)
    is_specification = db.Column(db.Boolean, default=False, nullable=False)

    status = db.Column(
        db.Enum(AttachmentStatus, name="attachmentstatus"),
        default=AttachmentStatus.PENDING,
        nullable=False,
    )
    approver_id = db.Column(db.Integer, db.ForeignKey("user_account.id"))
    decided_at = db.Column(db.DateTime)
    comment = db.Column(db.Text)
    uploaded_at = db.Column(db.DateTime, default=utcnow)

    pr = db.relationship(
        "PurchaseRequisition",
        backref=db.backref(
            "attachments", cascade="all, delete-orphan", order_by="Attachment.id"
        ),
    )
    approver = db.relationship("User")
