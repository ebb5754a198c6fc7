from configs import db
from utils.dates import utcnow
import enum


class SupplierStatus(enum.Enum):
    INVITED = "INVITED"
    PENDING_COMPLETION = "PENDING_COMPLETION"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    REJECTED = "REJECTED"


class Supplier(db.Model):
    __tablename__ = "supplier"
    __table_args__ = (db.UniqueConstraint("tenant_id", "code"),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False)
    code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    tax_id = db.Column(db.String(20))  # CUIT

    phone = db.Column(db.String(30))
    email = db.Column(db.String(255))
    address = db.Column(db.Text)

    status = db.Column(
        db.Enum(SupplierStatus, name="supplierstatus"),
        default=SupplierStatus.INVITED,
        nullable=False,
    )
    company_data = db.Column(db.JSON)
    bank_data = db.Column(db.JSON)
    company_data_complete = db.Column(db.Boolean, default=False, nullable=False)
    bank_data_complete = db.Column(db.Boolean, default=False, nullable=False)

    status_reason = db.Column(db.Text)
    decided_by_id = db.Column(
        db.Integer,
        db.ForeignKey("user_account.id", use_alter=True, name="fk_supplier_decided_by"),
    )
    decided_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)

    @property
    def is_active(self):
        return self.status == SupplierStatus.ACTIVE


class SupplierDocument(db.Model):
    __tablename__ = "supplier_document"
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    supplier_id = db.Column(
        db.Integer, db.ForeignKey("supplier.id", ondelete="CASCADE"), nullable=False
    )
    doc_type = db.Column(db.String(50), nullable=False)  # AFIP, IIBB, CBU...
    file_name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(100))
    size = db.Column(db.Integer)
    expires_on = db.Column(db.Date)
    uploaded_at = db.Column(db.DateTime, default=utcnow)

    supplier = db.relationship(
        "Supplier", backref=db.backref("documents", cascade="all, delete-orphan")
    )
