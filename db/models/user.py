# db/models/user.py
import enum
from configs import db
from flask_login import UserMixin


class UserRole(enum.Enum):
    ADMIN = "ADMIN"
    REQUESTER = "REQUESTER"  # creates requisitions
    APPROVER = "APPROVER"  # signs off requisitions, attachments and POs
    BUYER = "BUYER"  # runs RFQs and issues POs
    WAREHOUSE = "WAREHOUSE"  # records receptions
    SUPPLIER = "SUPPLIER"  # supplier portal user


# everyone but the supplier portal
STAFF_ROLES = tuple(r for r in UserRole if r != UserRole.SUPPLIER)


class User(db.Model, UserMixin):
    __tablename__ = "user_account"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(120))
    email = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    role = db.Column(db.Enum(UserRole), default=UserRole.REQUESTER, nullable=False)
    # only for SUPPLIER users
    supplier_id = db.Column(db.Integer, db.ForeignKey("supplier.id"))

    tenant = db.relationship("Tenant")
    supplier = db.relationship("Supplier", foreign_keys=[supplier_id])

    def get_id(self):
        return str(self.id)

    def has_role(self, *roles: UserRole):
        """True when the user holds any of the given roles (enum or name)."""
        names = {r.value if isinstance(r, UserRole) else str(r).upper() for r in roles}
        return self.role is not None and self.role.value in names

