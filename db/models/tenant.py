from configs import db
from utils.dates import utcnow


class Tenant(db.Model):
    __tablename__ = "tenant"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    code = db.Column(db.String(50), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    currency = db.Column(db.String(3), default="ARS", nullable=False)
    # NULL -> Config.DEFAULT_TAX_RATE
    tax_rate = db.Column(db.Numeric(6, 4))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
