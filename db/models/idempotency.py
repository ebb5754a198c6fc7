from configs import db
from utils.dates import utcnow


class IdempotencyKey(db.Model):
    __tablename__ = "idempotency_key"
    __table_args__ = (db.UniqueConstraint("tenant_id", "scope", "key"),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False)
    scope = db.Column(db.String(40), nullable=False)  # requisition, po, reception
    key = db.Column(db.String(120), nullable=False)
    resource_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
