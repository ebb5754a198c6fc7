from configs import db
from utils.dates import utcnow


class StatusEvent(db.Model):
    """One row per state change of a procurement document."""

    __tablename__ = "status_event"
    __table_args__ = (db.Index("ix_status_event_entity", "entity_type", "entity_id"),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False)
    entity_type = db.Column(db.String(40), nullable=False)  # REQUISITION, PO, RFQ...
    entity_id = db.Column(db.Integer, nullable=False)
    from_status = db.Column(db.String(40))
    to_status = db.Column(db.String(40), nullable=False)
    actor_id = db.Column(db.Integer, db.ForeignKey("user_account.id"))
    comment = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    actor = db.relationship("User")
