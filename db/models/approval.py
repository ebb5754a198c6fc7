import enum
from configs import db
from utils.dates import utcnow
from db.models.user import UserRole
from db.models.purchase_requisition import PurchaseType


class LevelType(enum.Enum):
    GENERAL = "GENERAL"
    # only applies when the requisition carries specification attachments
    SPECIFICATIONS = "SPECIFICATIONS"


class WorkflowStatus(enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class StepDecision(enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"


class ApprovalRule(db.Model):
    """Which sign-off chain a requisition needs, matched by amount and purchase type."""

    __tablename__ = "approval_rule"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    # NULL matches any purchase type / leaves the range open
    purchase_type = db.Column(db.Enum(PurchaseType))
    min_amount = db.Column(db.Numeric(18, 2))
    max_amount = db.Column(db.Numeric(18, 2))
    priority = db.Column(db.Integer, default=0, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    levels = db.relationship(
        "ApprovalLevel",
        back_populates="rule",
        cascade="all, delete-orphan",
        order_by="ApprovalLevel.level_order",
    )


class ApprovalLevel(db.Model):
    __tablename__ = "approval_level"
    __table_args__ = (db.UniqueConstraint("rule_id", "level_order"),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    rule_id = db.Column(
        db.Integer, db.ForeignKey("approval_rule.id", ondelete="CASCADE"), nullable=False
    )
    level_order = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    level_type = db.Column(db.Enum(LevelType), default=LevelType.GENERAL, nullable=False)
    # a named user wins over a role; neither means any approver
    approver_role = db.Column(db.Enum(UserRole))
    approver_user_id = db.Column(db.Integer, db.ForeignKey("user_account.id"))

    rule = db.relationship("ApprovalRule", back_populates="levels")
    approver_user = db.relationship("User")


class ApprovalWorkflow(db.Model):
    """One run of a rule over one requisition."""

    __tablename__ = "approval_workflow"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False)
    pr_id = db.Column(
        db.Integer,
        db.ForeignKey("purchase_requisition.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    rule_id = db.Column(db.Integer, db.ForeignKey("approval_rule.id"), nullable=False)
    status = db.Column(
        db.Enum(WorkflowStatus), default=WorkflowStatus.IN_PROGRESS, nullable=False
    )
    current_level = db.Column(db.Integer, nullable=False)
    initiated_by = db.Column(db.Integer, db.ForeignKey("user_account.id"))
    created_at = db.Column(db.DateTime, default=utcnow)
    completed_at = db.Column(db.DateTime)

    rule = db.relationship("ApprovalRule")
    pr = db.relationship(
        "PurchaseRequisition",
        backref=db.backref(
            "approval_workflows",
            cascade="all, delete-orphan",
            order_by="ApprovalWorkflow.id",
        ),
    )
    steps = db.relationship(
        "ApprovalStep",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="ApprovalStep.level_order",
    )


class ApprovalStep(db.Model):
    """A level of the rule, copied when the workflow starts."""

    __tablename__ = "approval_step"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    workflow_id = db.Column(
        db.Integer,
        db.ForeignKey("approval_workflow.id", ondelete="CASCADE"),
        nullable=False,
    )
    level_order = db.Column(db.Integer, nullable=False)
    level_name = db.Column(db.String(120), nullable=False)
    level_type = db.Column(db.Enum(LevelType), default=LevelType.GENERAL, nullable=False)
    approver_role = db.Column(db.Enum(UserRole))
    approver_user_id = db.Column(db.Integer, db.ForeignKey("user_account.id"))
    decision = db.Column(
        db.Enum(StepDecision), default=StepDecision.PENDING, nullable=False
    )
    decided_by_id = db.Column(db.Integer, db.ForeignKey("user_account.id"))
    decided_at = db.Column(db.DateTime)
    comment = db.Column(db.Text)

    workflow = db.relationship("ApprovalWorkflow", back_populates="steps")
    decided_by = db.relationship("User", foreign_keys=[decided_by_id])
