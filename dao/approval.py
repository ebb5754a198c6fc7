"""Approval rules and the multi-level sign-off of requisitions.

A rule matches a requisition by estimated amount and purchase type; the
highest-priority active match wins. Its levels are copied into steps when the
requisition is submitted, so editing a rule never changes a running workflow.
Requisitions that match no rule keep the single sign-off.
"""
from typing import Dict, List, Optional
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from configs import db
from db.models.approval import (
    ApprovalLevel,
    ApprovalRule,
    ApprovalStep,
    ApprovalWorkflow,
    LevelType,
    StepDecision,
    WorkflowStatus,
)
from db.models.purchase_requisition import PurchaseType
from db.models.user import User, UserRole
from dao import status_event as ev_dao
from utils.dates import utcnow
from utils.errors import Forbidden, NotFound, PreconditionFailed, ValidationFailed
from utils.money import money, dec
from utils.parsing import as_id
from utils.transitions import check_transition

# roles that may sign a level; they match the approve/reject endpoints
SIGNERS = (UserRole.APPROVER, UserRole.ADMIN)


# ---------------- rules ----------------
def list_rules(tenant_id: int, active_only: bool = False) -> List[ApprovalRule]:
    q = ApprovalRule.query.filter_by(tenant_id=int(tenant_id))
    if active_only:
        q = q.filter(ApprovalRule.is_active.is_(True))
    return q.order_by(ApprovalRule.priority.desc(), ApprovalRule.id.asc()).all()


def get_rule(tenant_id: int, rule_id) -> Optional[ApprovalRule]:
    return ApprovalRule.query.filter_by(
        tenant_id=int(tenant_id), id=as_id(rule_id, "rule_id")
    ).first()


def require_rule(tenant_id: int, rule_id) -> ApprovalRule:
    rule = get_rule(tenant_id, rule_id)
    if not rule:
        raise NotFound(f"Approval rule #{rule_id} not found.")
    return rule


def create_rule(
    tenant_id: int,
    name: str,
    levels: List[Dict],
    purchase_type=None,
    min_amount=None,
    max_amount=None,
    priority=0,
) -> ApprovalRule:
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Rule name is required.")
    norm_levels = _normalize_levels(tenant_id, levels)
    low, high = _amount(min_amount, "min_amount"), _amount(max_amount, "max_amount")
    _check_range(low, high)
    rule = ApprovalRule(
        tenant_id=int(tenant_id),
        name=name,
        purchase_type=_purchase_type(purchase_type),
        min_amount=low,
        max_amount=high,
        priority=_priority(priority),
        is_active=True,
    )
    for lv in norm_levels:
        rule.levels.append(ApprovalLevel(**lv))
    db.session.add(rule)
    _commit()
    current_app.logger.info("approval rule %s created with %d levels", name, len(norm_levels))
    return rule


def update_rule(tenant_id: int, rule_id: int, fields: Dict) -> ApprovalRule:
    rule = require_rule(tenant_id, rule_id)
    if "name" in fields:
        name = str(fields.get("name") or "").strip()
        if not name:
            raise ValidationFailed("Rule name is required.")
        rule.name = name
    if "purchase_type" in fields:
        rule.purchase_type = _purchase_type(fields.get("purchase_type"))
    if "min_amount" in fields:
        rule.min_amount = _amount(fields.get("min_amount"), "min_amount")
    if "max_amount" in fields:
        rule.max_amount = _amount(fields.get("max_amount"), "max_amount")
    _check_range(rule.min_amount, rule.max_amount)
    if "priority" in fields:
        rule.priority = _priority(fields.get("priority"))
    if "is_active" in fields:
        rule.is_active = bool(fields.get("is_active"))
    if fields.get("levels") is not None:
        norm_levels = _normalize_levels(tenant_id, fields["levels"])
        rule.levels.clear()
        db.session.flush()
        for lv in norm_levels:
            rule.levels.append(ApprovalLevel(**lv))
    _commit()
    return rule


def delete_rule(tenant_id: int, rule_id: int) -> bool:
    """Delete an unused rule; a rule with workflows is only deactivated.

    Returns True when the row was deleted.
    """
    rule = require_rule(tenant_id, rule_id)
    used = db.session.query(
        ApprovalWorkflow.query.filter(ApprovalWorkflow.rule_id == rule.id).exists()
    ).scalar()
    if used:
        rule.is_active = False
    else:
        db.session.delete(rule)
    _commit()
    return not used


def find_applicable_rule(tenant_id: int, amount, purchase_type) -> Optional[ApprovalRule]:
    amount = dec(amount or 0)
    for rule in list_rules(tenant_id, active_only=True):
        if rule.purchase_type is not None and rule.purchase_type != purchase_type:
            continue
        if rule.min_amount is not None and amount < dec(rule.min_amount):
            continue
        if rule.max_amount is not None and amount > dec(rule.max_amount):
            continue
        return rule
    return None


# ---------------- workflows ----------------
def start_workflow(pr, actor_id=None) -> Optional[ApprovalWorkflow]:
    """Stage the workflow of a just-submitted requisition. Does not commit."""
    rule = find_applicable_rule(pr.tenant_id, pr.estimated_amount, pr.purchase_type)
    if rule is None:
        return None
    has_specs = any(a.is_specification for a in pr.attachments)
    levels = [
        lv for lv in rule.levels if has_specs or lv.level_type != LevelType.SPECIFICATIONS
    ]
    if not levels:
        return None
    wf = ApprovalWorkflow(
        tenant_id=pr.tenant_id,
        pr=pr,
        rule=rule,
        status=WorkflowStatus.IN_PROGRESS,
        current_level=levels[0].level_order,
        initiated_by=actor_id,
    )
    for lv in levels:
        wf.steps.append(
            ApprovalStep(
                level_order=lv.level_order,
                level_name=lv.name,
                level_type=lv.level_type,
                approver_role=lv.approver_role,
                approver_user_id=lv.approver_user_id,
                decision=StepDecision.PENDING,
            )
        )
    db.session.add(wf)
    db.session.flush()
    current_app.logger.info(
        "requisition %s follows rule %s (%d levels)", pr.number, rule.name, len(levels)
    )
    return wf


def active_workflow(pr) -> Optional[ApprovalWorkflow]:
    for wf in pr.approval_workflows:
        if wf.status == WorkflowStatus.IN_PROGRESS:
            return wf
    return None


def latest_workflow(pr) -> Optional[ApprovalWorkflow]:
    return pr.approval_workflows[-1] if pr.approval_workflows else None


def current_step(wf: ApprovalWorkflow) -> Optional[ApprovalStep]:
    for step in wf.steps:
        if step.level_order == wf.current_level and step.decision == StepDecision.PENDING:
            return step
    return None


def can_sign(step: ApprovalStep, user: User) -> bool:
    if user is None or not user.has_role(*SIGNERS):
        return False
    if step.approver_user_id:
        return step.approver_user_id == user.id
    if step.approver_role:
        return user.has_role(step.approver_role)
    return True


def sign(wf: ApprovalWorkflow, user: User, approved: bool, comment=None) -> bool:
    """Record the current level's decision. Does not commit.

    Returns True when the workflow is finished (last level approved, or any
    level rejected).
    """
    step = current_step(wf)
    if step is None:
        raise PreconditionFailed("No approval level is waiting for a decision.")
    if not can_sign(step, user):
        raise Forbidden(
            f"Not an approver of level {step.level_order} ({step.level_name}).",
            level=step.level_order,
        )
    target = StepDecision.APPROVED if approved else StepDecision.REJECTED
    _decide(wf, step, target, user.id, comment)

    following = [s for s in wf.steps if s.level_order > step.level_order]
    if not approved:
        for later in following:
            _decide(wf, later, StepDecision.SKIPPED, None, comment)
        _finish(wf, WorkflowStatus.REJECTED, user.id, comment)
        return True
    if following:
        wf.current_level = following[0].level_order
        return False
    _finish(wf, WorkflowStatus.APPROVED, user.id, comment)
    return True


def cancel_workflow(wf: ApprovalWorkflow, actor_id=None, comment=None) -> None:
    for step in wf.steps:
        if step.decision == StepDecision.PENDING:
            _decide(wf, step, StepDecision.SKIPPED, None, comment)
    _finish(wf, WorkflowStatus.CANCELLED, actor_id, comment)


def pending_for_user(tenant_id: int, user: User) -> List[ApprovalWorkflow]:
    """Running workflows whose current level this user may sign."""
    running = (
        ApprovalWorkflow.query.filter_by(
            tenant_id=int(tenant_id), status=WorkflowStatus.IN_PROGRESS
        )
        .order_by(ApprovalWorkflow.id.asc())
        .all()
    )
    out = []
    for wf in running:
        step = current_step(wf)
        if step is not None and can_sign(step, user):
            out.append(wf)
    return out


def _decide(wf, step: ApprovalStep, target: StepDecision, actor_id, comment):
    previous = step.decision
    check_transition("ApprovalStep", previous, target)
    step.decision = target
    step.decided_at = utcnow()
    step.comment = comment
    if target != StepDecision.SKIPPED:
        step.decided_by_id = actor_id
    ev_dao.record(
        wf.tenant_id, ev_dao.APPROVAL_STEP, step.id, previous, target, actor_id, comment
    )


def _finish(wf: ApprovalWorkflow, target: WorkflowStatus, actor_id, comment):
    check_transition("ApprovalWorkflow", wf.status, target)
    wf.status = target
    wf.completed_at = utcnow()
    ev_dao.record(
        wf.tenant_id,
        ev_dao.APPROVAL_WORKFLOW,
        wf.id,
        WorkflowStatus.IN_PROGRESS,
        target,
        actor_id,
        comment,
    )


# ---------------- helpers ----------------
def _normalize_levels(tenant_id: int, levels) -> List[Dict]:
    if not isinstance(levels, list) or not levels:
        raise ValidationFailed("At least one approval level is required.")
    out: List[Dict] = []
    for idx, lv in enumerate(levels, 1):
        if not isinstance(lv, dict):
            raise ValidationFailed(f"Level {idx}: must be an object.")
        name = str(lv.get("name") or "").strip()
        if not name:
            raise ValidationFailed(f"Level {idx}: name is required.")
        try:
            level_type = LevelType[str(lv.get("level_type") or "GENERAL").strip().upper()]
        except KeyError:
            raise ValidationFailed(f"Level {idx}: unknown level type {lv.get('level_type')}.")

        role = None
        if lv.get("approver_role"):
            try:
                role = UserRole[str(lv["approver_role"]).strip().upper()]
            except KeyError:
                raise ValidationFailed(f"Level {idx}: unknown role {lv['approver_role']}.")
            if role not in SIGNERS:
                raise ValidationFailed(f"Level {idx}: {role.value} cannot sign approvals.")

        user_id = None
        if lv.get("approver_user_id"):
            user_id = as_id(lv["approver_user_id"], "approver_user_id")
            user = User.query.filter_by(tenant_id=int(tenant_id), id=user_id).first()
            if user is None:
                raise NotFound(f"Level {idx}: user #{user_id} not found.")
            if not user.has_role(*SIGNERS):
                raise ValidationFailed(f"Level {idx}: {user.username} cannot sign approvals.")

        out.append(
            {
                "level_order": idx,
                "name": name,
                "level_type": level_type,
                "approver_role": role,
                "approver_user_id": user_id,
            }
        )
    return out


def _purchase_type(value):
    if value in (None, ""):
        return None
    try:
        return PurchaseType[str(value).strip().upper()]
    except KeyError:
        raise ValidationFailed(f"Unknown purchase type: {value}")


def _amount(value, label):
    if value in (None, ""):
        return None
    try:
        amount = money(value)
    except ValueError:
        raise ValidationFailed(f"{label} must be a number.")
    if amount < 0:
        raise ValidationFailed(f"{label} cannot be negative.")
    return amount


def _check_range(low, high):
    if low is not None and high is not None and dec(low) > dec(high):
        raise ValidationFailed("min_amount cannot exceed max_amount.")


def _priority(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        raise ValidationFailed("priority must be an integer.")


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
