import pytest

from dao import approval as approval_dao
from dao import purchase_requisition as pr_dao
from dao import user as user_dao
from db.models.approval import StepDecision, WorkflowStatus
from db.models.purchase_requisition import PurchaseRequisitionStatus as PRS
from utils.errors import Forbidden, NotFound, PreconditionFailed, ValidationFailed


@pytest.fixture()
def two_levels(ctx, env):
    """Requisitions from 1000 up need the approvers, then the admin by name."""
    return approval_dao.create_rule(
        env.tenant_id,
        "Big spend",
        [
            {"name": "Area", "approver_role": "APPROVER"},
            {"name": "Management", "approver_user_id": env.users["admin"]},
        ],
        min_amount=1000,
    )


def _pr(env, amount, submit=True, **fields):
    return pr_dao.create_pr(
        env.tenant_id,
        env.users["requester"],
        dict({"title": "Laptops", "supplier_id": env.supplier_id}, **fields),
        [{"description": "Laptop", "qty": 1, "unit_price": amount}],
        submit=submit,
    )


def test_two_level_rule_needs_both_signatures(two_levels, env):
    pr = _pr(env, 1500)
    wf = pr_dao.approval_of(env.tenant_id, pr.id)
    assert wf.rule_id == two_levels.id
    assert [s.level_name for s in wf.steps] == ["Area", "Management"]
    assert wf.current_level == 1

    pr = pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"], "ok area")
    assert pr.status == PRS.PENDING_APPROVAL
    assert pr.purchase_order is None
    assert wf.current_level == 2
    assert wf.steps[0].decision == StepDecision.APPROVED
    assert wf.steps[0].decided_by_id == env.users["approver"]

    # level 2 names the admin; another approver cannot sign it
    with pytest.raises(Forbidden):
        pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])

    pr = pr_dao.approve_pr(env.tenant_id, pr.id, env.users["admin"], "ok mgmt")
    assert pr.status == PRS.PO_GENERATED
    assert pr.approver_id == env.users["admin"]
    assert wf.status == WorkflowStatus.APPROVED
    assert wf.completed_at is not None


def test_no_matching_rule_keeps_single_sign_off(two_levels, env):
    pr = _pr(env, 200)
    assert pr_dao.approval_of(env.tenant_id, pr.id) is None
    pr = pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    assert pr.status == PRS.PO_GENERATED


def test_rejecting_a_level_rejects_the_requisition(two_levels, env):
    pr = _pr(env, 5000)
    pr = pr_dao.reject_pr(env.tenant_id, pr.id, env.users["approver"], "too expensive")
    assert pr.status == PRS.REJECTED
    wf = pr_dao.approval_of(env.tenant_id, pr.id)
    assert wf.status == WorkflowStatus.REJECTED
    assert [s.decision for s in wf.steps] == [StepDecision.REJECTED, StepDecision.SKIPPED]


def test_cancel_skips_the_pending_levels(two_levels, env):
    pr = _pr(env, 5000)
    pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    pr_dao.cancel_pr(env.tenant_id, pr.id, env.users["requester"], "not needed")
    wf = pr_dao.approval_of(env.tenant_id, pr.id)
    assert wf.status == WorkflowStatus.CANCELLED
    assert [s.decision for s in wf.steps] == [StepDecision.APPROVED, StepDecision.SKIPPED]
    admin = user_dao.get_user(env.users["admin"])
    assert approval_dao.pending_for_user(env.tenant_id, admin) == []


def test_pending_list_follows_the_current_level(two_levels, env):
    approver = user_dao.get_user(env.users["approver"])
    admin = user_dao.get_user(env.users["admin"])
    pr = _pr(env, 5000)
    assert [wf.pr_id for wf in approval_dao.pending_for_user(env.tenant_id, approver)] == [pr.id]
    assert approval_dao.pending_for_user(env.tenant_id, admin) == []

    pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    assert approval_dao.pending_for_user(env.tenant_id, approver) == []
    assert [wf.pr_id for wf in approval_dao.pending_for_user(env.tenant_id, admin)] == [pr.id]


def test_specification_level_only_applies_with_spec_attachments(ctx, env):
    approval_dao.create_rule(
        env.tenant_id,
        "Technical",
        [
            {"name": "Specs", "level_type": "SPECIFICATIONS", "approver_role": "APPROVER"},
            {"name": "Budget", "approver_role": "APPROVER"},
        ],
    )
    plain = _pr(env, 100)
    assert [s.level_name for s in pr_dao.approval_of(env.tenant_id, plain.id).steps] == ["Budget"]

    technical = _pr(env, 100, submit=False)
    pr_dao.add_attachment(env.tenant_id, technical.id, "datasheet.pdf", is_specification=True)
    pr_dao.submit_pr(env.tenant_id, technical.id, env.users["requester"])
    wf = pr_dao.approval_of(env.tenant_id, technical.id)
    assert [s.level_name for s in wf.steps] == ["Specs", "Budget"]

    # the attachment gate holds before every level
    with pytest.raises(PreconditionFailed):
        pr_dao.approve_pr(env.tenant_id, technical.id, env.users["approver"])
    pr_dao.approve_specifications(env.tenant_id, technical.id, env.users["approver"])
    pr_dao.approve_pr(env.tenant_id, technical.id, env.users["approver"])
    pr = pr_dao.approve_pr(env.tenant_id, technical.id, env.users["approver"])
    assert pr.status == PRS.PO_GENERATED


def test_rules_match_by_priority_and_purchase_type(ctx, env):
    approval_dao.create_rule(
        env.tenant_id, "Any", [{"name": "L1", "approver_role": "APPROVER"}], priority=1
    )
    bids = approval_dao.create_rule(
        env.tenant_id,
        "Bids",
        [{"name": "L1", "approver_role": "APPROVER"}, {"name": "L2", "approver_role": "ADMIN"}],
        purchase_type="WITH_BID",
        priority=5,
    )
    direct = _pr(env, 100)
    assert pr_dao.approval_of(env.tenant_id, direct.id).rule.name == "Any"
    bid = _pr(env, 100, purchase_type="with_bid")
    assert pr_dao.approval_of(env.tenant_id, bid.id).rule_id == bids.id


def test_editing_the_amount_restarts_the_workflow(two_levels, env):
    pr = _pr(env, 200)
    assert pr_dao.approval_of(env.tenant_id, pr.id) is None
    pr_dao.update_pr(
        env.tenant_id, pr.id, {}, [{"description": "Laptop", "qty": 3, "unit_price": 800}]
    )
    wf = pr_dao.approval_of(env.tenant_id, pr.id)
    assert wf is not None and wf.status == WorkflowStatus.IN_PROGRESS

    pr_dao.approve_pr(env.tenant_id, pr.id, env.users["approver"])
    pr_dao.update_pr(env.tenant_id, pr.id, {"estimated_amount": 3000})
    flows = pr.approval_workflows
    assert [f.status for f in flows] == [WorkflowStatus.CANCELLED, WorkflowStatus.IN_PROGRESS]
    assert flows[-1].current_level == 1


def test_rule_validation(ctx, env):
    with pytest.raises(ValidationFailed):
        approval_dao.create_rule(env.tenant_id, "No levels", [])
    with pytest.raises(ValidationFailed):
        approval_dao.create_rule(
            env.tenant_id, "Buyer signs", [{"name": "x", "approver_role": "BUYER"}]
        )
    with pytest.raises(ValidationFailed):
        approval_dao.create_rule(
            env.tenant_id, "Requester signs", [{"name": "x", "approver_user_id": env.users["requester"]}]
        )
    with pytest.raises(NotFound):
        approval_dao.create_rule(
            env.tenant_id, "Foreign", [{"name": "x", "approver_user_id": env.users["outsider"]}]
        )
    with pytest.raises(ValidationFailed):
        approval_dao.create_rule(
            env.tenant_id, "Range", [{"name": "x"}], min_amount=10, max_amount=5
        )
    with pytest.raises(ValidationFailed):
        approval_dao.create_rule(
            env.tenant_id, "Type", [{"name": "x"}], purchase_type="BARTER"
        )


def test_used_rule_is_deactivated_not_deleted(two_levels, env):
    unused = approval_dao.create_rule(env.tenant_id, "Unused", [{"name": "x"}])
    assert approval_dao.delete_rule(env.tenant_id, unused.id) is True
    assert approval_dao.get_rule(env.tenant_id, unused.id) is None

    _pr(env, 5000)
    assert approval_dao.delete_rule(env.tenant_id, two_levels.id) is False
    assert approval_dao.require_rule(env.tenant_id, two_levels.id).is_active is False
    # inactive rules no longer match
    assert pr_dao.approval_of(env.tenant_id, _pr(env, 5000).id) is None


def test_editing_a_rule_leaves_running_workflows_alone(two_levels, env):
    pr = _pr(env, 5000)
    approval_dao.update_rule(
        env.tenant_id, two_levels.id, {"levels": [{"name": "Only", "approver_role": "ADMIN"}]}
    )
    assert [lv.name for lv in two_levels.levels] == ["Only"]
    wf = pr_dao.approval_of(env.tenant_id, pr.id)
    assert [s.level_name for s in wf.steps] == ["Area", "Management"]