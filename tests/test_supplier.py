import pytest

from dao import supplier as supplier_dao
from db.models.supplier import SupplierStatus
from utils.errors import IllegalTransition, PreconditionFailed, ValidationFailed

COMPANY = {"legal_name": "Ferreteria Centro SA", "tax_id": "30-33333333-3", "address": "Av. Siempre Viva 742"}
BANK = {"bank_name": "Banco Nacion", "account_holder": "Ferreteria Centro SA", "cbu": "0110000000000000000001"}


@pytest.fixture()
def invited(ctx, env):
    return supplier_dao.create_supplier(
        env.tenant_id, "Ferreteria Centro", "30-33333333-3", email="hola@centro.example"
    )


def test_new_supplier_starts_invited_with_code_from_tax_id(invited):
    assert invited.status == SupplierStatus.INVITED
    assert invited.code == "30-33333333-3"


def test_duplicate_tax_id_is_refused(invited, env):
    with pytest.raises(PreconditionFailed):
        supplier_dao.create_supplier(env.tenant_id, "Copycat", "30-33333333-3", code="OTHER")
    with pytest.raises(ValidationFailed):
        supplier_dao.create_supplier(env.tenant_id, "", "30-9")


def test_onboarding_to_active(invited, env):
    s = supplier_dao.start_onboarding(env.tenant_id, invited.id)
    assert s.status == SupplierStatus.PENDING_COMPLETION

    with pytest.raises(PreconditionFailed) as exc:
        supplier_dao.submit_supplier(env.tenant_id, s.id)
    assert exc.value.details["missing"] == ["company_data", "bank_data"]

    supplier_dao.update_company_data(env.tenant_id, s.id, {**COMPANY, "address": ""})
    assert not s.company_data_complete
    supplier_dao.update_company_data(env.tenant_id, s.id, COMPANY)
    supplier_dao.update_bank_data(env.tenant_id, s.id, BANK)
    assert s.company_data_complete and s.bank_data_complete

    s = supplier_dao.submit_supplier(env.tenant_id, s.id)
    assert s.status == SupplierStatus.PENDING_APPROVAL
    with pytest.raises(PreconditionFailed):
        supplier_dao.update_bank_data(env.tenant_id, s.id, BANK)

    s = supplier_dao.approve_supplier(env.tenant_id, s.id, env.users["approver"], "docs ok")
    assert s.status == SupplierStatus.ACTIVE
    assert s.decided_by_id == env.users["approver"]


def test_suspend_and_reactivate(ctx, env):
    s = supplier_dao.suspend_supplier(env.tenant_id, env.supplier_id, "expired insurance")
    assert s.status == SupplierStatus.SUSPENDED
    assert s.status_reason == "expired insurance"
    with pytest.raises(PreconditionFailed):
        supplier_dao.require_active_supplier(env.tenant_id, env.supplier_id)
    s = supplier_dao.reactivate_supplier(env.tenant_id, env.supplier_id)
    assert s.status == SupplierStatus.ACTIVE


def test_reject_needs_reason_and_is_final(invited, env):
    supplier_dao.start_onboarding(env.tenant_id, invited.id)
    supplier_dao.update_company_data(env.tenant_id, invited.id, COMPANY)
    supplier_dao.update_bank_data(env.tenant_id, invited.id, BANK)
    supplier_dao.submit_supplier(env.tenant_id, invited.id)
    with pytest.raises(ValidationFailed):
        supplier_dao.reject_supplier(env.tenant_id, invited.id, "")
    s = supplier_dao.reject_supplier(env.tenant_id, invited.id, "bad references")
    assert s.status == SupplierStatus.REJECTED
    with pytest.raises(IllegalTransition):
        supplier_dao.approve_supplier(env.tenant_id, invited.id)
    with pytest.raises(PreconditionFailed):
        supplier_dao.reactivate_supplier(env.tenant_id, invited.id)


def test_documents(invited, env):
    d = supplier_dao.add_supplier_document(
        env.tenant_id, invited.id, "afip", "constancia.pdf", expires_on="2030-01-31"
    )
    assert d.doc_type == "AFIP"
    assert str(d.expires_on) == "2030-01-31"
    assert [x.id for x in supplier_dao.list_supplier_documents(env.tenant_id, invited.id)] == [d.id]
    with pytest.raises(ValidationFailed):
        supplier_dao.add_supplier_document(env.tenant_id, invited.id, "", "x.pdf")
