import pytest

from db.models.purchase import POStatus
from db.models.purchase_requisition import PurchaseRequisitionStatus as PRS
from db.models.rfq import RFQStatus
from db.models.supplier import SupplierStatus
from utils.errors import IllegalTransition, PreconditionFailed
from utils.transitions import TRANSITIONS, can_transition, check_transition, is_terminal


@pytest.mark.parametrize("enum_cls", list(TRANSITIONS))
def test_every_state_has_an_entry(enum_cls):
    table = TRANSITIONS[enum_cls]
    assert set(table) == set(enum_cls)
    for targets in table.values():
        assert all(isinstance(t, enum_cls) for t in targets)


@pytest.mark.parametrize(
    "state",
    [
        PRS.REJECTED,
        PRS.RECEIVED,
        PRS.CANCELLED,
        POStatus.FINALIZADA,
        RFQStatus.AWARDED,
        RFQStatus.CANCELLED,
        RFQStatus.CLOSED,
        RFQStatus.EXPIRED,
        SupplierStatus.REJECTED,
    ],
)
def test_terminal_states(state):
    assert is_terminal(state)
    for target in type(state):
        assert not can_transition(state, target)


def test_po_goes_back_to_approved_from_received_states():
    assert can_transition(POStatus.PARCIALMENTE_RECIBIDA, POStatus.APROBADA)
    assert can_transition(POStatus.ENTREGADA, POStatus.APROBADA)
    assert not can_transition(POStatus.EN_PROCESO, POStatus.APROBADA)
    assert not can_transition(POStatus.FINALIZADA, POStatus.PARCIALMENTE_RECIBIDA)


def test_check_transition_raises_with_details():
    with pytest.raises(IllegalTransition) as exc:
        check_transition("Requisition", PRS.DRAFT, PRS.APPROVED)
    err = exc.value
    assert isinstance(err, PreconditionFailed)
    assert err.code == "illegal_transition"
    assert err.http_status == 409
    assert err.details == {"entity": "Requisition", "current": "DRAFT", "target": "APPROVED"}


def test_check_transition_returns_target():
    assert check_transition("Supplier", SupplierStatus.SUSPENDED, SupplierStatus.ACTIVE) is (
        SupplierStatus.ACTIVE
    )
