from decimal import Decimal

import pytest

from utils.errors import ValidationFailed
from utils.money import dec, money, qty
from utils.parsing import as_count, as_date, as_id


def test_money_rounds_half_up_to_cents():
    assert money("10.005") == Decimal("10.01")
    assert money(1000 * Decimal("0.21")) == Decimal("210.00")


def test_qty_keeps_three_decimals():
    assert qty("1.23456") == Decimal("1.235")


def test_dec_rejects_garbage():
    with pytest.raises(ValueError):
        dec("abc")


@pytest.mark.parametrize("raw", ["NaN", "Infinity", "-inf"])
def test_dec_rejects_non_finite(raw):
    with pytest.raises(ValueError):
        dec(raw)


def test_parsing_helpers_raise_validation_errors():
    assert as_id("7", "po_id") == 7
    assert as_count("", "size") is None
    assert as_count(3, "size") == 3
    with pytest.raises(ValidationFailed) as exc:
        as_id("abc", "supplier_id")
    assert exc.value.details == {"field": "supplier_id"}
    with pytest.raises(ValidationFailed):
        as_id(None, "supplier_id")
    with pytest.raises(ValidationFailed):
        as_count("soon", "delivery_days")
    with pytest.raises(ValidationFailed):
        as_count(-1, "size")
    with pytest.raises(ValidationFailed):
        as_date("next tuesday", "expires_on")
