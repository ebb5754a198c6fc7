from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
QTY = Decimal("0.001")


def dec(x) -> Decimal:
    """Decimal from user input; raises ValueError on garbage."""
    if isinstance(x, Decimal):
        return x
    try:
        d = Decimal(str(x if x not in (None, "") else 0))
    except InvalidOperation:
        raise ValueError(f"Not a number: {x!r}")
    if not d.is_finite():
        raise ValueError(f"Not a number: {x!r}")
    return d


def money(x) -> Decimal:
    return dec(x).quantize(CENT, rounding=ROUND_HALF_UP)


def qty(x) -> Decimal:
    return dec(x).quantize(QTY, rounding=ROUND_HALF_UP)
