from utils.dates import parse_date
from utils.errors import ValidationFailed


def as_id(value, label: str = "id") -> int:
    """Record id from user input."""
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationFailed(f"{label} must be an integer id.", field=label)


def as_count(value, label: str):
    """Whole number >= 0, or None when empty."""
    if value in (None, ""):
        return None
    try:
        n = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationFailed(f"{label} must be a whole number.", field=label)
    if n < 0:
        raise ValidationFailed(f"{label} cannot be negative.", field=label)
    return n


def as_date(value, label: str):
    try:
        return parse_date(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{label} is not a valid date.", field=label)
