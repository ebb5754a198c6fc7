from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_date(d):
    if isinstance(d, datetime) or d is None:
        return d
    if isinstance(d, date):
        return datetime(d.year, d.month, d.day)
    d = str(d).strip()
    if not d:
        return None
    try:
        return datetime.fromisoformat(d.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return datetime.strptime(d, "%Y-%m-%d")
