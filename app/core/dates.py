import math
from datetime import date, datetime, time, timezone


def _parse_iso(value_text: str):
    if value_text.endswith("Z"):
        value_text = value_text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value_text)
    except ValueError:
        return None


def normalize_date(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        value_text = value.strip()
        if not value_text:
            return None
        parsed = _parse_iso(value_text)
        if parsed is not None:
            return parsed.date()
        try:
            return date.fromisoformat(value_text[:10])
        except ValueError:
            return None
    return None


def normalize_datetime(value):
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str) and value.strip():
        return _parse_iso(value.strip())
    return None


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def days_until(value, now=None):
    """Days from ``now`` until ``value``, rounded up. None when undated."""
    target = normalize_datetime(value)
    if target is None:
        return None
    if now is None:
        now = datetime.now(timezone.utc)
    now = normalize_datetime(now)
    delta = _naive_utc(target) - _naive_utc(now)
    return math.ceil(delta.total_seconds() / 86400)
