from datetime import UTC, datetime, timedelta


def utcnow_naive():
    """Return current UTC timestamp as naive datetime for DB timestamp columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def hours_ago(hours):
    return utcnow_naive() - timedelta(hours=hours)


def parse_iso_datetime(raw_value):
    """Parse an ISO-8601 string into a naive UTC datetime, or None."""
    if isinstance(raw_value, datetime):
        parsed = raw_value
    else:
        raw = str(raw_value or '').strip()
        if not raw:
            return None
        try:
            parsed = datetime.fromisoformat(raw.replace('Z', '+00:00'))
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        return parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def isoformat_or_none(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)
