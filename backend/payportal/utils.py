from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime; every stored timestamp uses this form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
