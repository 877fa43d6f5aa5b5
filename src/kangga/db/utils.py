from datetime import UTC, datetime


def utc_now() -> datetime:
    """Naive UTC timestamp, as stored by the sqlite columns."""
    return datetime.now(UTC).replace(tzinfo=None)
