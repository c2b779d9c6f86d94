from datetime import datetime, timezone


def escape_like(value: str) -> str:
    """Escape SQL LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def utc_now() -> datetime:
    """Naive UTC now, comparable with values read back from SQLite."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime | None) -> datetime | None:
    # SQLite returns naive datetimes, PostgreSQL returns aware ones
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
