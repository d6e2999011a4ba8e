from datetime import UTC, datetime


def utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE audit columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def local_now() -> datetime:
    """Naive wall-clock now; appointment times are stored as local wall-clock."""
    return datetime.now().replace(microsecond=0)


def to_wall_clock(dt: datetime) -> datetime:
    """Drop any offset while keeping the wall-clock reading the client sent."""
    if dt.tzinfo is not None:
        return dt.replace(tzinfo=None)
    return dt
