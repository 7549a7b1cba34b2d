from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def timestamp_ms() -> int:
    """Milliseconds since the epoch, used for temporary ids and order numbers."""
    return int(utc_now().timestamp() * 1000)
