"""Current instant, kept behind one function so tests can pin it."""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
