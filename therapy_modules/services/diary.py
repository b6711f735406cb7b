"""Activity diary entry sanitation and merging."""
import math
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from therapy_modules.core.config import get_settings

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# field -> (min, max)
RATING_RANGES = {
    "mood": (0, 100),
    "achievement": (0, 10),
    "closeness": (0, 10),
    "enjoyment": (0, 10),
}


def parse_instant(value: Any) -> datetime | None:
    """
    Accept an aware/naive datetime, an ISO-8601 string or epoch milliseconds.

    Naive values are read as UTC. Anything unparseable returns None.
    """
    if isinstance(value, bool) or value is None:
        return None
    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)):
            if not math.isfinite(value):
                return None
            parsed = EPOCH + timedelta(milliseconds=value)
        elif isinstance(value, str) and value.strip():
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        else:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        parsed = parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None
    # millisecond precision, so the merge key survives a round trip
    return parsed.replace(microsecond=parsed.microsecond // 1000 * 1000)


def to_epoch_ms(instant: datetime) -> int:
    return (instant - EPOCH) // timedelta(milliseconds=1)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_rating(value: Any, low: int, high: int) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return max(low, min(high, _round_half_up(value)))


def _clean_text(value: Any, limit: int) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()[:limit]


def sanitize_entry(raw: Mapping[str, Any]) -> dict[str, Any] | None:
    """Normalise one incoming entry; None when its timestamp is invalid."""
    settings = get_settings()
    at = parse_instant(raw.get("at"))
    if at is None:
        return None

    entry: dict[str, Any] = {"at": at.isoformat()}
    label = _clean_text(raw.get("label"), settings.diary_label_max_length)
    if label:
        entry["label"] = label
    entry["activity"] = _clean_text(raw.get("activity"), settings.diary_activity_max_length)

    for field, (low, high) in RATING_RANGES.items():
        rating = clamp_rating(raw.get(field), low, high)
        if rating is not None:
            entry[field] = rating
    return entry


def entry_key(entry: Mapping[str, Any]) -> tuple[int, str]:
    at = parse_instant(entry.get("at"))
    return (to_epoch_ms(at) if at else 0, entry.get("label") or "")


def _sorted(entries: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(entries, key=lambda e: entry_key(e)[0])


def apply_entries(
    existing: list[dict[str, Any]] | None,
    incoming: Iterable[Mapping[str, Any]],
    merge: bool = False,
) -> list[dict[str, Any]]:
    """
    Sanitize ``incoming`` and combine it with ``existing``.

    With ``merge`` the entries are keyed by (timestamp ms, label) and incoming
    ones overwrite stored ones with the same key; otherwise incoming replaces
    the stored list. The result is sorted by timestamp ascending.
    """
    cleaned = [e for e in (sanitize_entry(raw) for raw in incoming) if e is not None]
    if not merge:
        return _sorted(cleaned)

    by_key = {entry_key(e): e for e in existing or []}
    for entry in cleaned:
        by_key[entry_key(entry)] = entry
    return _sorted(by_key.values())
