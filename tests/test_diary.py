"""Diary entry sanitation and merge."""
from datetime import datetime, timezone

import pytest

from therapy_modules.services.diary import apply_entries, clamp_rating, entry_key, parse_instant, sanitize_entry


def test_parse_instant_accepts_iso_z_and_epoch_ms():
    expected = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)
    assert parse_instant("2024-01-15T09:00:00Z") == expected
    assert parse_instant("2024-01-15T10:00:00+01:00") == expected
    assert parse_instant(int(expected.timestamp() * 1000)) == expected
    assert parse_instant(datetime(2024, 1, 15, 9, 0)) == expected


@pytest.mark.parametrize(
    "value",
    [
        None,
        "",
        "yesterday",
        True,
        float("nan"),
        {"at": 1},
        [],
        "0001-01-01T00:00:00+05:00",
        "9999-12-31T23:30:00-05:00",
    ],
)
def test_parse_instant_rejects_garbage(value):
    assert parse_instant(value) is None


def test_parse_instant_truncates_to_milliseconds():
    parsed = parse_instant("2024-01-15T09:00:00.123456+00:00")
    assert parsed.microsecond == 123000


@pytest.mark.parametrize(
    "value,low,high,expected",
    [
        (150, 0, 100, 100),
        (-3, 0, 10, 0),
        (4.5, 0, 10, 5),
        (4.49, 0, 10, 4),
        (7, 0, 10, 7),
        ("7", 0, 10, None),
        (True, 0, 10, None),
        (None, 0, 10, None),
        (float("inf"), 0, 10, None),
    ],
)
def test_clamp_rating(value, low, high, expected):
    assert clamp_rating(value, low, high) == expected


def test_sanitize_entry_trims_caps_and_clamps():
    entry = sanitize_entry(
        {
            "at": "2024-01-15T09:00:00Z",
            "label": "  " + "x" * 150 + "  ",
            "activity": " walk " + "y" * 2000,
            "mood": 120,
            "achievement": 3.5,
            "closeness": "lots",
            "enjoyment": -1,
            "extra": "ignored",
        }
    )
    assert entry["at"] == "2024-01-15T09:00:00+00:00"
    assert entry["label"] == "x" * 100
    assert len(entry["activity"]) == 1000
    assert entry["activity"].startswith("walk ")
    assert entry["mood"] == 100
    assert entry["achievement"] == 4
    assert "closeness" not in entry
    assert entry["enjoyment"] == 0
    assert "extra" not in entry


def test_sanitize_entry_drops_invalid_timestamp_and_allows_empty_activity():
    assert sanitize_entry({"at": "not a date", "activity": "run"}) is None
    entry = sanitize_entry({"at": "2024-01-15T09:00:00Z", "label": "   "})
    assert entry == {"at": "2024-01-15T09:00:00+00:00", "activity": ""}


def test_replace_mode_discards_existing_and_sorts():
    existing = [{"at": "2024-01-15T07:00:00+00:00", "activity": "old"}]
    incoming = [
        {"at": "2024-01-16T09:00:00Z", "activity": "b"},
        {"at": "2024-01-15T09:00:00Z", "activity": "a"},
        {"at": "garbage", "activity": "dropped"},
    ]
    result = apply_entries(existing, incoming, merge=False)
    assert [e["activity"] for e in result] == ["a", "b"]


def test_merge_overwrites_entries_with_same_key():
    existing = [
        {"at": "2024-01-15T09:00:00+00:00", "label": "Morning", "activity": "walk", "mood": 40},
        {"at": "2024-01-15T13:00:00+00:00", "label": "Lunch", "activity": "ate", "mood": 50},
        {"at": "2024-01-15T18:00:00+00:00", "activity": "tv", "mood": 60},
    ]
    incoming = [
        {"at": "2024-01-15T09:00:00.000Z", "label": "Morning", "activity": "run", "mood": 70},
        {"at": int(datetime(2024, 1, 15, 13, tzinfo=timezone.utc).timestamp() * 1000),
         "label": "Lunch", "activity": "cooked", "mood": 80},
    ]
    result = apply_entries(existing, incoming, merge=True)

    assert len(result) == 3
    assert [e["activity"] for e in result] == ["run", "cooked", "tv"]
    assert [e["mood"] for e in result] == [70, 80, 60]


def test_merge_same_time_different_label_is_a_new_entry():
    existing = [{"at": "2024-01-15T09:00:00+00:00", "label": "Morning", "activity": "walk"}]
    result = apply_entries(existing, [{"at": "2024-01-15T09:00:00Z", "activity": "unlabelled"}], merge=True)
    assert len(result) == 2
    assert {entry_key(e)[1] for e in result} == {"Morning", ""}
