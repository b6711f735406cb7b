"""Score totals, choice derivation and band resolution."""
from types import SimpleNamespace

import pytest

from therapy_modules.core.errors import InvalidScoreBands
from therapy_modules.services.scoring import (
    compute_total_score,
    derive_choice,
    find_band,
    find_overlaps,
    validate_bands,
)


def band(id, low, high, label=None):
    return SimpleNamespace(id=id, min=low, max=high, label=label or f"{low}-{high}")


PHQ9 = [band(5, 20, 27), band(1, 0, 4), band(3, 10, 14), band(2, 5, 9), band(4, 15, 19)]


@pytest.mark.parametrize("score", range(0, 28))
def test_disjoint_bands_resolve_to_exactly_one_containing_band(score):
    matches = [b for b in PHQ9 if b.min <= score <= b.max]
    resolved = find_band(PHQ9, score)
    assert len(matches) == 1
    assert resolved is matches[0]


def test_score_outside_every_band_resolves_to_none():
    assert find_band(PHQ9, 28) is None
    assert find_band(PHQ9, -1) is None
    assert find_band(PHQ9, None) is None


def test_gap_resolves_to_none():
    assert find_band([band(1, 0, 4), band(2, 10, 14)], 7) is None


def test_overlap_resolution_is_independent_of_storage_order():
    a, b = band(1, 0, 10, "wide"), band(2, 5, 9, "narrow")
    assert find_band([a, b], 6) is a
    assert find_band([b, a], 6) is a


def test_validate_bands_rejects_overlap():
    with pytest.raises(InvalidScoreBands) as exc:
        validate_bands([band(1, 0, 5, "low"), band(2, 5, 9, "mid")])
    assert exc.value.detail == [{"first": "low", "second": "mid", "range": [5, 5]}]


def test_validate_bands_rejects_inverted_range():
    with pytest.raises(InvalidScoreBands):
        validate_bands([band(1, 9, 5)])


def test_validate_bands_accepts_adjacent_ranges():
    validate_bands(PHQ9)
    assert find_overlaps(PHQ9) == []


def test_total_score_treats_missing_as_zero():
    answers = [{"chosen_score": 2}, {"chosen_score": None}, {}, {"chosen_score": 3}]
    assert compute_total_score(answers) == 5


def test_derive_choice_first_matching_score_wins():
    choices = [
        {"text": "Never", "score": 0},
        {"text": "Sometimes", "score": 1},
        {"text": "Often", "score": 2},
        {"text": "Always", "score": 3},
    ]
    assert derive_choice(choices, 2) == (2, "Often")
    duplicated = [{"text": "A", "score": 0}, {"text": "B", "score": 2}, {"text": "C", "score": 2}]
    assert derive_choice(duplicated, 2) == (1, "B")


def test_derive_choice_unmatched_score_leaves_fields_absent():
    assert derive_choice([{"text": "A", "score": 0}], 7) == (None, None)
    assert derive_choice([], 0) == (None, None)
    assert derive_choice([{"text": "A", "score": 0}], None) == (None, None)
