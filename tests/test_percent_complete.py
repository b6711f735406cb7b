"""Read-time progress for in-progress attempts."""
from datetime import datetime, timedelta, timezone

from therapy_modules.models.attempt import ModuleAttempt
from therapy_modules.models.enums import AttemptStatus, ModuleType
from therapy_modules.services.attempts import percent_complete

from conftest import MONDAY

WEDNESDAY_NOON = MONDAY + timedelta(days=2, hours=12)


def diary_attempt(entries, status=AttemptStatus.STARTED):
    return ModuleAttempt(
        id=1,
        module_type=ModuleType.ACTIVITY_DIARY.value,
        status=status.value,
        started_at=MONDAY,
        diary_entries=entries,
        answers=[],
    )


def questionnaire_attempt(question_ids, answered_ids):
    return ModuleAttempt(
        id=2,
        module_type=ModuleType.QUESTIONNAIRE.value,
        status=AttemptStatus.STARTED.value,
        module_snapshot={"title": "Q", "questions": [{"id": i, "text": "", "choices": []} for i in question_ids]},
        answers=[{"question_id": i, "chosen_score": 1} for i in answered_ids],
        diary_entries=[],
    )


def test_diary_two_of_three_days_rounds_to_67():
    attempt = diary_attempt(
        [
            {"at": (MONDAY + timedelta(hours=9)).isoformat(), "activity": "walk"},
            {"at": (MONDAY + timedelta(hours=19)).isoformat(), "activity": "read"},
            {"at": (MONDAY + timedelta(days=2, hours=8)).isoformat(), "activity": "run"},
        ]
    )
    assert percent_complete(attempt, now=WEDNESDAY_NOON) == 67


def test_diary_ignores_entries_outside_this_week_or_in_the_future():
    attempt = diary_attempt(
        [
            {"at": (MONDAY - timedelta(hours=1)).isoformat(), "activity": "last week"},
            {"at": (MONDAY + timedelta(hours=9)).isoformat(), "activity": "walk"},
            {"at": (WEDNESDAY_NOON + timedelta(days=1)).isoformat(), "activity": "tomorrow"},
        ]
    )
    assert percent_complete(attempt, now=WEDNESDAY_NOON) == 33


def test_diary_on_monday_with_an_entry_is_complete():
    attempt = diary_attempt([{"at": (MONDAY + timedelta(hours=1)).isoformat(), "activity": "x"}])
    assert percent_complete(attempt, now=MONDAY + timedelta(hours=2)) == 100


def test_questionnaire_counts_answered_snapshot_questions():
    assert percent_complete(questionnaire_attempt([1, 2, 3], [1, 2]), now=WEDNESDAY_NOON) == 67
    assert percent_complete(questionnaire_attempt([1, 2, 3, 4, 5, 6, 7, 8], [1]), now=WEDNESDAY_NOON) == 13
    # answers for questions outside the snapshot do not count
    assert percent_complete(questionnaire_attempt([1, 2], [1, 99]), now=WEDNESDAY_NOON) == 50


def test_questionnaire_ignores_answers_without_a_score():
    attempt = questionnaire_attempt([1, 2], [1])
    attempt.answers = attempt.answers + [{"question_id": 2, "chosen_score": None}]
    assert percent_complete(attempt, now=WEDNESDAY_NOON) == 50


def test_questionnaire_without_questions_is_zero():
    assert percent_complete(questionnaire_attempt([], []), now=WEDNESDAY_NOON) == 0


def test_submitted_is_always_100():
    assert percent_complete(diary_attempt([], status=AttemptStatus.SUBMITTED)) == 100


def test_other_module_types_are_zero():
    attempt = ModuleAttempt(id=3, module_type=ModuleType.PSYCHOEDUCATION.value, status="started")
    assert percent_complete(attempt, now=WEDNESDAY_NOON) == 0


def test_internal_failure_degrades_to_zero():
    attempt = questionnaire_attempt([1], [1])
    attempt.module_snapshot = {"questions": [{"no_id": True}]}
    assert percent_complete(attempt, now=WEDNESDAY_NOON) == 0

    naive_now = datetime(2024, 1, 17, 12, 0)
    assert percent_complete(diary_attempt([]), now=naive_now) == 0


def test_unknown_module_type_is_zero():
    attempt = ModuleAttempt(id=4, module_type="mystery", status="started")
    assert percent_complete(attempt, now=datetime.now(timezone.utc)) == 0
