"""
Attempt state machine: start, save progress, submit, and read-time progress.

Attempts move ``started -> submitted``. Questionnaire and activity-diary
attempts carry different payloads on the same record; the save and submit
paths dispatch on ``module_type``. Status transitions and payload writes are
single conditional UPDATEs guarded by ``status = 'started'``, so a concurrent
submit can never be overwritten or applied twice.
"""
import logging
import math
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_modules.core.clock import utcnow
from therapy_modules.core.errors import (
    AlreadySubmitted,
    AssignmentRequired,
    Forbidden,
    IncompleteAnswers,
    InvalidAnswer,
    NotEnrolled,
    NotFound,
    SnapshotFailed,
)
from therapy_modules.models.assignment import ModuleAssignment
from therapy_modules.models.attempt import ModuleAttempt
from therapy_modules.models.enums import AccessPolicy, AssignmentStatus, AttemptStatus, ModuleType
from therapy_modules.models.module import Module
from therapy_modules.models.user import User
from therapy_modules.services import assignments, catalog, diary, directory, scoring, temporal
from therapy_modules.services.snapshot import build_module_snapshot

logger = logging.getLogger(__name__)


def _module_type(attempt: ModuleAttempt) -> ModuleType | None:
    try:
        return ModuleType(attempt.module_type)
    except ValueError:
        return None


def _round_percent(ratio: float) -> int:
    return int(math.floor(ratio * 100 + 0.5))


# ---------- start ----------

async def resolve_start_access(
    db: AsyncSession,
    user: User,
    module: Module,
    assignment_id: int | None = None,
) -> ModuleAssignment | None:
    """
    Gate a start by the module's access policy.

    An explicit assignment must be active and belong to the user and module.
    Without one, ``assigned`` modules need an active assignment and
    ``enrolled`` modules need an enrollment; ``open`` modules need nothing.
    """
    if assignment_id is not None:
        return await assignments.get_active_for(db, assignment_id, user.id, module.id)

    if module.access_policy == AccessPolicy.ASSIGNED:
        active = await assignments.find_active_assignment(db, user.id, module.id)
        if active is None:
            raise AssignmentRequired(detail={"module_id": module.id})
        return active

    if module.access_policy == AccessPolicy.ENROLLED:
        if not await catalog.is_enrolled(db, module.id, user.id):
            raise NotEnrolled(detail={"module_id": module.id})
    return None


async def count_submitted(db: AsyncSession, user_id: int, module_id: int) -> int:
    result = await db.execute(
        select(func.count(ModuleAttempt.id)).where(
            ModuleAttempt.user_id == user_id,
            ModuleAttempt.module_id == module_id,
            ModuleAttempt.status == AttemptStatus.SUBMITTED.value,
        )
    )
    return int(result.scalar_one())


async def start_attempt(
    db: AsyncSession,
    user_id: int,
    module_id: int,
    assignment_id: int | None = None,
    now: datetime | None = None,
) -> ModuleAttempt:
    """Create a ``started`` attempt with a content snapshot."""
    now = now or utcnow()
    module = await catalog.get_module(db, module_id)
    user = await directory.get_user(db, user_id)
    assignment = await resolve_start_access(db, user, module, assignment_id)

    try:
        snapshot = await build_module_snapshot(db, module.id)
    except NotFound as exc:
        raise SnapshotFailed(detail={"module_id": module.id}) from exc

    attempt = ModuleAttempt(
        user_id=user.id,
        therapist_id=user.therapist_id,
        program_id=module.program_id,
        module_id=module.id,
        module_type=module.type,
        status=AttemptStatus.STARTED.value,
        started_at=now,
        last_interaction_at=now,
        iteration=await count_submitted(db, user.id, module.id) + 1,
        due_at=assignment.due_at if assignment else None,
        assignment_id=assignment.id if assignment else None,
        module_snapshot=snapshot,
        answers=[],
        diary_entries=[],
    )
    db.add(attempt)
    await db.flush()

    if assignment is not None and assignment.status == AssignmentStatus.ASSIGNED:
        if await assignments.claim_for_attempt(db, assignment.id, attempt.id):
            logger.info("Assignment %s in progress via attempt %s", assignment.id, attempt.id)
        else:
            logger.warning(
                "Assignment %s was claimed concurrently; attempt %s proceeds unlinked",
                assignment.id, attempt.id,
            )
            attempt.due_at = None
            attempt.assignment_id = None

    await db.commit()
    await db.refresh(attempt)
    logger.info(
        "Attempt %s started: user=%s module=%s iteration=%s",
        attempt.id, user.id, module.id, attempt.iteration,
    )
    return attempt


# ---------- shared guards ----------

async def get_owned_attempt(db: AsyncSession, attempt_id: int, user_id: int) -> ModuleAttempt:
    attempt = await db.get(ModuleAttempt, attempt_id)
    if attempt is None:
        raise NotFound("Attempt not found", detail={"attempt_id": attempt_id})
    if attempt.user_id != user_id:
        raise Forbidden()
    return attempt


def _ensure_open(attempt: ModuleAttempt) -> None:
    if attempt.status == AttemptStatus.SUBMITTED:
        raise AlreadySubmitted(detail={"attempt_id": attempt.id})
    if attempt.status != AttemptStatus.STARTED:
        raise Forbidden("Attempt is no longer open", detail={"status": attempt.status}, code="ATTEMPT_CLOSED")


async def _write_if_started(db: AsyncSession, attempt: ModuleAttempt, values: dict[str, Any]) -> None:
    """Apply ``values`` only while the attempt is still started, then reload it."""
    attempt_id = attempt.id
    result = await db.execute(
        update(ModuleAttempt)
        .where(ModuleAttempt.id == attempt_id, ModuleAttempt.status == AttemptStatus.STARTED.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise AlreadySubmitted(detail={"attempt_id": attempt_id})
    await db.commit()
    await db.refresh(attempt)


# ---------- questionnaire content ----------

def _snapshot_questions(attempt: ModuleAttempt) -> list[dict[str, Any]] | None:
    snapshot = attempt.module_snapshot
    if not snapshot:
        return None
    return snapshot.get("questions") or []


async def _question_choices(db: AsyncSession, attempt: ModuleAttempt) -> dict[int, list[dict[str, Any]]]:
    """Question id -> choices, from the snapshot when there is one, else live content."""
    snapshot_questions = _snapshot_questions(attempt)
    if snapshot_questions is not None:
        return {q["id"]: q.get("choices") or [] for q in snapshot_questions}
    live = await catalog.get_questions(db, attempt.module_id)
    return {q.id: q.choices or [] for q in live}


async def _valid_question_ids(db: AsyncSession, attempt: ModuleAttempt) -> set[int]:
    live = {q.id for q in await catalog.get_questions(db, attempt.module_id)}
    snapshot = {q["id"] for q in _snapshot_questions(attempt) or []}
    return live | snapshot


def _derive_answers(
    answers: list[dict[str, Any]],
    choices_by_question: dict[int, list[dict[str, Any]]],
    keep_supplied: bool,
) -> list[dict[str, Any]]:
    derived = []
    for answer in answers:
        item = {"question_id": answer["question_id"], "chosen_score": answer.get("chosen_score")}
        supplied = answer.get("chosen_index") is not None or answer.get("chosen_text") is not None
        if keep_supplied and supplied:
            item["chosen_index"] = answer.get("chosen_index")
            item["chosen_text"] = answer.get("chosen_text")
        else:
            index, text = scoring.derive_choice(
                choices_by_question.get(answer["question_id"], []), answer.get("chosen_score")
            )
            if index is not None:
                item["chosen_index"] = index
                item["chosen_text"] = text
        derived.append(item)
    return derived


def _is_scored(answer: dict[str, Any]) -> bool:
    score = answer.get("chosen_score")
    return isinstance(score, int) and not isinstance(score, bool)


async def _prepare_answers(
    db: AsyncSession, attempt: ModuleAttempt, answers: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    unscored = [a.get("question_id") for a in answers if not _is_scored(a)]
    if unscored:
        raise InvalidAnswer("Every answer needs a chosen score", detail={"question_ids": unscored})
    valid_ids = await _valid_question_ids(db, attempt)
    seen: set[int] = set()
    invalid, duplicated = [], []
    for answer in answers:
        question_id = answer["question_id"]
        if question_id not in valid_ids:
            invalid.append(question_id)
        elif question_id in seen:
            duplicated.append(question_id)
        seen.add(question_id)
    if invalid:
        raise InvalidAnswer(detail={"question_ids": invalid})
    if duplicated:
        raise InvalidAnswer("Each question may be answered once", detail={"question_ids": duplicated})
    return _derive_answers(answers, await _question_choices(db, attempt), keep_supplied=True)


# ---------- save progress ----------

async def save_progress(
    db: AsyncSession,
    attempt_id: int,
    user_id: int,
    answers: list[dict[str, Any]] | None = None,
    entries: list[dict[str, Any]] | None = None,
    merge: bool = False,
    user_note: str | None = None,
    now: datetime | None = None,
) -> ModuleAttempt:
    """
    Store partial work without changing status.

    Questionnaire answers replace the stored set on every call. Diary
    entries are sanitized, then merged by (timestamp ms, label) or used as a
    full replacement.
    """
    now = now or utcnow()
    attempt = await get_owned_attempt(db, attempt_id, user_id)
    _ensure_open(attempt)
    module_type = _module_type(attempt)

    values: dict[str, Any] = {"last_interaction_at": now}
    if answers is not None:
        if module_type != ModuleType.QUESTIONNAIRE:
            raise InvalidAnswer("Answers are only accepted for questionnaire attempts")
        values["answers"] = await _prepare_answers(db, attempt, answers)
    if entries is not None:
        if module_type != ModuleType.ACTIVITY_DIARY:
            raise InvalidAnswer("Diary entries are only accepted for activity diary attempts")
        values["diary_entries"] = diary.apply_entries(attempt.diary_entries, entries, merge=merge)
    if user_note is not None:
        values["user_note"] = user_note

    await _write_if_started(db, attempt, values)
    return attempt


# ---------- submit ----------

def _finalize_questionnaire(
    attempt: ModuleAttempt, choices_by_question: dict[int, list[dict[str, Any]]]
) -> list[dict[str, Any]]:
    answers = list(attempt.answers or [])
    if choices_by_question:
        answered = {a["question_id"] for a in answers if _is_scored(a)}
        missing = [qid for qid in choices_by_question if qid not in answered]
        if missing:
            raise IncompleteAnswers(
                detail={"answered": len(choices_by_question) - len(missing), "total": len(choices_by_question)}
            )
    return _derive_answers(answers, choices_by_question, keep_supplied=False)


async def submit_attempt(
    db: AsyncSession,
    attempt_id: int,
    user_id: int,
    assignment_id: int | None = None,
    now: datetime | None = None,
) -> ModuleAttempt:
    """
    Finalize an attempt: timing, therapist copy, and scoring for questionnaires.

    The attempt is committed first; the assignment update runs afterwards in
    its own transaction and never undoes the submit.
    """
    now = now or utcnow()
    attempt = await get_owned_attempt(db, attempt_id, user_id)
    _ensure_open(attempt)
    if assignment_id is not None:
        await assignments.get_active_for(db, assignment_id, user_id, attempt.module_id)

    module_type = _module_type(attempt)
    duration = max(0, math.floor((now - attempt.started_at).total_seconds()))
    values: dict[str, Any] = {
        "status": AttemptStatus.SUBMITTED.value,
        "completed_at": now,
        "last_interaction_at": now,
        "duration_secs": duration,
        "therapist_id": await directory.current_therapist_id(db, user_id),
    }

    if module_type == ModuleType.QUESTIONNAIRE:
        answers = _finalize_questionnaire(attempt, await _question_choices(db, attempt))
        total = scoring.compute_total_score(answers)
        band = await scoring.resolve_score_band(db, attempt.module_id, total)
        values.update(
            answers=answers,
            total_score=total,
            score_band_label=band.label if band else None,
            week_start=temporal.week_start(now),
        )
    elif module_type == ModuleType.ACTIVITY_DIARY:
        values["week_start"] = temporal.week_start(now)

    sync = {
        "attempt_id": attempt.id,
        "user_id": attempt.user_id,
        "module_id": attempt.module_id,
        "therapist_id": values["therapist_id"],
        "assignment_id": assignment_id,
        "origin_assignment_id": attempt.assignment_id,
    }
    await _write_if_started(db, attempt, values)
    logger.info(
        "Attempt %s submitted: user=%s module=%s total=%s band=%s",
        attempt.id, user_id, attempt.module_id, attempt.total_score, attempt.score_band_label,
    )

    await assignments.sync_after_submit(db, sync)
    await db.refresh(attempt)
    return attempt


# ---------- therapist annotation ----------

async def annotate_attempt(db: AsyncSession, attempt_id: int, viewer: User, note: str) -> ModuleAttempt:
    """Set the therapist note; the only change allowed after submission."""
    attempt = await db.get(ModuleAttempt, attempt_id)
    if attempt is None:
        raise NotFound("Attempt not found", detail={"attempt_id": attempt_id})
    await directory.require_patient_access(db, viewer, attempt.user_id)
    attempt.therapist_note = note
    await db.commit()
    await db.refresh(attempt)
    return attempt


# ---------- percent complete ----------

def _diary_percent(entries: list[dict[str, Any]], now: datetime) -> int:
    window_start = temporal.week_start(now)
    days = set()
    for entry in entries:
        at = diary.parse_instant(entry.get("at"))
        if at is not None and window_start <= at <= now:
            days.add(temporal.local_date(at))
    return _round_percent(len(days) / temporal.days_elapsed_in_week(now))


def percent_complete(attempt: ModuleAttempt, now: datetime | None = None) -> int:
    """
    Read-time progress, 0..100. Never raises.

    Submitted attempts are 100. Questionnaires count answered snapshot
    questions; diaries count distinct local days with an entry this week over
    days elapsed this week.
    """
    try:
        if attempt.status == AttemptStatus.SUBMITTED:
            return 100
        now = now or utcnow()
        module_type = _module_type(attempt)
        if module_type == ModuleType.QUESTIONNAIRE:
            questions = _snapshot_questions(attempt) or []
            if not questions:
                return 0
            question_ids = {q["id"] for q in questions}
            answered = {a["question_id"] for a in attempt.answers or [] if _is_scored(a)} & question_ids
            return _round_percent(len(answered) / len(question_ids))
        if module_type == ModuleType.ACTIVITY_DIARY:
            return _diary_percent(attempt.diary_entries or [], now)
        return 0
    except Exception:
        logger.warning("percent_complete failed for attempt %s", getattr(attempt, "id", None), exc_info=True)
        return 0


# ---------- detail views ----------

async def attempt_detail(db: AsyncSession, attempt: ModuleAttempt, now: datetime | None = None) -> dict[str, Any]:
    """Per-question items, counts, progress and the joined score band."""
    questions = _snapshot_questions(attempt)
    if questions is None:
        questions = [
            {"id": q.id, "text": q.text, "choices": q.choices or []}
            for q in await catalog.get_questions(db, attempt.module_id)
        ]
    by_question = {a["question_id"]: a for a in attempt.answers or []}
    items = []
    for order, question in enumerate(questions, start=1):
        answer = by_question.get(question["id"], {})
        items.append(
            {
                "order": order,
                "question_id": question["id"],
                "question_text": question.get("text"),
                "choices": question.get("choices") or [],
                "chosen_score": answer.get("chosen_score"),
                "chosen_index": answer.get("chosen_index"),
                "chosen_text": answer.get("chosen_text"),
            }
        )

    band = None
    if attempt.total_score is not None:
        bands = (await scoring.load_bands(db, [attempt.module_id])).get(attempt.module_id, [])
        band = scoring.find_band(bands, attempt.total_score)

    return {
        "attempt": attempt,
        "band": band,
        "detail": {
            "items": items,
            "answered_count": sum(1 for item in items if _is_scored(item)),
            "total_questions": len(items),
            "percent_complete": percent_complete(attempt, now),
        },
    }


async def get_my_attempt_detail(db: AsyncSession, attempt_id: int, user_id: int) -> dict[str, Any]:
    attempt = await get_owned_attempt(db, attempt_id, user_id)
    return await attempt_detail(db, attempt)


async def get_attempt_detail_for_therapist(db: AsyncSession, attempt_id: int, viewer: User) -> dict[str, Any]:
    attempt = await db.get(ModuleAttempt, attempt_id)
    if attempt is None:
        raise NotFound("Attempt not found", detail={"attempt_id": attempt_id})
    await directory.require_patient_access(db, viewer, attempt.user_id)
    detail = await attempt_detail(db, attempt)
    detail["patient"] = await db.get(User, attempt.user_id)
    detail["module"] = await db.get(Module, attempt.module_id)
    return detail
