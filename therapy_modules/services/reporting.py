"""Read-side projections over attempts: patient history and therapist dashboards."""
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_modules.core.config import get_settings
from therapy_modules.core.errors import EngineError
from therapy_modules.models.attempt import ModuleAttempt
from therapy_modules.models.enums import AttemptStatus
from therapy_modules.models.module import Module
from therapy_modules.models.user import User
from therapy_modules.services import directory, scoring
from therapy_modules.services.attempts import percent_complete

HISTORY_STATUSES = ("submitted", "active")


def clamp_limit(limit: int | None, default: int, maximum: int) -> int:
    if not limit or limit < 1:
        return default
    return min(limit, maximum)


def make_cursor(key: datetime, attempt_id: int) -> str:
    return f"{key.isoformat()}|{attempt_id}"


def _parse_cursor(cursor: str | None) -> tuple[datetime, int | None] | None:
    """``<iso instant>|<attempt id>``; a bare instant is accepted and pages strictly before it."""
    if cursor is None:
        return None
    instant, _, attempt_id = cursor.partition("|")
    try:
        parsed = datetime.fromisoformat(instant.replace("Z", "+00:00"))
        last_id = int(attempt_id) if attempt_id else None
    except ValueError as exc:
        raise EngineError("Invalid cursor", detail={"cursor": cursor}, code="INVALID_CURSOR") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed, last_id


async def _with_bands(db: AsyncSession, attempts: list[ModuleAttempt]) -> list[dict[str, Any]]:
    bands = await scoring.load_bands(db, {a.module_id for a in attempts})
    rows = []
    for attempt in attempts:
        rows.append(
            {
                "attempt": attempt,
                "band": scoring.find_band(bands.get(attempt.module_id, []), attempt.total_score),
                "percent_complete": percent_complete(attempt),
            }
        )
    return rows


async def list_my_attempts(
    db: AsyncSession,
    user_id: int,
    status: str = "submitted",
    module_id: int | None = None,
    limit: int | None = None,
    cursor: str | None = None,
) -> dict[str, Any]:
    """
    A user's own attempts, newest first.

    ``submitted`` pages by ``completed_at``; ``active`` lists started
    attempts and pages by ``last_interaction_at``. ``cursor`` is the previous
    page's ``next_cursor``: the boundary instant plus the last attempt id, so
    rows sharing that instant are not skipped.
    """
    settings = get_settings()
    if status not in HISTORY_STATUSES:
        raise EngineError("Invalid status filter", detail={"status": status}, code="INVALID_STATUS")
    lim = clamp_limit(limit, settings.history_default_limit, settings.history_max_limit)
    before = _parse_cursor(cursor)

    if status == "submitted":
        key = ModuleAttempt.completed_at
        wanted = AttemptStatus.SUBMITTED.value
    else:
        key = ModuleAttempt.last_interaction_at
        wanted = AttemptStatus.STARTED.value

    stmt = select(ModuleAttempt).where(ModuleAttempt.user_id == user_id, ModuleAttempt.status == wanted)
    if module_id is not None:
        stmt = stmt.where(ModuleAttempt.module_id == module_id)
    if before is not None:
        instant, last_id = before
        if last_id is None:
            stmt = stmt.where(key < instant)
        else:
            stmt = stmt.where(or_(key < instant, and_(key == instant, ModuleAttempt.id < last_id)))
    stmt = stmt.order_by(key.desc(), ModuleAttempt.id.desc()).limit(lim)

    attempts = list((await db.execute(stmt)).scalars().all())
    next_cursor = None
    if len(attempts) == lim:
        last = attempts[-1]
        last_key = last.completed_at if status == "submitted" else last.last_interaction_at
        next_cursor = make_cursor(last_key, last.id)
    return {"attempts": await _with_bands(db, attempts), "next_cursor": next_cursor}


async def therapist_latest(db: AsyncSession, viewer: User, limit: int | None = None) -> list[dict[str, Any]]:
    """Latest submitted attempt per (patient, module) among the viewer's patients."""
    directory.require_clinician(viewer)
    settings = get_settings()
    lim = clamp_limit(limit, settings.therapist_latest_default_limit, settings.therapist_latest_max_limit)

    ranked = (
        select(
            ModuleAttempt.id.label("attempt_id"),
            func.row_number()
            .over(
                partition_by=(ModuleAttempt.user_id, ModuleAttempt.module_id),
                order_by=(ModuleAttempt.completed_at.desc(), ModuleAttempt.id.desc()),
            )
            .label("rn"),
        )
        .where(
            ModuleAttempt.therapist_id == viewer.id,
            ModuleAttempt.status == AttemptStatus.SUBMITTED.value,
        )
        .subquery()
    )
    stmt = (
        select(ModuleAttempt, User, Module)
        .join(ranked, ranked.c.attempt_id == ModuleAttempt.id)
        .join(User, User.id == ModuleAttempt.user_id)
        .join(Module, Module.id == ModuleAttempt.module_id)
        .where(ranked.c.rn == 1)
        .order_by(ModuleAttempt.completed_at.desc(), ModuleAttempt.id.desc())
        .limit(lim)
    )
    result = (await db.execute(stmt)).all()

    bands = await scoring.load_bands(db, {attempt.module_id for attempt, _, _ in result})
    return [
        {
            "attempt": attempt,
            "band": scoring.find_band(bands.get(attempt.module_id, []), attempt.total_score),
            "user": user,
            "module": module,
        }
        for attempt, user, module in result
    ]


async def patient_module_timeline(
    db: AsyncSession, viewer: User, patient_id: int, module_id: int
) -> list[dict[str, Any]]:
    """Every attempt a patient made on a module, any status, oldest first."""
    await directory.require_patient_access(db, viewer, patient_id)
    result = await db.execute(
        select(ModuleAttempt)
        .where(ModuleAttempt.user_id == patient_id, ModuleAttempt.module_id == module_id)
        .order_by(ModuleAttempt.started_at.asc(), ModuleAttempt.id.asc())
    )
    return await _with_bands(db, list(result.scalars().all()))
