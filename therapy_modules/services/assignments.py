"""Assignment lifecycle and its synchronisation with attempts."""
import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_modules.core.clock import utcnow
from therapy_modules.core.config import get_settings
from therapy_modules.core.errors import ActiveAssignmentExists, Forbidden, InvalidAssignment, NotFound
from therapy_modules.models.assignment import AssignmentSyncOutbox, ModuleAssignment
from therapy_modules.models.enums import ACTIVE_ASSIGNMENT_STATUSES, AssignmentStatus
from therapy_modules.models.module import Module
from therapy_modules.models.user import User
from therapy_modules.services import directory

logger = logging.getLogger(__name__)

PATIENT_STATUS_FILTERS = {
    "active": ACTIVE_ASSIGNMENT_STATUSES,
    "completed": (AssignmentStatus.COMPLETED.value,),
    "all": tuple(s.value for s in AssignmentStatus),
}


def _list_order():
    # earliest due first, undated last, then newest
    return (
        ModuleAssignment.due_at.is_(None),
        ModuleAssignment.due_at.asc(),
        ModuleAssignment.created_at.desc(),
        ModuleAssignment.id.desc(),
    )


async def find_active_assignment(
    db: AsyncSession,
    user_id: int,
    module_id: int,
    therapist_id: int | None = None,
) -> ModuleAssignment | None:
    """
    The active assignment for (user, module), optionally narrowed by therapist.

    ``in_progress`` wins over ``assigned``, then the earliest ``due_at``.
    """
    stmt = select(ModuleAssignment).where(
        ModuleAssignment.user_id == user_id,
        ModuleAssignment.module_id == module_id,
        ModuleAssignment.status.in_(ACTIVE_ASSIGNMENT_STATUSES),
    )
    if therapist_id is not None:
        stmt = stmt.where(ModuleAssignment.therapist_id == therapist_id)
    stmt = stmt.order_by(
        case((ModuleAssignment.status == AssignmentStatus.IN_PROGRESS.value, 0), else_=1),
        *_list_order(),
    ).limit(1)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_active_for(db: AsyncSession, assignment_id: int, user_id: int, module_id: int) -> ModuleAssignment:
    """An explicitly named assignment, which must be active and belong to the user and module."""
    assignment = await db.get(ModuleAssignment, assignment_id)
    if (
        assignment is None
        or assignment.user_id != user_id
        or assignment.module_id != module_id
        or assignment.status not in ACTIVE_ASSIGNMENT_STATUSES
    ):
        raise InvalidAssignment(detail={"assignment_id": assignment_id})
    return assignment


async def claim_for_attempt(db: AsyncSession, assignment_id: int, attempt_id: int) -> bool:
    """
    Flip ``assigned -> in_progress`` and link the attempt, in the caller's transaction.

    Returns False when another start already claimed the assignment.
    """
    result = await db.execute(
        update(ModuleAssignment)
        .where(
            ModuleAssignment.id == assignment_id,
            ModuleAssignment.status == AssignmentStatus.ASSIGNED.value,
        )
        .values(
            status=AssignmentStatus.IN_PROGRESS.value,
            latest_attempt_id=attempt_id,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _locate_for_submit(
    db: AsyncSession,
    user_id: int,
    module_id: int,
    therapist_id: int | None,
    assignment_id: int | None,
    origin_assignment_id: int | None,
) -> ModuleAssignment | None:
    for candidate_id in (assignment_id, origin_assignment_id):
        if candidate_id is None:
            continue
        candidate = await db.get(ModuleAssignment, candidate_id)
        if candidate is not None and candidate.status in ACTIVE_ASSIGNMENT_STATUSES:
            return candidate
    if therapist_id is not None:
        narrowed = await find_active_assignment(db, user_id, module_id, therapist_id)
        if narrowed is not None:
            return narrowed
    return await find_active_assignment(db, user_id, module_id)


async def complete_for_attempt(
    db: AsyncSession,
    attempt_id: int,
    user_id: int,
    module_id: int,
    therapist_id: int | None = None,
    assignment_id: int | None = None,
    origin_assignment_id: int | None = None,
) -> int | None:
    """
    Mark the relevant active assignment completed and point it at the attempt.

    Returns the completed assignment id, or None when nothing matched.
    Does not commit.
    """
    target = await _locate_for_submit(
        db, user_id, module_id, therapist_id, assignment_id, origin_assignment_id
    )
    if target is None:
        return None
    result = await db.execute(
        update(ModuleAssignment)
        .where(
            ModuleAssignment.id == target.id,
            ModuleAssignment.status.in_(ACTIVE_ASSIGNMENT_STATUSES),
        )
        .values(
            status=AssignmentStatus.COMPLETED.value,
            latest_attempt_id=attempt_id,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None
    logger.info("Assignment %s completed by attempt %s", target.id, attempt_id)
    return target.id


async def sync_after_submit(db: AsyncSession, sync: dict[str, Any]) -> int | None:
    """
    Best-effort completion after a committed submit.

    A database failure is logged and parked in the outbox instead of being
    raised, so it never undoes the submit.
    """
    try:
        completed = await complete_for_attempt(db, **sync)
        await db.commit()
        return completed
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Assignment sync failed for attempt %s; queued for retry", sync["attempt_id"])
        await _enqueue(db, sync, exc)
        return None


async def _enqueue(db: AsyncSession, sync: dict[str, Any], exc: Exception) -> None:
    try:
        db.add(
            AssignmentSyncOutbox(
                attempt_id=sync["attempt_id"],
                assignment_id=sync.get("assignment_id") or sync.get("origin_assignment_id"),
                user_id=sync["user_id"],
                module_id=sync["module_id"],
                therapist_id=sync.get("therapist_id"),
                error=str(exc)[:2000],
            )
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not queue assignment sync for attempt %s", sync["attempt_id"])


async def _record_retry_failure(db: AsyncSession, row_id: int, exc: Exception) -> None:
    try:
        await db.execute(
            update(AssignmentSyncOutbox)
            .where(AssignmentSyncOutbox.id == row_id)
            .values(tries=AssignmentSyncOutbox.tries + 1, error=str(exc)[:2000])
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not record failed retry for outbox row %s", row_id)


async def _prune_outbox(db: AsyncSession, before: datetime) -> int:
    try:
        result = await db.execute(
            delete(AssignmentSyncOutbox).where(
                AssignmentSyncOutbox.processed_at.is_not(None), AssignmentSyncOutbox.processed_at < before
            )
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not prune the assignment sync outbox")
        return 0
    return result.rowcount or 0


async def reconcile_assignment_syncs(
    db: AsyncSession, limit: int = 100, now: datetime | None = None
) -> dict[str, int]:
    """
    Replay pending outbox rows.

    Rows that still fail stay pending with ``tries`` bumped until they reach
    ``assignment_sync_max_tries``; after that they are left for inspection and
    counted as exhausted. Replayed rows older than the retention window are
    deleted.
    """
    settings = get_settings()
    now = now or utcnow()
    result = await db.execute(
        select(AssignmentSyncOutbox)
        .where(
            AssignmentSyncOutbox.processed_at.is_(None),
            AssignmentSyncOutbox.tries < settings.assignment_sync_max_tries,
        )
        .order_by(AssignmentSyncOutbox.id)
        .limit(limit)
    )
    # plain copies: a rollback below expires every loaded row
    pending = [
        {
            "id": row.id,
            "attempt_id": row.attempt_id,
            "user_id": row.user_id,
            "module_id": row.module_id,
            "therapist_id": row.therapist_id,
            "assignment_id": row.assignment_id,
        }
        for row in result.scalars().all()
    ]
    done = failed = 0
    for row in pending:
        row_id = row.pop("id")
        try:
            await complete_for_attempt(db, **row)
            await db.execute(
                update(AssignmentSyncOutbox)
                .where(AssignmentSyncOutbox.id == row_id)
                .values(processed_at=now, tries=AssignmentSyncOutbox.tries + 1)
            )
            await db.commit()
            done += 1
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Assignment sync retry failed for outbox row %s", row_id)
            await _record_retry_failure(db, row_id, exc)
            failed += 1

    exhausted = await db.scalar(
        select(func.count())
        .select_from(AssignmentSyncOutbox)
        .where(
            AssignmentSyncOutbox.processed_at.is_(None),
            AssignmentSyncOutbox.tries >= settings.assignment_sync_max_tries,
        )
    )
    if exhausted:
        logger.warning("%s assignment sync rows exhausted their retries", exhausted)
    pruned = await _prune_outbox(db, now - timedelta(days=settings.assignment_sync_retention_days))
    return {
        "processed": done,
        "failed": failed,
        "pending": len(pending) - done,
        "exhausted": exhausted or 0,
        "pruned": pruned,
    }


# ---------- therapist / patient management ----------

async def create_assignment(
    db: AsyncSession,
    therapist: User,
    user_id: int,
    module_id: int,
    due_at: datetime | None = None,
    recurrence: dict[str, Any] | None = None,
    notes: str | None = None,
) -> ModuleAssignment:
    directory.require_clinician(therapist)

    module = await db.get(Module, module_id)
    if module is None:
        raise NotFound("Module not found", detail={"module_id": module_id})

    patient = await db.get(User, user_id)
    if patient is None or patient.therapist_id != therapist.id:
        raise Forbidden("You are not this user's therapist")

    if await find_active_assignment(db, user_id, module_id) is not None:
        raise ActiveAssignmentExists(detail={"user_id": user_id, "module_id": module_id})

    assignment = ModuleAssignment(
        user_id=user_id,
        therapist_id=therapist.id,
        program_id=module.program_id,
        module_id=module.id,
        module_type=module.type,
        status=AssignmentStatus.ASSIGNED.value,
        due_at=due_at,
        recurrence=recurrence,
        notes=notes,
    )
    conflict = {"user_id": user_id, "module_id": module.id}
    db.add(assignment)
    try:
        await db.commit()
    except IntegrityError as exc:
        # lost a race against a concurrent create
        await db.rollback()
        raise ActiveAssignmentExists(detail=conflict) from exc
    await db.refresh(assignment)
    logger.info(
        "Assignment %s created: therapist=%s user=%s module=%s",
        assignment.id, therapist.id, user_id, module.id,
    )
    return assignment


async def list_for_therapist(db: AsyncSession, therapist: User) -> list[ModuleAssignment]:
    directory.require_clinician(therapist)
    result = await db.execute(
        select(ModuleAssignment)
        .where(
            ModuleAssignment.therapist_id == therapist.id,
            ModuleAssignment.status.in_(ACTIVE_ASSIGNMENT_STATUSES),
        )
        .order_by(*_list_order())
    )
    return list(result.scalars().all())


async def list_for_patient(db: AsyncSession, user_id: int, status: str = "active") -> list[ModuleAssignment]:
    statuses = PATIENT_STATUS_FILTERS.get(status, PATIENT_STATUS_FILTERS["all"])
    result = await db.execute(
        select(ModuleAssignment)
        .where(ModuleAssignment.user_id == user_id, ModuleAssignment.status.in_(statuses))
        .order_by(*_list_order())
    )
    return list(result.scalars().all())


async def _get_issued(db: AsyncSession, therapist: User, assignment_id: int) -> ModuleAssignment:
    directory.require_clinician(therapist)
    assignment = await db.get(ModuleAssignment, assignment_id)
    if assignment is None or assignment.therapist_id != therapist.id:
        raise NotFound("Assignment not found", detail={"assignment_id": assignment_id})
    return assignment


async def update_status(
    db: AsyncSession,
    therapist: User,
    assignment_id: int,
    status: AssignmentStatus,
) -> ModuleAssignment:
    assignment = await _get_issued(db, therapist, assignment_id)
    conflict = {"user_id": assignment.user_id, "module_id": assignment.module_id}
    assignment.status = AssignmentStatus(status).value
    try:
        await db.commit()
    except IntegrityError as exc:
        # reactivating while another assignment for the module is active
        await db.rollback()
        raise ActiveAssignmentExists(detail=conflict) from exc
    await db.refresh(assignment)
    logger.info("Assignment %s set to %s by therapist %s", assignment_id, assignment.status, therapist.id)
    return assignment


async def remove_assignment(db: AsyncSession, therapist: User, assignment_id: int) -> None:
    assignment = await _get_issued(db, therapist, assignment_id)
    await db.delete(assignment)
    await db.commit()
    logger.info("Assignment %s removed by therapist %s", assignment_id, therapist.id)
