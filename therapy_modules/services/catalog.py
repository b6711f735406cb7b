"""Content catalog reads and start-eligibility for a module."""
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_modules.core.errors import NotFound
from therapy_modules.models.enums import AccessPolicy
from therapy_modules.models.module import Module, ModuleEnrollment
from therapy_modules.models.question import Question, ScoreBand
from therapy_modules.services import assignments


async def get_module(db: AsyncSession, module_id: int) -> Module:
    module = await db.get(Module, module_id)
    if module is None:
        raise NotFound("Module not found", detail={"module_id": module_id})
    return module


async def get_questions(db: AsyncSession, module_id: int) -> list[Question]:
    result = await db.execute(
        select(Question).where(Question.module_id == module_id).order_by(Question.order, Question.id)
    )
    return list(result.scalars().all())


async def get_score_bands(db: AsyncSession, module_id: int) -> list[ScoreBand]:
    result = await db.execute(
        select(ScoreBand).where(ScoreBand.module_id == module_id).order_by(ScoreBand.min, ScoreBand.id)
    )
    return list(result.scalars().all())


async def is_enrolled(db: AsyncSession, module_id: int, user_id: int) -> bool:
    result = await db.execute(
        select(ModuleEnrollment.id).where(
            ModuleEnrollment.module_id == module_id,
            ModuleEnrollment.user_id == user_id,
        )
    )
    return result.first() is not None


async def start_eligibility(db: AsyncSession, module: Module, user_id: int) -> dict[str, Any]:
    """Whether ``user_id`` could start ``module`` right now, and why not."""
    active = await assignments.find_active_assignment(db, user_id, module.id)
    meta: dict[str, Any] = {"can_start": True, "can_start_reason": "ok"}
    if active is not None:
        meta.update(
            active_assignment_id=active.id,
            assignment_status=active.status,
            due_at=active.due_at,
        )

    if module.access_policy == AccessPolicy.ASSIGNED and active is None:
        meta.update(can_start=False, can_start_reason="requires_assignment")
    elif module.access_policy == AccessPolicy.ENROLLED and not await is_enrolled(db, module.id, user_id):
        meta.update(can_start=False, can_start_reason="not_enrolled")
    return meta


async def get_module_detail(db: AsyncSession, module_id: int, user_id: int) -> dict[str, Any]:
    module = await get_module(db, module_id)
    return {
        "module": module,
        "questions": await get_questions(db, module.id),
        "score_bands": await get_score_bands(db, module.id),
        "meta": await start_eligibility(db, module, user_id),
    }
