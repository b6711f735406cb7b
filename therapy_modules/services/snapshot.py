"""Immutable copy of module content taken when an attempt starts."""
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_modules.core.errors import NotFound
from therapy_modules.models.module import Module
from therapy_modules.models.question import Question


async def build_module_snapshot(db: AsyncSession, module_id: int) -> dict[str, Any]:
    """
    Title, disclaimer and ordered questions with their choices, as plain data.

    The result holds no ORM references, so edits or deletion of the live
    questions do not affect it. A module without questions yields an empty
    question list.
    """
    result = await db.execute(
        select(Module.title, Module.disclaimer).where(Module.id == module_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFound("Module not found", detail={"module_id": module_id})

    questions = await db.execute(
        select(Question.id, Question.text, Question.choices)
        .where(Question.module_id == module_id)
        .order_by(Question.order, Question.id)
    )
    return {
        "title": row.title,
        "disclaimer": row.disclaimer,
        "questions": [
            {
                "id": q.id,
                "text": q.text,
                "choices": [{"text": c.get("text"), "score": c.get("score")} for c in (q.choices or [])],
            }
            for q in questions
        ],
    }
