"""API routes: patient history and therapist dashboards."""
from typing import Literal

from fastapi import APIRouter, Query

from therapy_modules.routers.deps import CurrentUser, DbSession
from therapy_modules.schemas.reporting import HistoryResponse, TherapistLatestResponse, TimelineResponse
from therapy_modules.services import reporting

router = APIRouter(prefix="/api", tags=["reporting"])


@router.get("/me/attempts", response_model=HistoryResponse)
async def my_attempts(
    db: DbSession,
    user: CurrentUser,
    status: Literal["submitted", "active"] = "submitted",
    module_id: int | None = None,
    limit: int | None = Query(default=None, ge=1),
    cursor: str | None = None,
):
    """Own attempts, newest first. Pass ``next_cursor`` back as ``cursor`` for the next page."""
    page = await reporting.list_my_attempts(
        db, user.id, status=status, module_id=module_id, limit=limit, cursor=cursor
    )
    return HistoryResponse.model_validate(page, from_attributes=True)


@router.get("/therapist/attempts/latest", response_model=TherapistLatestResponse)
async def therapist_latest(
    db: DbSession,
    user: CurrentUser,
    limit: int | None = Query(default=None, ge=1),
):
    rows = await reporting.therapist_latest(db, user, limit=limit)
    return TherapistLatestResponse.model_validate({"rows": rows}, from_attributes=True)


@router.get(
    "/therapist/patients/{patient_id}/modules/{module_id}/attempts",
    response_model=TimelineResponse,
)
async def patient_module_timeline(patient_id: int, module_id: int, db: DbSession, user: CurrentUser):
    attempts = await reporting.patient_module_timeline(db, user, patient_id, module_id)
    return TimelineResponse.model_validate({"attempts": attempts}, from_attributes=True)
