"""API routes: start, save progress, submit and read attempts."""
from fastapi import APIRouter

from therapy_modules.routers.deps import CurrentUser, DbSession
from therapy_modules.schemas.attempt import (
    AttemptDetailResponse,
    AttemptResponse,
    SaveProgressSchema,
    StartAttemptSchema,
    SubmitAttemptSchema,
    TherapistAttemptDetailResponse,
    TherapistNoteSchema,
)
from therapy_modules.services import attempts as attempt_service

router = APIRouter(prefix="/api", tags=["attempts"])


@router.post("/modules/{module_id}/attempts", response_model=AttemptResponse, status_code=201)
async def start_attempt(
    module_id: int,
    db: DbSession,
    user: CurrentUser,
    body: StartAttemptSchema | None = None,
):
    """Start a new attempt on a module."""
    attempt = await attempt_service.start_attempt(
        db, user.id, module_id, assignment_id=body.assignment_id if body else None
    )
    return AttemptResponse.model_validate({"attempt": attempt}, from_attributes=True)


@router.get("/attempts/{attempt_id}", response_model=AttemptDetailResponse)
async def get_attempt(attempt_id: int, db: DbSession, user: CurrentUser):
    """Owner's view of an attempt with per-question items and progress."""
    detail = await attempt_service.get_my_attempt_detail(db, attempt_id, user.id)
    return AttemptDetailResponse.model_validate(detail, from_attributes=True)


@router.get("/attempts/{attempt_id}/therapist", response_model=TherapistAttemptDetailResponse)
async def get_attempt_for_therapist(attempt_id: int, db: DbSession, user: CurrentUser):
    detail = await attempt_service.get_attempt_detail_for_therapist(db, attempt_id, user)
    return TherapistAttemptDetailResponse.model_validate(detail, from_attributes=True)


@router.patch("/attempts/{attempt_id}", response_model=AttemptResponse)
async def save_progress(attempt_id: int, body: SaveProgressSchema, db: DbSession, user: CurrentUser):
    """Save answers or diary entries; status is unchanged."""
    attempt = await attempt_service.save_progress(
        db,
        attempt_id,
        user.id,
        answers=[a.model_dump() for a in body.answers] if body.answers is not None else None,
        entries=body.entries,
        merge=body.merge,
        user_note=body.user_note,
    )
    return AttemptResponse.model_validate({"attempt": attempt}, from_attributes=True)


@router.post("/attempts/{attempt_id}/submit", response_model=AttemptResponse)
async def submit_attempt(
    attempt_id: int,
    db: DbSession,
    user: CurrentUser,
    body: SubmitAttemptSchema | None = None,
):
    """Finalize an attempt. Scores questionnaires; completes the linked assignment."""
    attempt = await attempt_service.submit_attempt(
        db, attempt_id, user.id, assignment_id=body.assignment_id if body else None
    )
    return AttemptResponse.model_validate({"attempt": attempt}, from_attributes=True)


@router.patch("/attempts/{attempt_id}/therapist-note", response_model=AttemptResponse)
async def annotate_attempt(attempt_id: int, body: TherapistNoteSchema, db: DbSession, user: CurrentUser):
    attempt = await attempt_service.annotate_attempt(db, attempt_id, user, body.therapist_note)
    return AttemptResponse.model_validate({"attempt": attempt}, from_attributes=True)
