"""API routes: therapist-issued assignments and sync reconciliation."""
from typing import Literal

from fastapi import APIRouter

from therapy_modules.routers.deps import CurrentUser, DbSession
from therapy_modules.schemas.assignment import (
    AssignmentCreateSchema,
    AssignmentListResponse,
    AssignmentResponse,
    AssignmentStatusSchema,
    ReconcileResponse,
)
from therapy_modules.services import assignments as assignment_service
from therapy_modules.services import directory

router = APIRouter(prefix="/api", tags=["assignments"])


@router.post("/assignments", response_model=AssignmentResponse, status_code=201)
async def create_assignment(body: AssignmentCreateSchema, db: DbSession, user: CurrentUser):
    """Assign a module to one of the caller's patients."""
    assignment = await assignment_service.create_assignment(
        db,
        user,
        body.user_id,
        body.module_id,
        due_at=body.due_at,
        recurrence=body.recurrence.model_dump(mode="json") if body.recurrence else None,
        notes=body.notes,
    )
    return AssignmentResponse.model_validate({"assignment": assignment}, from_attributes=True)


@router.get("/assignments/mine", response_model=AssignmentListResponse)
async def my_issued_assignments(db: DbSession, user: CurrentUser):
    """Active assignments issued by the caller, earliest due first."""
    rows = await assignment_service.list_for_therapist(db, user)
    return AssignmentListResponse.model_validate({"assignments": rows}, from_attributes=True)


@router.get("/me/assignments", response_model=AssignmentListResponse)
async def my_assignments(
    db: DbSession,
    user: CurrentUser,
    status: Literal["active", "completed", "all"] = "active",
):
    rows = await assignment_service.list_for_patient(db, user.id, status=status)
    return AssignmentListResponse.model_validate({"assignments": rows}, from_attributes=True)


@router.patch("/assignments/{assignment_id}/status", response_model=AssignmentResponse)
async def update_assignment_status(
    assignment_id: int,
    body: AssignmentStatusSchema,
    db: DbSession,
    user: CurrentUser,
):
    assignment = await assignment_service.update_status(db, user, assignment_id, body.status)
    return AssignmentResponse.model_validate({"assignment": assignment}, from_attributes=True)


@router.delete("/assignments/{assignment_id}")
async def remove_assignment(assignment_id: int, db: DbSession, user: CurrentUser):
    await assignment_service.remove_assignment(db, user, assignment_id)
    return {"success": True, "id": assignment_id}


@router.post("/admin/assignment-sync/reconcile", response_model=ReconcileResponse)
async def reconcile_assignment_syncs(db: DbSession, user: CurrentUser):
    """Admin only. Replays assignment updates that failed after a submit."""
    directory.require_admin(user)
    summary = await assignment_service.reconcile_assignment_syncs(db)
    return ReconcileResponse(**summary)
