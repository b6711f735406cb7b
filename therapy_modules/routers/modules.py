"""API routes: module detail and score-band authoring."""
from fastapi import APIRouter

from therapy_modules.routers.deps import CurrentUser, DbSession
from therapy_modules.schemas.module import ModuleDetailResponse, ScoreBandCreateSchema, ScoreBandResponse
from therapy_modules.services import catalog, directory, scoring

router = APIRouter(prefix="/api", tags=["modules"])


@router.get("/modules/{module_id}", response_model=ModuleDetailResponse)
async def get_module(module_id: int, db: DbSession, user: CurrentUser):
    """Module with ordered questions, score bands and whether the caller can start it."""
    detail = await catalog.get_module_detail(db, module_id, user.id)
    return ModuleDetailResponse.model_validate(detail, from_attributes=True)


@router.post("/modules/{module_id}/score-bands", response_model=ScoreBandResponse, status_code=201)
async def create_score_band(module_id: int, body: ScoreBandCreateSchema, db: DbSession, user: CurrentUser):
    """Admin only. Rejected if the band overlaps an existing one."""
    directory.require_admin(user)
    module = await catalog.get_module(db, module_id)
    band = await scoring.create_score_band(
        db, module.id, body.min, body.max, body.label, body.interpretation
    )
    return ScoreBandResponse.model_validate({"band": band}, from_attributes=True)
