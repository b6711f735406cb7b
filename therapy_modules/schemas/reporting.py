"""Pydantic schemas for history and therapist dashboard projections."""
from pydantic import BaseModel

from therapy_modules.schemas.attempt import AttemptOutSchema, UserSummarySchema
from therapy_modules.schemas.module import ModuleSummarySchema, ScoreBandOutSchema


class AttemptSummarySchema(BaseModel):
    attempt: AttemptOutSchema
    band: ScoreBandOutSchema | None = None
    percent_complete: int


class HistoryResponse(BaseModel):
    success: bool = True
    attempts: list[AttemptSummarySchema]
    next_cursor: str | None = None


class TherapistLatestRowSchema(BaseModel):
    attempt: AttemptOutSchema
    band: ScoreBandOutSchema | None = None
    user: UserSummarySchema
    module: ModuleSummarySchema


class TherapistLatestResponse(BaseModel):
    success: bool = True
    rows: list[TherapistLatestRowSchema]


class TimelineResponse(BaseModel):
    success: bool = True
    attempts: list[AttemptSummarySchema]
