"""Pydantic schemas for attempts: request bodies and full-record responses."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from therapy_modules.schemas.module import ChoiceSchema, ModuleSummarySchema, ScoreBandOutSchema


class StartAttemptSchema(BaseModel):
    assignment_id: int | None = None


class AnswerSchema(BaseModel):
    question_id: int
    chosen_score: int
    chosen_index: int | None = Field(default=None, ge=0)
    chosen_text: str | None = None


class SaveProgressSchema(BaseModel):
    answers: list[AnswerSchema] | None = None
    # entries are sanitized server-side; malformed ones are dropped, not rejected
    entries: list[dict[str, Any]] | None = None
    merge: bool = False
    user_note: str | None = Field(default=None, max_length=5000)


class SubmitAttemptSchema(BaseModel):
    assignment_id: int | None = None


class TherapistNoteSchema(BaseModel):
    therapist_note: str = Field(max_length=5000)


class AttemptOutSchema(BaseModel):
    id: int
    user_id: int
    therapist_id: int | None = None
    program_id: int
    module_id: int
    module_type: str
    status: str
    started_at: datetime
    last_interaction_at: datetime
    completed_at: datetime | None = None
    duration_secs: int | None = None
    iteration: int
    due_at: datetime | None = None
    assignment_id: int | None = None
    module_snapshot: dict[str, Any] | None = None
    answers: list[dict[str, Any]] = []
    diary_entries: list[dict[str, Any]] = []
    total_score: int | None = None
    score_band_label: str | None = None
    week_start: datetime | None = None
    user_note: str | None = None
    therapist_note: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AttemptResponse(BaseModel):
    success: bool = True
    attempt: AttemptOutSchema


class AttemptItemSchema(BaseModel):
    order: int
    question_id: int
    question_text: str | None = None
    choices: list[ChoiceSchema]
    chosen_score: int | None = None
    chosen_index: int | None = None
    chosen_text: str | None = None


class AttemptProgressSchema(BaseModel):
    items: list[AttemptItemSchema]
    answered_count: int
    total_questions: int
    percent_complete: int


class UserSummarySchema(BaseModel):
    id: int
    username: str
    email: str
    name: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AttemptDetailResponse(BaseModel):
    success: bool = True
    attempt: AttemptOutSchema
    band: ScoreBandOutSchema | None = None
    detail: AttemptProgressSchema


class TherapistAttemptDetailResponse(AttemptDetailResponse):
    patient: UserSummarySchema
    module: ModuleSummarySchema
