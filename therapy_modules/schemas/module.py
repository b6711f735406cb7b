"""Pydantic schemas for modules, questions and score bands."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ChoiceSchema(BaseModel):
    text: str | None = None
    score: int | None = None


class QuestionOutSchema(BaseModel):
    id: int
    order: int
    text: str
    choices: list[ChoiceSchema]

    model_config = ConfigDict(from_attributes=True)


class ScoreBandOutSchema(BaseModel):
    id: int
    module_id: int
    min: int
    max: int
    label: str
    interpretation: str

    model_config = ConfigDict(from_attributes=True)


class ScoreBandCreateSchema(BaseModel):
    min: int
    max: int
    label: str = Field(min_length=1, max_length=100)
    interpretation: str = ""

    @model_validator(mode="after")
    def check_range(self):
        if self.min > self.max:
            raise ValueError("min must not exceed max")
        return self


class ModuleOutSchema(BaseModel):
    id: int
    program_id: int
    title: str
    description: str
    disclaimer: str | None = None
    type: str
    access_policy: str
    image_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ModuleSummarySchema(BaseModel):
    id: int
    title: str
    type: str

    model_config = ConfigDict(from_attributes=True)


class ModuleMetaSchema(BaseModel):
    can_start: bool
    can_start_reason: str  # ok | not_enrolled | requires_assignment
    active_assignment_id: int | None = None
    assignment_status: str | None = None
    due_at: datetime | None = None


class ModuleDetailResponse(BaseModel):
    success: bool = True
    module: ModuleOutSchema
    questions: list[QuestionOutSchema]
    score_bands: list[ScoreBandOutSchema]
    meta: ModuleMetaSchema


class ScoreBandResponse(BaseModel):
    success: bool = True
    band: ScoreBandOutSchema
