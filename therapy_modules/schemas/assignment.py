"""Pydantic schemas for therapist-issued module assignments."""
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from therapy_modules.models.enums import AssignmentStatus, RecurrenceFreq


class RecurrenceSchema(BaseModel):
    freq: RecurrenceFreq = RecurrenceFreq.NONE
    interval: int = Field(default=1, ge=1)


class AssignmentCreateSchema(BaseModel):
    user_id: int
    module_id: int
    due_at: datetime | None = None
    recurrence: RecurrenceSchema | None = None
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("due_at")
    @classmethod
    def assume_utc(cls, v):
        """Naive due dates are read as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class AssignmentStatusSchema(BaseModel):
    status: AssignmentStatus


class AssignmentOutSchema(BaseModel):
    id: int
    user_id: int
    therapist_id: int
    program_id: int
    module_id: int
    module_type: str
    status: str
    due_at: datetime | None = None
    recurrence: dict[str, Any] | None = None
    latest_attempt_id: int | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AssignmentResponse(BaseModel):
    success: bool = True
    assignment: AssignmentOutSchema


class AssignmentListResponse(BaseModel):
    success: bool = True
    assignments: list[AssignmentOutSchema]


class ReconcileResponse(BaseModel):
    success: bool = True
    processed: int
    failed: int
    pending: int
    exhausted: int = 0
    pruned: int = 0
