from therapy_modules.schemas.assignment import (
    AssignmentCreateSchema,
    AssignmentListResponse,
    AssignmentResponse,
    AssignmentStatusSchema,
    ReconcileResponse,
)
from therapy_modules.schemas.attempt import (
    AttemptDetailResponse,
    AttemptResponse,
    SaveProgressSchema,
    StartAttemptSchema,
    SubmitAttemptSchema,
    TherapistAttemptDetailResponse,
    TherapistNoteSchema,
)
from therapy_modules.schemas.module import ModuleDetailResponse, ScoreBandCreateSchema, ScoreBandResponse
from therapy_modules.schemas.reporting import HistoryResponse, TherapistLatestResponse, TimelineResponse

__all__ = [
    "AssignmentCreateSchema",
    "AssignmentListResponse",
    "AssignmentResponse",
    "AssignmentStatusSchema",
    "ReconcileResponse",
    "AttemptDetailResponse",
    "AttemptResponse",
    "SaveProgressSchema",
    "StartAttemptSchema",
    "SubmitAttemptSchema",
    "TherapistAttemptDetailResponse",
    "TherapistNoteSchema",
    "ModuleDetailResponse",
    "ScoreBandCreateSchema",
    "ScoreBandResponse",
    "HistoryResponse",
    "TherapistLatestResponse",
    "TimelineResponse",
]
