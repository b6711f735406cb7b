"""String enums shared by models, schemas and services."""
from enum import Enum


class ModuleType(str, Enum):
    QUESTIONNAIRE = "questionnaire"
    PSYCHOEDUCATION = "psychoeducation"
    EXERCISE = "exercise"
    ACTIVITY_DIARY = "activity_diary"


class AccessPolicy(str, Enum):
    OPEN = "open"
    ENROLLED = "enrolled"
    ASSIGNED = "assigned"


class AttemptStatus(str, Enum):
    STARTED = "started"
    SUBMITTED = "submitted"
    ABANDONED = "abandoned"


class AssignmentStatus(str, Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_ASSIGNMENT_STATUSES = (AssignmentStatus.ASSIGNED.value, AssignmentStatus.IN_PROGRESS.value)


class RecurrenceFreq(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    NONE = "none"


class UserRole(str, Enum):
    THERAPIST = "therapist"
    PATIENT = "patient"
    ADMIN = "admin"
