from therapy_modules.models.user import User
from therapy_modules.models.module import Module, ModuleEnrollment, Program
from therapy_modules.models.question import Question, ScoreBand
from therapy_modules.models.attempt import ModuleAttempt
from therapy_modules.models.assignment import AssignmentSyncOutbox, ModuleAssignment

__all__ = [
    "User",
    "Program",
    "Module",
    "ModuleEnrollment",
    "Question",
    "ScoreBand",
    "ModuleAttempt",
    "ModuleAssignment",
    "AssignmentSyncOutbox",
]
