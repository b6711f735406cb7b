"""SQLAlchemy declarative base and model imports for Alembic."""
from therapy_modules.db.session import Base

# Import all models so Alembic can see them
from therapy_modules.models.assignment import AssignmentSyncOutbox, ModuleAssignment  # noqa: F401
from therapy_modules.models.attempt import ModuleAttempt  # noqa: F401
from therapy_modules.models.module import Module, ModuleEnrollment, Program  # noqa: F401
from therapy_modules.models.question import Question, ScoreBand  # noqa: F401
from therapy_modules.models.user import User  # noqa: F401

__all__ = [
    "Base",
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
