"""ModuleAssignment: therapist-issued obligation, and the post-submit sync outbox."""
from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, String, Text, text

from therapy_modules.core.clock import utcnow
from therapy_modules.db.session import Base
from therapy_modules.db.types import UTCDateTime
from therapy_modules.models.enums import ACTIVE_ASSIGNMENT_STATUSES, AssignmentStatus

ACTIVE_WHERE = text(
    "status IN ({})".format(", ".join(f"'{status}'" for status in ACTIVE_ASSIGNMENT_STATUSES))
)


class ModuleAssignment(Base):
    __tablename__ = "module_assignments"
    __table_args__ = (
        Index("ix_assignments_therapist_status_due", "therapist_id", "status", "due_at"),
        # at most one active assignment per (user, module)
        Index(
            "uq_assignments_active_user_module",
            "user_id",
            "module_id",
            unique=True,
            sqlite_where=ACTIVE_WHERE,
            postgresql_where=ACTIVE_WHERE,
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    therapist_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    program_id = Column(Integer, ForeignKey("programs.id"), nullable=False, index=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False, index=True)
    module_type = Column(String(32), nullable=False)

    status = Column(String(16), nullable=False, default=AssignmentStatus.ASSIGNED.value, index=True)
    due_at = Column(UTCDateTime, nullable=True, index=True)
    # {freq: weekly|monthly|none, interval}
    recurrence = Column(JSON, nullable=True)
    # last attempt that touched this assignment, may be stale
    latest_attempt_id = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)


class AssignmentSyncOutbox(Base):
    """Assignment updates that failed after a committed submit; replayed by reconcile."""

    __tablename__ = "assignment_sync_outbox"

    id = Column(Integer, primary_key=True, autoincrement=True)
    attempt_id = Column(Integer, nullable=False, index=True)
    assignment_id = Column(Integer, nullable=True)
    user_id = Column(Integer, nullable=False)
    module_id = Column(Integer, nullable=False)
    therapist_id = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)
    tries = Column(Integer, nullable=False, default=0)
    processed_at = Column(UTCDateTime, nullable=True, index=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
