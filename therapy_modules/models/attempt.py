"""ModuleAttempt: one user's run through one module, with its content snapshot."""
from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, String, Text

from therapy_modules.core.clock import utcnow
from therapy_modules.db.session import Base
from therapy_modules.db.types import UTCDateTime
from therapy_modules.models.enums import AttemptStatus


class ModuleAttempt(Base):
    __tablename__ = "module_attempts"
    __table_args__ = (
        # latest per module per user
        Index("ix_attempts_user_module_completed", "user_id", "module_id", "completed_at"),
        # therapist dashboards
        Index("ix_attempts_therapist_completed", "therapist_id", "completed_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # copy of the user's therapist at start/submit, may be stale
    therapist_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    program_id = Column(Integer, ForeignKey("programs.id"), nullable=False, index=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False, index=True)
    module_type = Column(String(32), nullable=False)

    status = Column(String(16), nullable=False, default=AttemptStatus.STARTED.value, index=True)
    started_at = Column(UTCDateTime, nullable=False, default=utcnow)
    last_interaction_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)
    completed_at = Column(UTCDateTime, nullable=True, index=True)
    duration_secs = Column(Integer, nullable=True)
    iteration = Column(Integer, nullable=False, default=1)
    due_at = Column(UTCDateTime, nullable=True)
    # assignment this attempt was started from; plain id, no FK so removal leaves history intact
    assignment_id = Column(Integer, nullable=True, index=True)

    # {title, disclaimer, questions: [{id, text, choices: [{text, score}]}]}
    module_snapshot = Column(JSON, nullable=True)

    # questionnaire: [{question_id, chosen_score, chosen_index?, chosen_text?}]
    answers = Column(JSON, nullable=False, default=list)
    # activity_diary: [{at, label?, activity, mood?, achievement?, closeness?, enjoyment?}]
    diary_entries = Column(JSON, nullable=False, default=list)

    total_score = Column(Integer, nullable=True)
    score_band_label = Column(String(100), nullable=True)
    week_start = Column(UTCDateTime, nullable=True)

    user_note = Column(Text, nullable=True)
    therapist_note = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)
