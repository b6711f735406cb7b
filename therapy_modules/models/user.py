"""User directory record: identity, roles and therapist linkage."""
from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String

from therapy_modules.db.session import Base
from therapy_modules.db.types import UTCDateTime
from therapy_modules.core.clock import utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(50), unique=True, nullable=False)
    name = Column(String(100), nullable=True)
    roles = Column(JSON, nullable=False, default=list)  # list of UserRole values
    is_verified_therapist = Column(Boolean, nullable=False, default=False)
    # current therapist; attempts copy this at start/submit
    therapist_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    def has_role(self, role) -> bool:
        value = getattr(role, "value", role)
        return value in (self.roles or [])
