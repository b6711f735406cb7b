"""Content catalog: programs, modules and enrollment."""
from sqlalchemy import Column, ForeignKey, Integer, String, Text, UniqueConstraint

from therapy_modules.db.session import Base
from therapy_modules.db.types import UTCDateTime
from therapy_modules.models.enums import AccessPolicy
from therapy_modules.core.clock import utcnow


class Program(Base):
    __tablename__ = "programs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=False, default="")


class Module(Base):
    __tablename__ = "modules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    program_id = Column(Integer, ForeignKey("programs.id"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False, default="")
    disclaimer = Column(Text, nullable=True)
    type = Column(String(32), nullable=False)  # ModuleType
    access_policy = Column(String(16), nullable=False, default=AccessPolicy.OPEN.value)
    image_url = Column(String(500), nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class ModuleEnrollment(Base):
    """Users allowed to start an ``enrolled``-policy module."""

    __tablename__ = "module_enrollments"
    __table_args__ = (UniqueConstraint("module_id", "user_id", name="uq_enrollment_module_user"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
