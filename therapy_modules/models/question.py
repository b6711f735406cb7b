"""Questions with scored choices, and per-module score bands."""
from sqlalchemy import JSON, Column, ForeignKey, Integer, String, Text

from therapy_modules.db.session import Base


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
    order = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    # choices: JSON array of {text, score}
    choices = Column(JSON, nullable=False, default=list)


class ScoreBand(Base):
    __tablename__ = "score_bands"

    id = Column(Integer, primary_key=True, autoincrement=True)
    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
    min = Column(Integer, nullable=False)
    max = Column(Integer, nullable=False)
    label = Column(String(100), nullable=False)
    interpretation = Column(Text, nullable=False, default="")
