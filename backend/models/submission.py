"""Submission model definitions."""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Text, func
from sqlalchemy.orm import backref, relationship

from backend.database import Base
from backend.models.exercise import Exercise
from backend.models.user import User


class Submission(Base):
    """One graded attempt by a student against an exercise."""
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True)
    query = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    feedback = Column(Text, nullable=False, default="")
    hints = Column(JSON, nullable=False, default=list)
    suggestions = Column(JSON, nullable=False, default=list)
    explanation = Column(Text, nullable=False, default="")
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    exercise_id = Column(Integer, ForeignKey("exercises.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    student = relationship(
        User,
        backref=backref("submissions", cascade="all, delete-orphan"),
    )
    exercise = relationship(
        Exercise,
        backref=backref("submissions", cascade="all, delete-orphan"),
    )
