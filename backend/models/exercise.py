"""Exercise model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import backref, relationship

from backend.database import Base
from backend.models.sample_database import SampleDatabase
from backend.models.user import User


class Exercise(Base):
    """A SQL task bound to one sample database with a reference solution."""
    __tablename__ = "exercises"

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    initial_query = Column(Text, nullable=True)
    solution_query = Column(Text, nullable=False)
    database_id = Column(Integer, ForeignKey("databases.id"), nullable=False)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    database = relationship(
        SampleDatabase,
        backref=backref("exercises", cascade="all, delete-orphan"),
    )
    author = relationship(User, backref="authored_exercises")
