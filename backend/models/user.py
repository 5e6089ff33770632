"""User model definitions."""

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String, func

from backend.database import Base


class Role(str, enum.Enum):
    TEACHER = "TEACHER"
    TUTOR = "TUTOR"
    STUDENT = "STUDENT"


class User(Base):
    """Represents a platform account (teacher, tutor or student)."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    name = Column(String, nullable=False)
    role = Column(Enum(Role), nullable=False, default=Role.STUDENT)
    is_blocked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
