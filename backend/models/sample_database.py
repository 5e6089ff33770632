"""Sample database model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from backend.database import Base
from backend.models.user import User


class SampleDatabase(Base):
    """A named sample schema (DDL plus seed DML) used as an exercise sandbox."""
    __tablename__ = "databases"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, index=True, nullable=False)
    schema_sql = Column("schema", Text, nullable=False)
    seed_data = Column(Text, nullable=False, default="")
    author_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    author = relationship(User, backref="authored_databases")
