"""Project SQLAlchemy model."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base

if TYPE_CHECKING:
    from .user import User


class Project(Base):
    """
    Project model, the scope every other searchable entity belongs to.

    Attributes:
        id: Unique identifier
        name: Project name
        icon_url: Optional icon URL shown next to search hits
        note: Rich text note (editor JSON)
        docs: Rich text documentation (editor JSON)
        is_deleted: Soft delete flag
        created_by: FK to the user who created the project
        created_at: Timestamp when project was created
    """

    __tablename__ = "Projects"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    icon_url = Column(String(1024), nullable=True)
    note = Column(JSON, nullable=True)
    docs = Column(JSON, nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_by = Column(
        String(36),
        ForeignKey("Users.id"),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    creator = relationship("User", lazy="joined")

    def __repr__(self) -> str:
        """String representation of Project."""
        return f"<Project(id={self.id}, name={self.name})>"
