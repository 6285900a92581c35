"""User SQLAlchemy model."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String

from ..database import Base


class User(Base):
    """
    Application user as seen by the search projections.

    Only the columns denormalized into search documents are mapped:
    creators, assignees and their avatars.

    Attributes:
        id: Unique identifier (opaque string key)
        name: Display name
        email: Login email
        image: Avatar URL
        is_deleted: Soft delete flag
        created_at: Timestamp when the user was created
    """

    __tablename__ = "Users"
    __allow_unmapped__ = True

    id = Column(String(36), primary_key=True, nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    image = Column(String(1024), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        """String representation of User."""
        return f"<User(id={self.id}, name={self.name})>"
