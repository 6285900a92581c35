"""Shared step group models."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base


class SharedStepGroup(Base):
    """
    Reusable, named list of steps referenced from many repository cases.

    Attributes:
        id: Unique identifier
        project_id: FK to Projects
        name: Group name
        is_deleted: Soft delete flag
        created_by_id: FK to Users
        created_at: Timestamp when the group was created
    """

    __tablename__ = "SharedStepGroups"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("Projects.id"), nullable=False, index=True)
    name = Column(String(512), nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_by_id = Column(String(36), ForeignKey("Users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    project = relationship("Project")
    created_by = relationship("User")
    items = relationship(
        "SharedStepItem",
        back_populates="group",
        order_by="SharedStepItem.order",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<SharedStepGroup(id={self.id}, name={self.name})>"


class SharedStepItem(Base):
    """One ordered step inside a SharedStepGroup."""

    __tablename__ = "SharedStepItems"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    shared_step_group_id = Column(
        Integer,
        ForeignKey("SharedStepGroups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order = Column(Integer, default=0, nullable=False)
    step = Column(JSON, nullable=True)
    expected_result = Column(JSON, nullable=True)

    group = relationship("SharedStepGroup", back_populates="items")

    def __repr__(self) -> str:
        return f"<SharedStepItem(id={self.id}, shared_step_group_id={self.shared_step_group_id})>"
