"""Milestone and milestone type models."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base


class MilestoneType(Base):
    """Milestone category (release, sprint, ...) with an optional icon."""

    __tablename__ = "MilestoneTypes"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    icon_id = Column(Integer, ForeignKey("FieldIcons.id"), nullable=True)

    icon = relationship("FieldIcon", lazy="joined")

    def __repr__(self) -> str:
        return f"<MilestoneType(id={self.id}, name={self.name})>"


class Milestone(Base):
    """
    Project milestone. Milestones nest through parent_id.

    Attributes:
        id: Unique identifier
        project_id: FK to Projects
        parent_id: FK to the parent Milestone
        milestone_type_id: FK to MilestoneTypes
        name: Milestone name
        note / docs: Rich text (editor JSON)
        due_date: Target date
        is_completed: Completion flag
        completed_at: Completion timestamp
        is_deleted: Soft delete flag
        created_by_id: FK to Users
        created_at: Timestamp when the milestone was created
    """

    __tablename__ = "Milestones"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("Projects.id"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("Milestones.id"), nullable=True, index=True)
    milestone_type_id = Column(Integer, ForeignKey("MilestoneTypes.id"), nullable=True)

    name = Column(String(512), nullable=False)
    note = Column(JSON, nullable=True)
    docs = Column(JSON, nullable=True)
    due_date = Column(DateTime, nullable=True)

    is_completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_by_id = Column(String(36), ForeignKey("Users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    project = relationship("Project")
    created_by = relationship("User")
    milestone_type = relationship("MilestoneType")
    parent = relationship("Milestone", remote_side=[id])

    def __repr__(self) -> str:
        return f"<Milestone(id={self.id}, name={self.name})>"
