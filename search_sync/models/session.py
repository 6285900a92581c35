"""Exploratory test session models.

The class is named TestSession so it never shadows sqlalchemy's Session;
the table keeps its historical name.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from ..database import Base
from .tag import session_tags


class TestSession(Base):
    """
    Time-boxed exploratory testing session.

    Attributes:
        id: Unique identifier
        project_id: FK to Projects
        template_id: FK to Templates
        name: Session name
        note: Rich text note (editor JSON)
        mission: Rich text mission statement (editor JSON)
        config_id: FK to Configurations
        milestone_id: FK to Milestones
        state_id: FK to Workflows
        assigned_to_id: FK to Users
        estimate / forecast_manual / forecast_automated / elapsed: Durations
        is_completed: Completion flag
        completed_at: Completion timestamp
        is_deleted: Soft delete flag
        created_by_id: FK to Users
        created_at: Timestamp when the session was created
    """

    __tablename__ = "Sessions"
    __allow_unmapped__ = True
    __test__ = False

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("Projects.id"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("Templates.id"), nullable=True)
    name = Column(String(512), nullable=False)
    note = Column(JSON, nullable=True)
    mission = Column(JSON, nullable=True)

    config_id = Column(Integer, ForeignKey("Configurations.id"), nullable=True)
    milestone_id = Column(Integer, ForeignKey("Milestones.id"), nullable=True)
    state_id = Column(Integer, ForeignKey("Workflows.id"), nullable=True)
    assigned_to_id = Column(String(36), ForeignKey("Users.id"), nullable=True)

    estimate = Column(Integer, nullable=True)
    forecast_manual = Column(Integer, nullable=True)
    forecast_automated = Column(Float, nullable=True)
    elapsed = Column(Integer, nullable=True)

    is_completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_by_id = Column(String(36), ForeignKey("Users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    project = relationship("Project")
    template = relationship("Template")
    configuration = relationship("Configuration")
    milestone = relationship("Milestone")
    state = relationship("Workflow")
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    created_by = relationship("User", foreign_keys=[created_by_id])
    tags = relationship("Tag", secondary=session_tags, order_by="Tag.id")
    session_field_values = relationship(
        "SessionFieldValue",
        order_by="SessionFieldValue.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<TestSession(id={self.id}, name={self.name})>"


class SessionResult(Base):
    """Recorded outcome inside a session."""

    __tablename__ = "SessionResults"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        Integer,
        ForeignKey("Sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    session = relationship("TestSession")
