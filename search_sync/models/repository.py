"""Repository folder, case and step models.

Repository cases are the largest searchable entity set. A case owns an
ordered list of steps; a step either carries its own step/expected text
or references a SharedStepGroup whose items are expanded in its place.
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
from .tag import repository_case_tags


class RepositoryFolder(Base):
    """
    Folder in a project's case repository.

    Folders form a tree through parent_id; the root folder has no parent.

    Attributes:
        id: Unique identifier
        project_id: FK to Projects
        parent_id: FK to the parent RepositoryFolder (null for the root)
        name: Folder name, one path segment of folderPath
    """

    __tablename__ = "RepositoryFolders"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("Projects.id"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("RepositoryFolders.id"), nullable=True)
    name = Column(String(255), nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<RepositoryFolder(id={self.id}, name={self.name})>"


class RepositoryCase(Base):
    """
    Test case stored in a project repository.

    Attributes:
        id: Unique identifier
        project_id: FK to Projects
        repository_id: Repository the case lives in
        folder_id: FK to RepositoryFolders
        template_id: FK to Templates
        state_id: FK to Workflows
        name: Case name
        class_name: Automation class name (automated cases)
        source: Origin of the case (manual, junit import, ...)
        estimate: Estimated duration in seconds
        forecast_manual: Forecast duration for manual execution
        forecast_automated: Forecast duration for automated execution
        automated: True for automated cases
        is_archived: Archived cases are removed from the search index
        is_deleted: Soft delete flag (still indexed, filtered at query time)
        creator_id: FK to Users
        created_at: Timestamp when the case was created
    """

    __tablename__ = "RepositoryCases"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("Projects.id"), nullable=False, index=True)
    repository_id = Column(Integer, nullable=True)
    folder_id = Column(Integer, ForeignKey("RepositoryFolders.id"), nullable=True, index=True)
    template_id = Column(Integer, ForeignKey("Templates.id"), nullable=True)
    state_id = Column(Integer, ForeignKey("Workflows.id"), nullable=True)

    name = Column(String(512), nullable=False)
    class_name = Column(String(512), nullable=True)
    source = Column(String(64), nullable=True)

    estimate = Column(Integer, nullable=True)
    forecast_manual = Column(Integer, nullable=True)
    forecast_automated = Column(Float, nullable=True)
    automated = Column(Boolean, default=False, nullable=False)

    is_archived = Column(Boolean, default=False, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    creator_id = Column(String(36), ForeignKey("Users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    project = relationship("Project")
    folder = relationship("RepositoryFolder")
    template = relationship("Template")
    state = relationship("Workflow")
    creator = relationship("User")
    tags = relationship("Tag", secondary=repository_case_tags, order_by="Tag.id")
    steps = relationship(
        "RepositoryCaseStep",
        back_populates="test_case",
        order_by="RepositoryCaseStep.order",
        cascade="all, delete-orphan",
    )
    case_field_values = relationship(
        "CaseFieldValue",
        order_by="CaseFieldValue.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        """String representation of RepositoryCase."""
        return f"<RepositoryCase(id={self.id}, name={self.name})>"


class RepositoryCaseStep(Base):
    """
    One ordered step of a repository case.

    When shared_step_group_id is set the step's own text is ignored and
    the referenced group's items are expanded into the case document.
    """

    __tablename__ = "Steps"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    test_case_id = Column(
        Integer,
        ForeignKey("RepositoryCases.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order = Column(Integer, default=0, nullable=False)
    step = Column(JSON, nullable=True)
    expected_result = Column(JSON, nullable=True)
    shared_step_group_id = Column(Integer, ForeignKey("SharedStepGroups.id"), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)

    test_case = relationship("RepositoryCase", back_populates="steps")
    shared_step_group = relationship("SharedStepGroup")

    def __repr__(self) -> str:
        return f"<RepositoryCaseStep(id={self.id}, test_case_id={self.test_case_id})>"
