"""Issue tracker models.

Issues come from external trackers (Jira, GitHub, ...) through an
Integration. An issue may carry a direct project link, or only be linked
to cases, sessions, runs or results from which its project is derived.
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from ..database import Base


class Integration(Base):
    """External issue tracker connection; its name is the issue system."""

    __tablename__ = "Integrations"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Integration(id={self.id}, name={self.name})>"


def _issue_link_table(name: str, column: str, target: str) -> Table:
    return Table(
        name,
        Base.metadata,
        Column("issue_id", Integer, ForeignKey("Issues.id", ondelete="CASCADE"), primary_key=True),
        Column(column, Integer, ForeignKey(f"{target}.id", ondelete="CASCADE"), primary_key=True),
    )


issue_repository_cases = _issue_link_table("IssueRepositoryCases", "case_id", "RepositoryCases")
issue_sessions = _issue_link_table("IssueSessions", "session_id", "Sessions")
issue_test_runs = _issue_link_table("IssueTestRuns", "test_run_id", "TestRuns")
issue_session_results = _issue_link_table("IssueSessionResults", "session_result_id", "SessionResults")
issue_test_run_results = _issue_link_table("IssueTestRunResults", "test_run_result_id", "TestRunResults")
issue_test_run_step_results = _issue_link_table(
    "IssueTestRunStepResults", "test_run_step_result_id", "TestRunStepResults"
)


class Issue(Base):
    """
    Issue linked from an external tracker.

    Attributes:
        id: Unique identifier
        name: Issue key as shown in the tracker (e.g. "PROJ-12")
        title: Issue summary
        description: Plain description text
        external_id: Tracker-side identifier
        note: Rich text note (editor JSON)
        data: Raw tracker payload; data["url"] is the issue link
        integration_id: FK to Integrations
        project_id: Optional direct FK to Projects
        is_deleted: Soft delete flag
        created_by_id: FK to Users
        created_at: Timestamp when the issue was linked
    """

    __tablename__ = "Issues"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    title = Column(String(1024), nullable=False)
    description = Column(Text, nullable=True)
    external_id = Column(String(255), nullable=True)
    note = Column(JSON, nullable=True)
    data = Column(JSON, nullable=True)

    integration_id = Column(Integer, ForeignKey("Integrations.id"), nullable=True)
    project_id = Column(Integer, ForeignKey("Projects.id"), nullable=True, index=True)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_by_id = Column(String(36), ForeignKey("Users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    created_by = relationship("User")
    integration = relationship("Integration")
    project = relationship("Project")

    # Indirect project sources, in resolution priority order
    repository_cases = relationship(
        "RepositoryCase", secondary=issue_repository_cases, order_by="RepositoryCase.id"
    )
    sessions = relationship("TestSession", secondary=issue_sessions, order_by="TestSession.id")
    test_runs = relationship("TestRun", secondary=issue_test_runs, order_by="TestRun.id")
    session_results = relationship(
        "SessionResult", secondary=issue_session_results, order_by="SessionResult.id"
    )
    test_run_results = relationship(
        "TestRunResult", secondary=issue_test_run_results, order_by="TestRunResult.id"
    )
    test_run_step_results = relationship(
        "TestRunStepResult",
        secondary=issue_test_run_step_results,
        order_by="TestRunStepResult.id",
    )

    def __repr__(self) -> str:
        return f"<Issue(id={self.id}, name={self.name})>"
