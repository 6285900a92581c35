"""Tag model and the many-to-many link tables to taggable entities."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Table

from ..database import Base


class Tag(Base):
    """
    Tag shared across repository cases, test runs and sessions.

    Attributes:
        id: Unique identifier
        name: Tag display name
        is_deleted: Soft delete flag
    """

    __tablename__ = "Tags"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        """String representation of Tag."""
        return f"<Tag(id={self.id}, name={self.name})>"


repository_case_tags = Table(
    "RepositoryCaseTags",
    Base.metadata,
    Column("case_id", Integer, ForeignKey("RepositoryCases.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("Tags.id", ondelete="CASCADE"), primary_key=True),
)

test_run_tags = Table(
    "TestRunTags",
    Base.metadata,
    Column("test_run_id", Integer, ForeignKey("TestRuns.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("Tags.id", ondelete="CASCADE"), primary_key=True),
)

session_tags = Table(
    "SessionTags",
    Base.metadata,
    Column("session_id", Integer, ForeignKey("Sessions.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("Tags.id", ondelete="CASCADE"), primary_key=True),
)
