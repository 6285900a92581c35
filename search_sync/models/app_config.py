"""Runtime key/value configuration store."""

from sqlalchemy import JSON, Column, String

from ..database import Base


class AppConfig(Base):
    """
    Administrator-editable runtime setting.

    Attributes:
        key: Setting name (e.g. "elasticsearch_replicas")
        value: JSON value
    """

    __tablename__ = "AppConfig"
    __allow_unmapped__ = True

    key = Column(String(255), primary_key=True)
    value = Column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AppConfig(key={self.key})>"
