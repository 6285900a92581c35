"""Workflow state, icon, color and template lookup models.

These are small reference tables that search documents denormalize by
name so that filters and result rows never need a second lookup.
"""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base


class FieldIcon(Base):
    """Named icon shared by workflow states, field options and milestone types."""

    __tablename__ = "FieldIcons"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<FieldIcon(id={self.id}, name={self.name})>"


class Color(Base):
    """Color swatch referenced by workflow states and field options."""

    __tablename__ = "Colors"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    value = Column(String(16), nullable=False)

    def __repr__(self) -> str:
        return f"<Color(id={self.id}, value={self.value})>"


class Workflow(Base):
    """
    Workflow state assigned to cases, runs and sessions.

    Attributes:
        id: Unique identifier
        name: State display name
        icon_id: FK to FieldIcons
        color_id: FK to Colors
    """

    __tablename__ = "Workflows"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    icon_id = Column(Integer, ForeignKey("FieldIcons.id"), nullable=True)
    color_id = Column(Integer, ForeignKey("Colors.id"), nullable=True)

    icon = relationship("FieldIcon", lazy="joined")
    color = relationship("Color", lazy="joined")

    def __repr__(self) -> str:
        return f"<Workflow(id={self.id}, name={self.name})>"


class Template(Base):
    """Case/session template. Only its display name is indexed."""

    __tablename__ = "Templates"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    template_name = Column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Template(id={self.id}, template_name={self.template_name})>"


class Configuration(Base):
    """Test environment configuration attached to runs and sessions."""

    __tablename__ = "Configurations"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Configuration(id={self.id}, name={self.name})>"
