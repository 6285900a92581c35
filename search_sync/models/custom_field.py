"""Custom field definitions, options and per-entity value assignments.

A CaseField is declared once (display name, system name, type) and may
offer a list of FieldOptions for select-style types. Values live in
CaseFieldValues (repository cases) and SessionFieldValues (sessions) as
raw JSON, whose shape depends on the field type.
"""

from sqlalchemy import JSON, Column, ForeignKey, Integer, String, Table
from sqlalchemy.orm import relationship

from ..database import Base


class CaseFieldType(Base):
    """Field type tag such as "Checkbox", "Multi-Select" or "Text Long"."""

    __tablename__ = "CaseFieldTypes"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(64), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<CaseFieldType(id={self.id}, type={self.type})>"


class FieldOption(Base):
    """
    Selectable option for Select, Dropdown and Multi-Select fields.

    Attributes:
        id: Unique identifier (stored as the field value when selected)
        name: Option label
        icon_id: FK to FieldIcons
        icon_color_id: FK to Colors
    """

    __tablename__ = "FieldOptions"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    icon_id = Column(Integer, ForeignKey("FieldIcons.id"), nullable=True)
    icon_color_id = Column(Integer, ForeignKey("Colors.id"), nullable=True)

    icon = relationship("FieldIcon", lazy="joined")
    icon_color = relationship("Color", lazy="joined")

    def __repr__(self) -> str:
        return f"<FieldOption(id={self.id}, name={self.name})>"


case_field_options = Table(
    "CaseFieldOptions",
    Base.metadata,
    Column("field_id", Integer, ForeignKey("CaseFields.id", ondelete="CASCADE"), primary_key=True),
    Column("field_option_id", Integer, ForeignKey("FieldOptions.id", ondelete="CASCADE"), primary_key=True),
)


class CaseField(Base):
    """
    Custom field definition.

    Attributes:
        id: Unique identifier
        display_name: Label shown in the UI and indexed as fieldName
        system_name: Stable machine name, also the fallback type tag
        type_id: FK to CaseFieldTypes
    """

    __tablename__ = "CaseFields"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    display_name = Column(String(255), nullable=False)
    system_name = Column(String(255), nullable=False)
    type_id = Column(Integer, ForeignKey("CaseFieldTypes.id"), nullable=True)

    field_type = relationship("CaseFieldType", lazy="joined")
    field_options = relationship(
        "FieldOption",
        secondary=case_field_options,
        order_by="FieldOption.id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<CaseField(id={self.id}, system_name={self.system_name})>"


class CaseFieldValue(Base):
    """Value of a custom field on a repository case."""

    __tablename__ = "CaseFieldValues"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    test_case_id = Column(
        Integer,
        ForeignKey("RepositoryCases.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_id = Column(Integer, ForeignKey("CaseFields.id"), nullable=False)
    value = Column(JSON, nullable=True)

    field = relationship("CaseField", lazy="joined")

    def __repr__(self) -> str:
        return f"<CaseFieldValue(test_case_id={self.test_case_id}, field_id={self.field_id})>"


class SessionFieldValue(Base):
    """Value of a custom field on an exploratory session."""

    __tablename__ = "SessionFieldValues"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        Integer,
        ForeignKey("Sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_id = Column(Integer, ForeignKey("CaseFields.id"), nullable=False)
    value = Column(JSON, nullable=True)

    field = relationship("CaseField", lazy="joined")

    def __repr__(self) -> str:
        return f"<SessionFieldValue(session_id={self.session_id}, field_id={self.field_id})>"
