"""SQLAlchemy ORM models package."""

from .app_config import AppConfig
from .custom_field import CaseField, CaseFieldType, CaseFieldValue, FieldOption, SessionFieldValue
from .issue import Integration, Issue
from .milestone import Milestone, MilestoneType
from .project import Project
from .repository import RepositoryCase, RepositoryCaseStep, RepositoryFolder
from .session import SessionResult, TestSession
from .shared_step import SharedStepGroup, SharedStepItem
from .tag import Tag
from .test_run import TestRun, TestRunResult, TestRunStepResult
from .user import User
from .workflow import Color, Configuration, FieldIcon, Template, Workflow

__all__ = [
    "AppConfig",
    "CaseField",
    "CaseFieldType",
    "CaseFieldValue",
    "Color",
    "Configuration",
    "FieldIcon",
    "FieldOption",
    "Integration",
    "Issue",
    "Milestone",
    "MilestoneType",
    "Project",
    "RepositoryCase",
    "RepositoryCaseStep",
    "RepositoryFolder",
    "SessionFieldValue",
    "SessionResult",
    "SharedStepGroup",
    "SharedStepItem",
    "Tag",
    "Template",
    "TestRun",
    "TestRunResult",
    "TestRunStepResult",
    "TestSession",
    "User",
    "Workflow",
]
