"""Field helpers shared by the entity document projections."""

from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional


def format_iso_utc(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime as ISO-8601 UTC with millisecond precision.

    Naive datetimes are taken to be UTC (the store writes utcnow()).
    """
    if value is None:
        return None
    if not isinstance(value, datetime) and isinstance(value, date):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def project_fields(project: Any) -> dict[str, Any]:
    """projectId / projectName / projectIconUrl for a loaded project."""
    if project is None:
        return {"projectId": None, "projectName": None, "projectIconUrl": None}
    return {
        "projectId": project.id,
        "projectName": project.name,
        "projectIconUrl": project.icon_url,
    }


def created_by_fields(user: Any, user_id: Optional[str]) -> dict[str, Any]:
    """createdById / createdByName / createdByImage for the creating user."""
    return {
        "createdById": user_id,
        "createdByName": user.name if user is not None else None,
        "createdByImage": user.image if user is not None else None,
    }


def state_fields(state: Any, state_id: Optional[int]) -> dict[str, Any]:
    """Workflow state id, name, icon name and color value."""
    return {
        "stateId": state_id,
        "stateName": state.name if state is not None else None,
        "stateIcon": state.icon.name if state is not None and state.icon is not None else None,
        "stateColor": state.color.value if state is not None and state.color is not None else None,
    }


def tag_documents(tags: Iterable[Any]) -> list[dict[str, Any]]:
    """Nested tag entries, skipping soft-deleted tags."""
    return [{"id": tag.id, "name": tag.name} for tag in tags if not tag.is_deleted]
