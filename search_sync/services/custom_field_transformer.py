"""Custom field value normalization for search documents.

Custom fields are typed by a free-form type tag stored on the field
definition. Every assignment is projected into a uniform sub-document with
a human readable ``value`` plus at most one typed projection, so the same
nested mapping serves exact filters, range queries and full-text search:

  Checkbox      -> valueBoolean
  Date          -> valueDate (ISO-8601 UTC)
  Number        -> valueNumeric
  Multi-Select  -> valueArray
  Select        -> valueKeyword
  Dropdown      -> valueKeyword
  Text String   -> valueKeyword
  Link          -> valueKeyword
  Text Long     -> value only (rich text flattened to plain text)
  Steps         -> value only
  anything else -> value only

Each FieldKind has exactly one handler; the module refuses to import if a
kind is added without one. Handlers never raise: malformed input degrades
to a string (or, for dates and non-list multi-select JSON, to nothing).
"""

import json
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from .content_converter import extract_text_from_node, parse_rich_text
from .document_fields import format_iso_utc

logger = logging.getLogger(__name__)


class FieldKind(str, Enum):
    """Closed set of custom field type tags."""

    CHECKBOX = "Checkbox"
    DATE = "Date"
    NUMBER = "Number"
    MULTI_SELECT = "Multi-Select"
    SELECT = "Select"
    DROPDOWN = "Dropdown"
    TEXT_STRING = "Text String"
    LINK = "Link"
    TEXT_LONG = "Text Long"
    STEPS = "Steps"
    UNKNOWN = "Unknown"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> "FieldKind":
        """Map a stored type tag to a kind; unrecognised tags are UNKNOWN."""
        try:
            return cls(tag)
        except ValueError:
            return cls.UNKNOWN


SELECT_KINDS = frozenset({FieldKind.SELECT, FieldKind.DROPDOWN})


@dataclass
class TypedFieldProjection:
    """Normalized representation of one custom field value."""

    value: Optional[str] = None
    value_keyword: Optional[str] = None
    value_numeric: Optional[float] = None
    value_boolean: Optional[bool] = None
    value_date: Optional[str] = None
    value_array: Optional[list[str]] = None

    def to_document(self) -> dict[str, Any]:
        """Render as search document keys, omitting unset projections."""
        doc: dict[str, Any] = {}
        if self.value is not None:
            doc["value"] = self.value
        if self.value_keyword is not None:
            doc["valueKeyword"] = self.value_keyword
        if self.value_numeric is not None:
            # JSON has no NaN/Infinity; the index receives null for them
            doc["valueNumeric"] = self.value_numeric if math.isfinite(self.value_numeric) else None
        if self.value_boolean is not None:
            doc["valueBoolean"] = self.value_boolean
        if self.value_date is not None:
            doc["valueDate"] = self.value_date
        if self.value_array is not None:
            doc["valueArray"] = self.value_array
        return doc


# -- Coercion helpers ----------------------------------------------------------


def _to_text(value: Any) -> str:
    """String-coerce a raw JSON value the way it reads in the UI."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _parse_date(value: Any) -> Optional[datetime]:
    """Parse a date value; None when it cannot be interpreted."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        # Numeric dates are epoch milliseconds
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# -- Per-kind handlers ---------------------------------------------------------


def _checkbox(raw: Any) -> TypedFieldProjection:
    if isinstance(raw, str):
        checked = raw.strip().lower() in ("true", "1", "yes", "on")
    else:
        checked = bool(raw)
    return TypedFieldProjection(value="true" if checked else "false", value_boolean=checked)


def _date(raw: Any) -> TypedFieldProjection:
    parsed = _parse_date(raw)
    if parsed is None:
        return TypedFieldProjection()
    iso = format_iso_utc(parsed)
    return TypedFieldProjection(value=iso, value_date=iso)


def _number(raw: Any) -> TypedFieldProjection:
    try:
        numeric = float(raw)
    except (TypeError, ValueError):
        numeric = math.nan
    return TypedFieldProjection(value=_to_text(raw), value_numeric=numeric)


def _array_projection(items: list) -> TypedFieldProjection:
    strings = [_to_text(item) for item in items]
    return TypedFieldProjection(value=" ".join(strings), value_array=strings)


def _multi_select(raw: Any) -> TypedFieldProjection:
    if isinstance(raw, list):
        return _array_projection(raw)
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return TypedFieldProjection(value=raw)
        if isinstance(parsed, list):
            return _array_projection(parsed)
    return TypedFieldProjection()


def _keyword(raw: Any) -> TypedFieldProjection:
    text = _to_text(raw)
    return TypedFieldProjection(value=text, value_keyword=text)


def _text_long(raw: Any) -> TypedFieldProjection:
    try:
        parsed = parse_rich_text(raw)
    except ValueError:
        return TypedFieldProjection(value=_to_text(raw))
    if isinstance(parsed, (dict, list)):
        return TypedFieldProjection(value=extract_text_from_node(parsed))
    return TypedFieldProjection(value=_to_text(parsed))


def _plain(raw: Any) -> TypedFieldProjection:
    return TypedFieldProjection(value=_to_text(raw))


_HANDLERS: dict[FieldKind, Callable[[Any], TypedFieldProjection]] = {
    FieldKind.CHECKBOX: _checkbox,
    FieldKind.DATE: _date,
    FieldKind.NUMBER: _number,
    FieldKind.MULTI_SELECT: _multi_select,
    FieldKind.SELECT: _keyword,
    FieldKind.DROPDOWN: _keyword,
    FieldKind.TEXT_STRING: _keyword,
    FieldKind.LINK: _keyword,
    FieldKind.TEXT_LONG: _text_long,
    FieldKind.STEPS: _plain,
    FieldKind.UNKNOWN: _plain,
}

_unhandled = set(FieldKind) - set(_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No custom field handler for: {sorted(k.value for k in _unhandled)}")


def transform_custom_field_value(field_type: Optional[str], raw_value: Any) -> TypedFieldProjection:
    """Project a raw custom field value according to its type tag.

    A missing value yields an empty projection for every kind, so the
    field is dropped from the parent document.
    """
    if raw_value is None:
        return TypedFieldProjection()
    kind = FieldKind.from_tag(field_type)
    try:
        return _HANDLERS[kind](raw_value)
    except Exception:
        logger.warning(
            "Custom field transform failed for type %s, falling back to string",
            field_type,
            exc_info=True,
        )
        return TypedFieldProjection(value=_to_text(raw_value))


# -- Custom field documents ----------------------------------------------------


def _option_document(option: Any) -> dict[str, Any]:
    doc: dict[str, Any] = {"id": option.id, "name": option.name}
    if option.icon is not None:
        doc["icon"] = {"name": option.icon.name}
    if option.icon_color is not None:
        doc["iconColor"] = {"value": option.icon_color.value}
    return doc


def resolve_field_type(field: Any) -> str:
    """Type tag of a field definition, falling back to its system name."""
    if field.field_type is not None and field.field_type.type:
        return field.field_type.type
    return field.system_name


def build_custom_field_documents(field_values: Iterable[Any]) -> list[dict[str, Any]]:
    """Build nested customFields entries for an entity.

    Args:
        field_values: CaseFieldValue or SessionFieldValue rows with their
            field definition (type and options) loaded.

    Returns:
        One document per assignment whose resolved value is non-empty.
    """
    documents: list[dict[str, Any]] = []
    for field_value in field_values:
        field = field_value.field
        field_type = resolve_field_type(field)
        projection = transform_custom_field_value(field_type, field_value.value)
        if projection.value is None or projection.value == "":
            continue

        doc: dict[str, Any] = {
            "fieldId": field_value.field_id,
            "fieldName": field.display_name,
            "fieldType": field_type,
            **projection.to_document(),
        }

        kind = FieldKind.from_tag(field_type)
        options = list(field.field_options or [])
        if kind in SELECT_KINDS and options:
            selected = _to_text(field_value.value)
            for option in options:
                if str(option.id) == selected:
                    doc["fieldOption"] = _option_document(option)
                    break
        elif kind is FieldKind.MULTI_SELECT and options:
            doc["fieldOptions"] = [_option_document(option) for option in options]

        documents.append(doc)
    return documents
