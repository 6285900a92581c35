"""Tests for custom field value normalization."""

import json
import math
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from search_sync.services import custom_field_transformer as transformer
from search_sync.services.custom_field_transformer import (
    FieldKind,
    TypedFieldProjection,
    build_custom_field_documents,
    transform_custom_field_value,
)


def option(option_id: int, name: str, icon: str | None = None, color: str | None = None):
    return SimpleNamespace(
        id=option_id,
        name=name,
        icon=SimpleNamespace(name=icon) if icon else None,
        icon_color=SimpleNamespace(value=color) if color else None,
    )


def field_value(field_type: str | None, value, options=(), system_name: str = "field", field_id: int = 1):
    field = SimpleNamespace(
        display_name="Field",
        system_name=system_name,
        field_type=SimpleNamespace(type=field_type) if field_type else None,
        field_options=list(options),
    )
    return SimpleNamespace(field_id=field_id, field=field, value=value)


class TestFieldKind:

    def test_known_tags(self):
        assert FieldKind.from_tag("Multi-Select") is FieldKind.MULTI_SELECT
        assert FieldKind.from_tag("Text Long") is FieldKind.TEXT_LONG

    def test_unknown_tags(self):
        assert FieldKind.from_tag("Rating") is FieldKind.UNKNOWN
        assert FieldKind.from_tag(None) is FieldKind.UNKNOWN

    def test_every_kind_has_a_handler(self):
        assert set(transformer._HANDLERS) == set(FieldKind)


class TestTransformCustomFieldValue:

    def test_checkbox(self):
        projection = transform_custom_field_value("Checkbox", True)
        assert projection.to_document() == {"value": "true", "valueBoolean": True}

    def test_checkbox_string_false(self):
        projection = transform_custom_field_value("Checkbox", "false")
        assert projection.value_boolean is False
        assert projection.value == "false"

    def test_date_iso_string(self):
        projection = transform_custom_field_value("Date", "2024-03-01T10:00:00Z")
        assert projection.value_date == "2024-03-01T10:00:00.000Z"
        assert projection.value == projection.value_date

    def test_date_epoch_millis(self):
        projection = transform_custom_field_value("Date", 86_400_000)
        assert projection.value_date == "1970-01-02T00:00:00.000Z"

    def test_date_datetime_with_offset(self):
        value = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert transform_custom_field_value("Date", value).value_date == "2024-03-01T12:00:00.000Z"

    def test_invalid_date_is_skipped(self):
        projection = transform_custom_field_value("Date", "next tuesday")
        assert projection.to_document() == {}

    def test_number(self):
        projection = transform_custom_field_value("Number", "12.5")
        assert projection.value_numeric == 12.5
        assert projection.value == "12.5"

    def test_integer_number_mirror(self):
        assert transform_custom_field_value("Number", 3.0).value == "3"

    def test_non_numeric_number_propagates_nan(self):
        projection = transform_custom_field_value("Number", "abc")
        assert math.isnan(projection.value_numeric)
        # JSON cannot carry NaN
        assert projection.to_document() == {"value": "abc", "valueNumeric": None}

    def test_multi_select_list(self):
        projection = transform_custom_field_value("Multi-Select", [1, 2])
        assert projection.value_array == ["1", "2"]
        assert projection.value == "1 2"

    def test_multi_select_json_list(self):
        projection = transform_custom_field_value("Multi-Select", '["a", "b"]')
        assert projection.value_array == ["a", "b"]

    def test_multi_select_json_non_list(self):
        assert transform_custom_field_value("Multi-Select", '{"a": 1}').to_document() == {}

    def test_multi_select_unparsable(self):
        projection = transform_custom_field_value("Multi-Select", "a, b")
        assert projection.to_document() == {"value": "a, b"}

    @pytest.mark.parametrize("field_type", ["Select", "Dropdown", "Text String", "Link"])
    def test_keyword_kinds(self, field_type):
        projection = transform_custom_field_value(field_type, "value-1")
        assert projection.to_document() == {"value": "value-1", "valueKeyword": "value-1"}

    def test_text_long_json(self):
        encoded = json.dumps({"type": "doc", "content": [{"type": "text", "text": "Long text"}]})
        assert transform_custom_field_value("Text Long", encoded).to_document() == {"value": "Long text"}

    def test_text_long_unparsable(self):
        assert transform_custom_field_value("Text Long", "plain words").value == "plain words"

    def test_unknown_kind_string_coerces(self):
        assert transform_custom_field_value("Rating", 4).to_document() == {"value": "4"}

    def test_none_value_is_empty_for_every_kind(self):
        for kind in FieldKind:
            assert transform_custom_field_value(kind.value, None) == TypedFieldProjection()

    def test_handler_failure_falls_back_to_string(self, monkeypatch):
        def boom(raw):
            raise RuntimeError("broken handler")

        monkeypatch.setitem(transformer._HANDLERS, FieldKind.NUMBER, boom)
        assert transform_custom_field_value("Number", 7).to_document() == {"value": "7"}


class TestBuildCustomFieldDocuments:

    def test_select_attaches_selected_option(self):
        options = [option(7, "High", icon="flame", color="#ef4444"), option(8, "Low")]
        docs = build_custom_field_documents([field_value("Select", 7, options, field_id=3)])
        assert docs == [{
            "fieldId": 3,
            "fieldName": "Field",
            "fieldType": "Select",
            "value": "7",
            "valueKeyword": "7",
            "fieldOption": {"id": 7, "name": "High", "icon": {"name": "flame"}, "iconColor": {"value": "#ef4444"}},
        }]

    def test_dropdown_option_without_icon(self):
        docs = build_custom_field_documents([field_value("Dropdown", "8", [option(8, "Low")])])
        assert docs[0]["fieldOption"] == {"id": 8, "name": "Low"}

    def test_multi_select_lists_all_options(self):
        options = [option(1, "Chrome"), option(2, "Firefox")]
        docs = build_custom_field_documents([field_value("Multi-Select", [1], options)])
        assert [o["name"] for o in docs[0]["fieldOptions"]] == ["Chrome", "Firefox"]
        assert docs[0]["valueArray"] == ["1"]

    def test_type_falls_back_to_system_name(self):
        docs = build_custom_field_documents([field_value(None, True, system_name="Checkbox")])
        assert docs[0]["fieldType"] == "Checkbox"
        assert docs[0]["valueBoolean"] is True

    def test_empty_values_are_dropped(self):
        docs = build_custom_field_documents([
            field_value("Text String", ""),
            field_value("Text String", None),
            field_value("Date", "garbage"),
            field_value("Text String", "kept", field_id=9),
        ])
        assert [doc["fieldId"] for doc in docs] == [9]
