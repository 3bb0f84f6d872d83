from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Dict, List

import pytest
from pydantic import BaseModel, ValidationError

from jsontunnel.core.schema import (
    PydanticSchema,
    Schema,
    SchemaCheck,
    SchemaIssue,
    as_schema,
    format_issues,
)


class Inner(BaseModel):
    b: int


class Outer(BaseModel):
    a: Inner


class Tagged(BaseModel):
    tags: List[str]


class Color(str, Enum):
    RED = "red"
    BLUE = "blue"


class Paint(BaseModel):
    c: Color
    d: date


class EvenNumber:
    """Hand-written schema: proves the protocol is library-agnostic."""

    def validate(self, value: Any) -> SchemaCheck:
        if isinstance(value, int) and value % 2 == 0:
            return SchemaCheck(ok=True, value=value)
        return SchemaCheck(ok=False, issues=[SchemaIssue(path=(), message="must be even")])

    def json_schema(self) -> Dict[str, Any]:
        return {"type": "integer"}


class TestPydanticSchema:
    def test_valid_returns_converted_value(self):
        check = PydanticSchema(Outer).validate({"a": {"b": 3}})
        assert check.ok is True
        assert check.value == Outer(a=Inner(b=3))
        assert check.issues == []

    def test_invalid_collects_issue_paths(self):
        check = PydanticSchema(Outer).validate({"a": {"b": "nope"}})
        assert check.ok is False
        assert [i.path for i in check.issues] == [("a", "b")]

    def test_strict_mode_rejects_coercion(self):
        assert PydanticSchema(int).validate("5").ok is True
        assert PydanticSchema(int, strict=True).validate("5").ok is False

    def test_strict_mode_accepts_json_encodings(self):
        check = PydanticSchema(Paint, strict=True).validate({"c": "red", "d": "2024-01-01"})
        assert check.ok is True
        assert check.value == Paint(c=Color.RED, d=date(2024, 1, 1))

    def test_strict_mode_still_reports_paths(self):
        check = PydanticSchema(Paint, strict=True).validate({"c": "green", "d": "someday"})
        assert check.ok is False
        assert [i.path for i in check.issues] == [("c",), ("d",)]

    def test_json_schema(self):
        assert PydanticSchema(List[int]).json_schema() == {
            "type": "array",
            "items": {"type": "integer"},
        }


class TestAsSchema:
    def test_wraps_models_and_annotations(self):
        assert isinstance(as_schema(Outer), PydanticSchema)
        assert isinstance(as_schema(List[int]), PydanticSchema)

    def test_protocol_implementers_pass_through(self):
        custom = EvenNumber()
        assert isinstance(custom, Schema)
        assert as_schema(custom) is custom

    def test_pydantic_schema_passes_through(self):
        schema = PydanticSchema(int)
        assert as_schema(schema) is schema


class TestFormatIssues:
    def test_nested_path(self):
        check = PydanticSchema(Outer).validate({"a": {"b": "nope"}})
        assert format_issues(check.issues).startswith("- a.b: ")

    def test_array_index_path(self):
        check = PydanticSchema(Tagged).validate({"tags": ["ok", 5]})
        assert format_issues(check.issues).startswith("- tags.1: ")

    def test_root_marker(self):
        check = PydanticSchema(List[int]).validate({"x": 1})
        assert format_issues(check.issues).startswith("- <root>: ")

    def test_one_line_per_issue_in_order(self):
        issues = [
            SchemaIssue(path=("name",), message="Field required"),
            SchemaIssue(path=("items", 0, "sku"), message="bad sku"),
        ]
        assert format_issues(issues) == "- name: Field required\n- items.0.sku: bad sku"

    def test_accepts_pydantic_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            Outer.model_validate({"a": {}})
        assert format_issues(exc_info.value) == "- a.b: Field required"

    def test_empty(self):
        assert format_issues([]) == ""
