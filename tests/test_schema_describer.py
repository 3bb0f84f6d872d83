from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from jsontunnel.core.schema_describer import describe_schema


class User(BaseModel):
    name: str
    age: Optional[int] = None
    tags: List[str]


class Address(BaseModel):
    city: str
    zip_code: Optional[str] = None


class Person(BaseModel):
    name: str
    address: Address


class Color(str, Enum):
    RED = "red"
    BLUE = "blue"


class Node(BaseModel):
    value: int
    children: List["Node"] = Field(default_factory=list)


class Summary(BaseModel):
    summary: str = Field(description="A concise summary in plain English")
    confidence: float


class Aliased(BaseModel):
    first_name: str = Field(alias="first-name")


class Settings(BaseModel):
    pass


class StaticSchema:
    """Anything with validate/json_schema can be described."""

    def __init__(self, schema: Dict[str, Any]) -> None:
        self._schema = schema

    def validate(self, value):
        raise NotImplementedError

    def json_schema(self) -> Dict[str, Any]:
        return self._schema


class TestTopLevel:
    def test_object_renders_as_interface(self):
        ts = describe_schema(User, name="User")
        assert ts.startswith("export interface User {")
        assert "name: string;" in ts
        assert "age?: number | null;" in ts
        assert "tags: string[];" in ts

    def test_union_renders_as_type(self):
        ts = describe_schema(Union[str, int], name="Value")
        assert ts == "export type Value = string | number;"

    def test_array_renders_as_type(self):
        assert describe_schema(List[User], name="Users").startswith("export type Users = {")

    def test_default_name(self):
        assert describe_schema(bool) == "export type Output = boolean;"

    def test_empty_object(self):
        assert describe_schema(Settings, name="Settings") == "export interface Settings {}"


class TestPrimitives:
    def test_each_primitive(self):
        assert describe_schema(str) == "export type Output = string;"
        assert describe_schema(int) == "export type Output = number;"
        assert describe_schema(float) == "export type Output = number;"
        assert describe_schema(None) == "export type Output = null;"
        assert describe_schema(Any) == "export type Output = unknown;"


class TestShapes:
    def test_nested_objects_indent(self):
        ts = describe_schema(Person, name="Person")
        assert ts == (
            "export interface Person {\n"
            "  name: string;\n"
            "  address: {\n"
            "    city: string;\n"
            "    zip_code?: string | null;\n"
            "  };\n"
            "}"
        )

    def test_union_inside_array_is_parenthesized(self):
        ts = describe_schema(List[Union[str, int]])
        assert ts == "export type Output = (string | number)[];"

    def test_literals_and_enums(self):
        assert describe_schema(Literal["a", "b"]) == 'export type Output = "a" | "b";'
        assert describe_schema(Literal[True]) == "export type Output = true;"
        assert describe_schema(Color) == 'export type Output = "red" | "blue";'

    def test_record_and_tuple(self):
        assert describe_schema(Dict[str, int]) == "export type Output = Record<string, number>;"
        assert describe_schema(Tuple[int, str]) == "export type Output = [number, string];"

    def test_field_descriptions_become_comments(self):
        ts = describe_schema(Summary, name="Summary")
        assert "summary: string; // A concise summary in plain English" in ts

    def test_non_identifier_keys_are_quoted(self):
        ts = describe_schema(Aliased)
        assert '"first-name": string;' in ts

    def test_recursive_reference_uses_title(self):
        ts = describe_schema(Node, name="Node")
        assert ts.startswith("export interface Node {")
        assert "children?: Node[];" in ts


class TestRawJsonSchema:
    def test_intersection_wraps_unions(self):
        schema = StaticSchema(
            {
                "allOf": [
                    {"anyOf": [{"type": "string"}, {"type": "null"}]},
                    {"type": "string"},
                ]
            }
        )
        assert describe_schema(schema) == "export type Output = (string | null) & string;"

    def test_type_list(self):
        schema = StaticSchema({"type": ["string", "null"]})
        assert describe_schema(schema) == "export type Output = string | null;"

    def test_unknown_array_items(self):
        schema = StaticSchema({"type": "array"})
        assert describe_schema(schema) == "export type Output = unknown[];"
