from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Protocol, Tuple, Union, runtime_checkable

from pydantic import TypeAdapter, ValidationError

ROOT_PATH_MARKER = "<root>"


@dataclass(frozen=True)
class SchemaIssue:
    """One validation problem, located by field/index path."""

    path: Tuple[Union[str, int], ...]
    message: str

    @property
    def dotted_path(self) -> str:
        if not self.path:
            return ROOT_PATH_MARKER
        return ".".join(str(p) for p in self.path)


@dataclass(frozen=True)
class SchemaCheck:
    """
    Outcome of Schema.validate().

    `value` is the validated (possibly converted) value when ok is True.
    """

    ok: bool
    value: Any = None
    issues: List[SchemaIssue] = field(default_factory=list)


@runtime_checkable
class Schema(Protocol):
    """
    What the tunnel needs from a validation library.

    Reason:
    - The retry loop only has to validate values and describe the shape.
    Benefit:
    - Any validation library can be plugged in behind these two methods.
    """

    def validate(self, value: Any) -> SchemaCheck:
        ...

    def json_schema(self) -> Dict[str, Any]:
        """JSON Schema introspection used to render the prompt description."""
        ...


def issues_from_validation_error(error: ValidationError) -> List[SchemaIssue]:
    return [
        SchemaIssue(path=tuple(err.get("loc", ())), message=err.get("msg", ""))
        for err in error.errors()
    ]


class PydanticSchema:
    """
    Schema backed by a pydantic TypeAdapter.

    Works for BaseModel subclasses, TypedDicts, dataclasses and plain
    annotations such as ``list[int]`` or ``Union[str, int]``.
    """

    def __init__(self, type_: Any, *, strict: bool | None = None) -> None:
        self.type_ = type_
        self.strict = strict
        self._adapter: TypeAdapter = TypeAdapter(type_)

    def validate(self, value: Any) -> SchemaCheck:
        try:
            if self.strict:
                # Values come from decoded JSON; strict mode must judge them as JSON.
                validated = self._adapter.validate_json(json.dumps(value), strict=True)
            else:
                validated = self._adapter.validate_python(value, strict=self.strict)
        except ValidationError as e:
            return SchemaCheck(ok=False, issues=issues_from_validation_error(e))
        return SchemaCheck(ok=True, value=validated)

    def json_schema(self) -> Dict[str, Any]:
        return self._adapter.json_schema()

    def __repr__(self) -> str:
        return f"PydanticSchema({self.type_!r})"


def as_schema(obj: Any) -> Schema:
    """Return `obj` if it already speaks the Schema protocol, else wrap it with pydantic."""
    if not isinstance(obj, type) and isinstance(obj, Schema):
        return obj
    return PydanticSchema(obj)


def format_issues(issues: Union[ValidationError, Iterable[SchemaIssue]]) -> str:
    """
    Render validation issues as a bullet list, one line per issue:

        - user.address.city: Field required
        - <root>: Input should be a valid list
    """
    if isinstance(issues, ValidationError):
        issues = issues_from_validation_error(issues)
    return "\n".join(f"- {issue.dotted_path}: {issue.message}" for issue in issues)
