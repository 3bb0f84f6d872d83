from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, ClassVar, Optional, Union

from jsontunnel.core.schema import Schema, as_schema, format_issues
from jsontunnel.core.tunnel_schemas import (
    InvalidJson,
    NoJson,
    SchemaMismatch,
    ValidationFailure,
)


class LLMInvalidJSON(ValueError):
    """Raised when model output has no JSON, or the JSON does not decode."""

    def __init__(self, failure: Union[NoJson, InvalidJson]) -> None:
        self.failure = failure
        super().__init__(f"LLM returned invalid JSON: {failure.message}")


class LLMSchemaViolation(ValueError):
    """Raised when JSON is valid but does not match schema."""

    def __init__(self, failure: SchemaMismatch) -> None:
        self.failure = failure
        super().__init__(f"LLM JSON did not match schema:\n{failure.issues_text}")


# ----------------------------
# Extraction results
# ----------------------------

@dataclass(frozen=True)
class Found:
    kind: ClassVar[str] = "found"

    json_text: str
    value: Any


@dataclass(frozen=True)
class NotFound:
    kind: ClassVar[str] = "not_found"


@dataclass(frozen=True)
class ParseError:
    kind: ClassVar[str] = "parse_error"

    json_text: str
    message: str


ExtractionResult = Union[Found, NotFound, ParseError]


@dataclass(frozen=True)
class Accepted:
    """Output that decoded and passed schema validation."""

    json_text: str
    value: Any


# ----------------------------
# Span scanning
# ----------------------------

def _find_json_start(text: str) -> Optional[int]:
    obj = text.find("{")
    arr = text.find("[")
    if obj == -1 and arr == -1:
        return None
    if obj == -1:
        return arr
    if arr == -1:
        return obj
    return min(obj, arr)


def extract_json_span(text: str) -> Optional[str]:
    """
    Return the first balanced JSON object/array substring of `text`.

    Models like to wrap JSON in prose or Markdown fences, so we scan for the
    first '{' or '[' and track nesting depth outside string literals until it
    returns to zero. Returns None if nothing opens or the nesting never closes.
    """
    start = _find_json_start(text)
    if start is None:
        return None

    in_string = False
    escaped = False
    depth = 0

    for i in range(start, len(text)):
        ch = text[i]

        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    return None


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON, whatever json.loads tolerates.
    raise ValueError(f"Invalid JSON constant: {name}")


def extract_and_parse(text: str) -> ExtractionResult:
    json_text = extract_json_span(text)
    if json_text is None:
        return NotFound()

    try:
        value = json.loads(json_text, parse_constant=_reject_constant)
    except ValueError as e:
        return ParseError(json_text=json_text, message=str(e))

    return Found(json_text=json_text, value=value)


# ----------------------------
# Extraction + validation
# ----------------------------

def check_output(raw_output: str, schema: Schema) -> Union[Accepted, ValidationFailure]:
    """
    Classify one raw model output.

    Reason:
    - The retry loop and the stream validator need the same three failure kinds.
    Benefit:
    - A failure here is a value, not an exception, so the caller decides what to do.
    """
    extracted = extract_and_parse(raw_output)

    if isinstance(extracted, NotFound):
        return NoJson(raw_output=raw_output)

    if isinstance(extracted, ParseError):
        return InvalidJson(
            raw_output=raw_output,
            json_text=extracted.json_text,
            parse_message=extracted.message,
        )

    if not isinstance(extracted, Found):
        raise TypeError(f"Unhandled extraction result: {type(extracted).__name__}")

    checked = schema.validate(extracted.value)
    if not checked.ok:
        return SchemaMismatch(
            raw_output=raw_output,
            json_text=extracted.json_text,
            issues_text=format_issues(checked.issues),
        )

    return Accepted(json_text=extracted.json_text, value=checked.value)


def parse_and_validate(raw_output: str, schema: Any) -> Any:
    """
    Parse raw LLM output and validate it against a schema in one shot.

    Raises LLMInvalidJSON or LLMSchemaViolation, each carrying the failure
    record on `.failure`. Use a Tunnel when you want corrective retries.
    """
    result = check_output(raw_output, as_schema(schema))

    if isinstance(result, Accepted):
        return result.value
    if isinstance(result, (NoJson, InvalidJson)):
        raise LLMInvalidJSON(result)
    if isinstance(result, SchemaMismatch):
        raise LLMSchemaViolation(result)

    raise TypeError(f"Unhandled output check result: {type(result).__name__}")
