from dataclasses import dataclass
from typing import Annotated, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

NO_JSON_MESSAGE = "No JSON object/array found in model output."
SCHEMA_MISMATCH_MESSAGE = "Output JSON did not match the schema."


class NoJson(BaseModel):
    """
    The model answered without any JSON object/array in its output.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["no_json"] = "no_json"
    raw_output: str

    @property
    def message(self) -> str:
        return NO_JSON_MESSAGE


class InvalidJson(BaseModel):
    """
    A balanced JSON span was found but json.loads() rejected it.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["invalid_json"] = "invalid_json"
    raw_output: str
    json_text: str
    parse_message: str

    @property
    def message(self) -> str:
        return self.parse_message


class SchemaMismatch(BaseModel):
    """
    The JSON decoded fine but does not have the expected shape.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["schema_mismatch"] = "schema_mismatch"
    raw_output: str
    json_text: str
    issues_text: str

    @property
    def message(self) -> str:
        return SCHEMA_MISMATCH_MESSAGE


ValidationFailure = Annotated[
    Union[NoJson, InvalidJson, SchemaMismatch], Field(discriminator="kind")
]


class AttemptContext(BaseModel):
    """
    What the runner knows about the attempt it is serving.

    Reason:
    - Runners may want to adapt (e.g. raise temperature) on retries.
    Benefit:
    - attempt + last_failure fully determine the corrective prompt text.
    """

    model_config = ConfigDict(frozen=True)

    attempt: int = Field(ge=0)
    max_retries: int = Field(ge=0)
    last_failure: Optional[ValidationFailure] = None


@dataclass(frozen=True)
class RunHelpers:
    """Passed to the runner on every attempt."""

    inject_schema: Callable[..., str]
    context: AttemptContext
