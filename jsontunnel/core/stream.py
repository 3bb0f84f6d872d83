from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, ClassVar, Iterable, Iterator, Optional, Union

from jsontunnel.core.llm_output import Accepted, check_output
from jsontunnel.core.schema import as_schema
from jsontunnel.core.tunnel_schemas import InvalidJson, NoJson, SchemaMismatch
from jsontunnel.infra.ids import new_stream_id
from jsontunnel.infra.logging import log_event


@dataclass(frozen=True)
class NoJsonYet:
    status: ClassVar[str] = "no_json_yet"

    buffer: str


@dataclass(frozen=True)
class MalformedJson:
    status: ClassVar[str] = "invalid_json"

    buffer: str
    message: str
    json_text: Optional[str] = None


@dataclass(frozen=True)
class InvalidSchema:
    status: ClassVar[str] = "invalid_schema"

    buffer: str
    message: str
    issues_text: str
    json_text: str


@dataclass(frozen=True)
class Valid:
    status: ClassVar[str] = "valid"

    buffer: str
    data: Any
    json_text: str


StreamResult = Union[NoJsonYet, MalformedJson, InvalidSchema, Valid]


class JsonStreamValidator:
    """
    Re-checks the accumulated buffer after every chunk.

    No status is terminal: a Valid buffer may still receive trailing text, and
    a MalformedJson one may become valid later. The caller decides when to stop.
    Not safe for concurrent push() calls on one instance.
    """

    def __init__(self, schema: Any) -> None:
        self.schema = as_schema(schema)
        self.stream_id = new_stream_id()
        self._buffer = ""

    def push(self, chunk: str) -> StreamResult:
        self._buffer += chunk
        result = self._classify(self._buffer)

        log_event(
            "stream_push",
            level=logging.DEBUG,
            stream_id=self.stream_id,
            status=result.status,
            buffer_len=len(self._buffer),
        )
        return result

    def reset(self) -> None:
        self._buffer = ""
        log_event("stream_reset", level=logging.DEBUG, stream_id=self.stream_id)

    def current_buffer(self) -> str:
        return self._buffer

    def _classify(self, buffer: str) -> StreamResult:
        checked = check_output(buffer, self.schema)

        if isinstance(checked, Accepted):
            return Valid(buffer=buffer, data=checked.value, json_text=checked.json_text)
        if isinstance(checked, NoJson):
            return NoJsonYet(buffer=buffer)
        if isinstance(checked, InvalidJson):
            return MalformedJson(
                buffer=buffer, message=checked.message, json_text=checked.json_text
            )
        if isinstance(checked, SchemaMismatch):
            return InvalidSchema(
                buffer=buffer,
                message=checked.message,
                issues_text=checked.issues_text,
                json_text=checked.json_text,
            )

        raise TypeError(f"Unhandled output check result: {type(checked).__name__}")


async def validate_json_stream(
    schema: Any, chunks: AsyncIterable[str]
) -> AsyncIterator[StreamResult]:
    """Yield one StreamResult per chunk of an async stream (e.g. LLM token deltas)."""
    validator = JsonStreamValidator(schema)
    async for chunk in chunks:
        yield validator.push(chunk)


def iter_validate(schema: Any, chunks: Iterable[str]) -> Iterator[StreamResult]:
    validator = JsonStreamValidator(schema)
    for chunk in chunks:
        yield validator.push(chunk)
