from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union

from jsontunnel.core.config import TunnelConfig
from jsontunnel.core.llm_output import Accepted, check_output
from jsontunnel.core.prompt_loader import load_prompt
from jsontunnel.core.schema import as_schema
from jsontunnel.core.schema_describer import describe_schema
from jsontunnel.core.tunnel_schemas import (
    AttemptContext,
    InvalidJson,
    NoJson,
    RunHelpers,
    SchemaMismatch,
    ValidationFailure,
)
from jsontunnel.infra.ids import new_run_id
from jsontunnel.infra.logging import log_event

TRUNCATION_MARKER = "\n...<truncated>"

Runner = Callable[[RunHelpers], Union[str, Awaitable[str]]]


class MaxRetriesExceeded(RuntimeError):
    """Raised when every attempt of a run produced invalid output."""

    def __init__(self, message: str, failures: Sequence[ValidationFailure]) -> None:
        self.failures = tuple(failures)
        super().__init__(message)

    @property
    def last_failure(self) -> Optional[ValidationFailure]:
        return self.failures[-1] if self.failures else None


@dataclass
class _RunState:
    """Owned by exactly one run() call."""

    run_id: str
    intent: str = ""
    failures: List[ValidationFailure] = field(default_factory=list)


class Tunnel:
    """
    Build prompt -> call runner -> extract + validate -> correct and retry.

    Reason:
    - Models return prose, fences and near-miss JSON more often than not.
    Benefit:
    - Callers get a validated value or a MaxRetriesExceeded with every failure.
    """

    def __init__(self, schema: Any, config: Optional[TunnelConfig] = None) -> None:
        self.schema = as_schema(schema)
        self.config = config or TunnelConfig()

        # Rendered once; shared read-only by concurrent runs.
        self.schema_description = describe_schema(self.schema, name=self.config.schema_name)
        self._strict_rules = load_prompt(
            "strict_rules",
            version=self.config.prompt_version,
            schema_description=self.schema_description,
        )
        self._correction_preamble = load_prompt(
            "correction_preamble", version=self.config.prompt_version
        )

    # ----------------------------
    # Prompt construction
    # ----------------------------

    def _system_parts(self) -> List[str]:
        system_prompt = (self.config.system_prompt or "").strip()
        return [system_prompt] if system_prompt else []

    def _truncate(self, text: str) -> str:
        limit = self.config.max_failure_output_chars
        if len(text) <= limit:
            return text
        return text[:limit] + TRUNCATION_MARKER

    def build_base_prompt(self, intent: str) -> str:
        parts = self._system_parts()
        parts.append(self._strict_rules)
        if intent:
            parts.append(intent)
        return "\n\n".join(parts)

    def build_correction_prompt(self, intent: str, failure: ValidationFailure) -> str:
        if not isinstance(failure, (NoJson, InvalidJson, SchemaMismatch)):
            raise TypeError(f"Unhandled failure kind: {type(failure).__name__}")

        parts = self._system_parts()
        parts.append(self._correction_preamble)
        parts.append(self._strict_rules)
        parts.append("Validation problems:\n" + failure.message)

        if isinstance(failure, SchemaMismatch):
            parts.append("Schema issues:\n" + failure.issues_text)

        if intent:
            parts.append("Original request context:\n" + intent)

        parts.append("Previous output:\n```text\n" + self._truncate(failure.raw_output) + "\n```")
        return "\n\n".join(parts)

    def _make_injector(
        self,
        state: _RunState,
        attempt: int,
        last_failure: Optional[ValidationFailure],
    ) -> Callable[..., str]:
        def inject_schema(user_prompt: str = "") -> str:
            if attempt == 0:
                trimmed = (user_prompt or "").strip()
                if trimmed:
                    state.intent = trimmed
                return self.build_base_prompt(trimmed)

            # Later attempts always restate the intent locked on attempt 0.
            return self.build_correction_prompt(state.intent, last_failure)

        return inject_schema

    # ----------------------------
    # Run loop
    # ----------------------------

    async def run(self, runner: Runner) -> Any:
        state = _RunState(run_id=new_run_id())
        max_retries = self.config.max_retries
        last_failure: Optional[ValidationFailure] = None

        log_event(
            "tunnel_run_start",
            run_id=state.run_id,
            schema_name=self.config.schema_name,
            max_retries=max_retries,
        )

        for attempt in range(max_retries + 1):
            context = AttemptContext(
                attempt=attempt, max_retries=max_retries, last_failure=last_failure
            )
            helpers = RunHelpers(
                inject_schema=self._make_injector(state, attempt, last_failure),
                context=context,
            )

            log_event("tunnel_attempt_start", run_id=state.run_id, attempt=attempt)

            try:
                raw_output = runner(helpers)
                if inspect.isawaitable(raw_output):
                    raw_output = await raw_output
            except Exception as e:
                log_event(
                    "tunnel_runner_error",
                    run_id=state.run_id,
                    attempt=attempt,
                    error=f"{type(e).__name__}: {e}",
                )
                raise

            if not isinstance(raw_output, str):
                raise TypeError(
                    f"Runner must return str (got {type(raw_output).__name__})"
                )

            result = check_output(raw_output, self.schema)

            if isinstance(result, Accepted):
                log_event(
                    "tunnel_run_success",
                    run_id=state.run_id,
                    attempts=attempt + 1,
                )
                return result.value

            state.failures.append(result)
            last_failure = result

            log_event(
                "tunnel_attempt_failed",
                run_id=state.run_id,
                attempt=attempt,
                kind=result.kind,
                output_chars=len(raw_output),
            )

        log_event(
            "tunnel_run_exhausted",
            run_id=state.run_id,
            attempts=max_retries + 1,
            kinds=[f.kind for f in state.failures],
        )
        raise MaxRetriesExceeded(
            f"Failed to produce valid output after {max_retries + 1} attempts.",
            state.failures,
        )

    def run_sync(self, runner: Runner) -> Any:
        """Run from synchronous code (not from inside a running event loop)."""
        return asyncio.run(self.run(runner))


def create_tunnel(schema: Any, config: Optional[TunnelConfig] = None, **overrides: Any) -> Tunnel:
    """
    create_tunnel(User, max_retries=1, system_prompt="You extract users.")
    """
    config = config or TunnelConfig()
    if overrides:
        config = replace(config, **overrides)
    return Tunnel(schema, config)
