from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class TunnelConfig:
    # Retries after the first attempt. Default: 2 (so 3 total attempts).
    max_retries: int = 2

    # Optional text placed before the output rules in every prompt.
    system_prompt: str | None = None

    # Name used for the rendered type ("export interface Output ...").
    schema_name: str = "Output"

    # How much of a failed output is echoed back in the corrective prompt.
    max_failure_output_chars: int = 4000

    # Which version of the prompt templates to load.
    prompt_version: str = "v1"

    def __post_init__(self) -> None:
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int):
            raise ValueError(f"max_retries must be an int (got {self.max_retries!r})")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0 (got {self.max_retries})")
        if (
            isinstance(self.max_failure_output_chars, bool)
            or not isinstance(self.max_failure_output_chars, int)
        ):
            raise ValueError(
                f"max_failure_output_chars must be an int (got {self.max_failure_output_chars!r})"
            )
        if self.max_failure_output_chars < 0:
            raise ValueError(
                f"max_failure_output_chars must be >= 0 (got {self.max_failure_output_chars})"
            )
        if not str(self.schema_name or "").strip():
            raise ValueError("schema_name is required (got empty)")
        if not str(self.prompt_version or "").strip():
            raise ValueError("prompt_version is required (got empty)")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


def load_config() -> TunnelConfig:
    """Build a TunnelConfig from JSONTUNNEL_* environment variables."""
    max_retries = _env_int("JSONTUNNEL_MAX_RETRIES", 2)
    system_prompt = os.getenv("JSONTUNNEL_SYSTEM_PROMPT", "").strip() or None
    schema_name = os.getenv("JSONTUNNEL_SCHEMA_NAME", "").strip() or "Output"
    max_failure_output_chars = _env_int("JSONTUNNEL_MAX_FAILURE_OUTPUT_CHARS", 4000)
    prompt_version = os.getenv("JSONTUNNEL_PROMPT_VERSION", "").strip() or "v1"

    return TunnelConfig(
        max_retries=max_retries,
        system_prompt=system_prompt,
        schema_name=schema_name,
        max_failure_output_chars=max_failure_output_chars,
        prompt_version=prompt_version,
    )
