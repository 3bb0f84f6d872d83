"""
Shared helpers: scripted runners stand in for a real LLM call.
"""

from __future__ import annotations

from typing import Callable, List, Optional

import pytest


class ScriptedRunner:
    """
    Returns outputs[attempt] on each call and records what it saw.

    `user_prompt` may be a string or a function of the attempt index, so tests
    can pass different text on retries.
    """

    def __init__(
        self,
        outputs: List[str],
        user_prompt: "str | Callable[[int], str]" = "Extract",
    ) -> None:
        self.outputs = outputs
        self.user_prompt = user_prompt
        self.prompts: List[str] = []
        self.contexts = []

    def _prompt_for(self, attempt: int) -> str:
        if callable(self.user_prompt):
            return self.user_prompt(attempt)
        return self.user_prompt

    async def __call__(self, helpers) -> str:
        attempt = helpers.context.attempt
        self.contexts.append(helpers.context)
        self.prompts.append(helpers.inject_schema(self._prompt_for(attempt)))
        return self.outputs[min(attempt, len(self.outputs) - 1)]


@pytest.fixture
def scripted_runner() -> Callable[..., ScriptedRunner]:
    def _make(outputs: List[str], user_prompt: Optional[object] = "Extract") -> ScriptedRunner:
        return ScriptedRunner(outputs, user_prompt=user_prompt)

    return _make
