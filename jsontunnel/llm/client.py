import asyncio
import os
import time
from typing import Any, Optional

import openai
from openai import OpenAI

from jsontunnel.core.config import TunnelConfig
from jsontunnel.core.tunnel import create_tunnel
from jsontunnel.core.tunnel_schemas import RunHelpers
from jsontunnel.infra.logging import log_event

# Transport problems worth a short wait; everything else propagates at once.
TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class OpenAIRunner:
    """
    Tunnel runner that sends the injected prompt to OpenAI Chat Completions.

    Reason:
    - The tunnel only needs "prompt in, text out"; this is that, for OpenAI.
    Benefit:
    - Token usage and cost are tracked across every attempt of every run.
    """

    def __init__(
        self,
        user_prompt: str,
        *,
        model: str = "gpt-4o-mini",
        temperature: float = 0.0,
        client: Optional[Any] = None,
        max_transport_attempts: int = 3,
        base_backoff_seconds: float = 1.0,
        cost_per_1k_tokens: float = 0.00015,  # example, update as pricing changes
    ) -> None:
        if max_transport_attempts < 1:
            raise ValueError("max_transport_attempts must be >= 1")

        if client is None:
            if not os.getenv("OPENAI_API_KEY"):
                raise RuntimeError("OPENAI_API_KEY is not set")
            client = OpenAI(api_key=os.getenv("OPENAI_API_KEY"))

        self.user_prompt = user_prompt
        self.model = model
        self.temperature = temperature
        self.client = client
        self.max_transport_attempts = max_transport_attempts
        self.base_backoff_seconds = base_backoff_seconds
        self.cost_per_1k_tokens = cost_per_1k_tokens

        # Cost tracking
        self.total_tokens = 0
        self.total_cost = 0.0

    async def __call__(self, helpers: RunHelpers) -> str:
        prompt = helpers.inject_schema(self.user_prompt)
        response = await self._call_openai(prompt, attempt=helpers.context.attempt)

        usage = getattr(response, "usage", None)
        tokens_used = getattr(usage, "total_tokens", 0) or 0
        cost = (tokens_used / 1000) * self.cost_per_1k_tokens

        self.total_tokens += tokens_used
        self.total_cost += cost

        log_event(
            "llm_usage",
            attempt=helpers.context.attempt,
            tokens=tokens_used,
            cost=cost,
            total_tokens=self.total_tokens,
            total_cost=self.total_cost,
        )

        return response.choices[0].message.content or ""

    async def _call_openai(self, prompt: str, *, attempt: int) -> Any:
        """
        Make the API call, retrying transient transport errors with backoff.
        Output-shape problems are not handled here; the tunnel owns those.
        The blocking SDK call runs in a worker thread so concurrent runs keep going.
        """
        for transport_attempt in range(1, self.max_transport_attempts + 1):
            start = time.time()
            try:
                response = await asyncio.to_thread(
                    self.client.chat.completions.create,
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=self.temperature,
                )
            except TRANSIENT_ERRORS as e:
                log_event(
                    "llm_transient_error",
                    attempt=attempt,
                    transport_attempt=transport_attempt,
                    error_type=type(e).__name__,
                )
                if transport_attempt == self.max_transport_attempts:
                    raise
                await self._backoff(transport_attempt)
                continue

            log_event("llm_latency", attempt=attempt, seconds=time.time() - start)
            return response

        raise AssertionError("unreachable")

    async def _backoff(self, transport_attempt: int) -> None:
        delay = self.base_backoff_seconds * (2 ** (transport_attempt - 1))
        log_event("llm_backoff", delay=delay)
        await asyncio.sleep(delay)


def generate_structured(
    user_prompt: str,
    schema: Any,
    *,
    config: Optional[TunnelConfig] = None,
    **runner_kwargs: Any,
) -> Any:
    """
    One call: prompt in, validated value out (or MaxRetriesExceeded).
    """
    tunnel = create_tunnel(schema, config)
    runner = OpenAIRunner(user_prompt, **runner_kwargs)
    return tunnel.run_sync(runner)
