"""OpenAI completion provider.

Uses the Chat Completions API with a system + user message pair. The engine
parses plain text replies itself, so no structured output schema is used.
"""

from __future__ import annotations

import logging

from openai import AsyncOpenAI

from ..logging_config import TRACE
from .completion import CompletionProvider, CompletionRequest, CompletionResponse, TokenUsage

logger = logging.getLogger(__name__)

# USD per 1M tokens (input, output); unknown models are costed at zero
MODEL_PRICING: dict[str, tuple[float, float]] = {
    "gpt-3.5-turbo": (0.50, 1.50),
    "gpt-4o": (2.50, 10.00),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4.1-nano": (0.10, 0.40),
}


class OpenAIProvider(CompletionProvider):
    """OpenAI SDK-based completion provider."""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout: float = 60.0,
        max_retries: int = 2,
    ):
        """Initialize the provider.

        Args:
            api_key: OpenAI API key
            base_url: Optional custom API base URL
            timeout: HTTP timeout in seconds
            max_retries: Transport retries performed by the SDK (rate limits, 5xx)
        """
        self.api_key = api_key
        self.base_url = base_url

        self._total_prompt_tokens = 0
        self._total_completion_tokens = 0
        self._cost = 0.0

        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

    @property
    def name(self) -> str:
        return "openai"

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        logger.log(
            TRACE,
            f"OpenAI call model={request.model} max_tokens={request.max_tokens} temperature={request.temperature}",
        )
        logger.debug(f"System message: {request.system_message[:500]}")
        logger.debug(f"User message: {request.user_message[:500]}")

        response = await self.client.chat.completions.create(
            model=request.model,
            messages=[
                {"role": "system", "content": request.system_message},
                {"role": "user", "content": request.user_message},
            ],
            temperature=request.temperature,
            max_tokens=request.max_tokens,
        )

        usage = getattr(response, "usage", None)
        if usage:
            self._record_usage(request.model, usage.prompt_tokens or 0, usage.completion_tokens or 0)

        text = ""
        finish_reason = None
        if response.choices:
            text = response.choices[0].message.content or ""
            finish_reason = response.choices[0].finish_reason

        logger.debug(f"OpenAI reply ({request.model}): {text[:500]}")
        return CompletionResponse(
            text=text,
            model=request.model,
            metadata={"provider": self.name, "finish_reason": finish_reason},
        )

    def _record_usage(self, model: str, prompt_tokens: int, completion_tokens: int) -> None:
        self._total_prompt_tokens += prompt_tokens
        self._total_completion_tokens += completion_tokens
        input_price, output_price = MODEL_PRICING.get(model, (0.0, 0.0))
        self._cost += (prompt_tokens * input_price + completion_tokens * output_price) / 1_000_000

    def get_token_usage(self) -> TokenUsage:
        """Get cumulative token usage statistics."""
        return TokenUsage(
            prompt_tokens=self._total_prompt_tokens,
            completion_tokens=self._total_completion_tokens,
            total_cost=self._cost,
        )

    async def health_check(self) -> bool:
        """Check if the API is accessible."""
        try:
            await self.client.models.list()
            return True
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False
