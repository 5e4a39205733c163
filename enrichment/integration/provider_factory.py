"""Provider Factory - Creates completion providers based on configuration.

Supports OpenAI and a deterministic Mock provider for local development."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from ..protocol import HEADER_PATTERN, format_item_header
from .completion import (
    CompletionProvider,
    CompletionRequest,
    CompletionResponse,
    CompletionServiceConfig,
    TokenUsage,
)

logger = logging.getLogger(__name__)

NO_EXTRACTION = "NO_EXTRACTION_POSSIBLE"


class MockProvider(CompletionProvider):
    """Answers every tagged item in the user message with a fixed value.

    The answer is picked from the system message: "no" for yes/no questions,
    "0" for numbers, NO_EXTRACTION_POSSIBLE for extraction calls and a short
    placeholder for free text.
    """

    def __init__(self, config: CompletionServiceConfig | None = None):
        self.config = config
        self._token_count = 0

    @property
    def name(self) -> str:
        return "mock"

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        answer = self._answer_for(request.system_message)
        lines = []
        for line in request.user_message.splitlines():
            match = HEADER_PATTERN.match(line)
            if match:
                lines.append(f"{format_item_header(int(match.group(1)), match.group(2).strip())} {answer}")

        self._token_count += len(request.user_message.split())
        return CompletionResponse(text="\n".join(lines), model=request.model, metadata={"mock": True})

    @staticmethod
    def _answer_for(system_message: str) -> str:
        lowered = system_message.lower()
        if NO_EXTRACTION.lower() in lowered:
            return NO_EXTRACTION
        if "yes or no" in lowered:
            return "no"
        if "single number" in lowered:
            return "0"
        return "mock response"

    def get_token_usage(self) -> TokenUsage:
        return TokenUsage(prompt_tokens=self._token_count, completion_tokens=0, total_cost=0.0)

    async def health_check(self) -> bool:
        """Always healthy"""
        return True


class ProviderFactory:
    """Factory for creating completion providers"""

    def __init__(self) -> None:
        self.providers: dict[str, type[CompletionProvider]] = {
            "mock": MockProvider,
        }

    def register_provider(self, name: str, provider_class: type[CompletionProvider]) -> None:
        """Register a custom provider"""
        self.providers[name] = provider_class
        logger.info(f"Registered provider: {name}")

    def create(self, config: CompletionServiceConfig) -> CompletionProvider:
        """Create a provider instance.

        Args:
            config: Service configuration with provider type and credentials

        Returns:
            Configured completion provider

        Raises:
            ValueError: If the provider type is not supported or credentials are missing
        """
        provider_type = config.provider.lower()

        if provider_type == "openai":
            from .openai_provider import OpenAIProvider

            if not config.api_key:
                raise ValueError("API key is required for OpenAI provider")
            return OpenAIProvider(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout,
                max_retries=config.max_retries,
            )

        # Registered providers take the service config as their only argument
        if provider_type in self.providers:
            return self.providers[provider_type](config)  # type: ignore[call-arg]

        available = ", ".join(sorted({"openai", *self.providers}))
        raise ValueError(f"Unsupported provider: {provider_type}. Available: {available}")

    def create_from_env(self) -> CompletionProvider:
        """Create provider from environment variables"""
        load_dotenv()
        config = CompletionServiceConfig(
            provider=os.getenv("AI_PROVIDER", "mock"),
            api_key=os.getenv("OPENAI_API_KEY", ""),
            base_url=os.getenv("OPENAI_BASE_URL") or None,
        )
        return self.create(config)


def create_provider(config: CompletionServiceConfig) -> CompletionProvider:
    """Create a provider using the default factory"""
    factory = ProviderFactory()
    return factory.create(config)
