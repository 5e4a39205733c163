"""Completion Types - Provider-agnostic interface for LLM completion calls.

Separated from the concrete providers to avoid circular imports between the
factory and the providers.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from ..errors import CompletionTimeoutError


@dataclass
class CompletionServiceConfig:
    """Configuration for the completion provider"""

    provider: str
    api_key: str | None = None
    base_url: str | None = None
    timeout: float = 60.0
    max_retries: int = 2

    def __post_init__(self) -> None:
        """Validate configuration"""
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")


@dataclass(frozen=True)
class CompletionRequest:
    """One role-structured completion call."""

    model: str
    system_message: str
    user_message: str
    max_tokens: int = 1024
    temperature: float = 0.0


@dataclass
class CompletionResponse:
    """Text returned by a completion call"""

    text: str
    model: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class TokenUsage:
    """Token usage tracking"""

    prompt_tokens: int
    completion_tokens: int
    total_cost: float


class CompletionProvider(ABC):
    """Abstract base class for completion providers"""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name"""
        pass

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Run a single completion; raises on transport or provider errors"""
        pass

    @abstractmethod
    def get_token_usage(self) -> TokenUsage:
        """Get current token usage statistics"""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if provider is healthy"""
        pass


async def complete_with_deadline(
    provider: CompletionProvider, request: CompletionRequest, timeout: float | None
) -> CompletionResponse:
    """Run one completion under a deadline.

    Raises:
        CompletionTimeoutError: If the call does not finish within ``timeout`` seconds
    """
    if timeout is None:
        return await provider.complete(request)
    try:
        return await asyncio.wait_for(provider.complete(request), timeout=timeout)
    except TimeoutError as e:
        raise CompletionTimeoutError(timeout) from e
