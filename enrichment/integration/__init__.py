"""Integration layer for external services.

Provides provider-agnostic completion calls and the grounding reference dataset."""

from __future__ import annotations

from .completion import (
    CompletionProvider,
    CompletionRequest,
    CompletionResponse,
    CompletionServiceConfig,
    TokenUsage,
    complete_with_deadline,
)
from .definitive_client import (
    DefinitiveClient,
    DefinitiveConfig,
    ReferenceDataset,
    StaticReferenceDataset,
    organization_from_record,
)
from .provider_factory import (
    MockProvider,
    ProviderFactory,
    create_provider,
)

__all__ = [
    # Completion
    "CompletionProvider",
    "CompletionRequest",
    "CompletionResponse",
    "CompletionServiceConfig",
    "TokenUsage",
    "complete_with_deadline",
    # Reference dataset
    "DefinitiveClient",
    "DefinitiveConfig",
    "ReferenceDataset",
    "StaticReferenceDataset",
    "organization_from_record",
    # Provider Factory
    "MockProvider",
    "ProviderFactory",
    "create_provider",
]
