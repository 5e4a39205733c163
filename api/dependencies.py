"""
Shared dependencies for the Enrichment API.

This module provides:
- Completion provider construction from settings
- Reference dataset (Definitive Healthcare) construction
- The EnrichmentEngine FastAPI dependency
"""

from __future__ import annotations

import logging
from functools import lru_cache

from enrichment.engine import EngineConfig, EnrichmentEngine
from enrichment.integration import (
    CompletionProvider,
    CompletionServiceConfig,
    DefinitiveClient,
    DefinitiveConfig,
    ReferenceDataset,
    create_provider,
)

from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


def build_engine_config(settings: Settings) -> EngineConfig:
    return EngineConfig(
        primary_model=settings.primary_model,
        fallback_model=settings.fallback_model,
        extraction_model=settings.extraction_model,
        batch_size=settings.enrichment_batch_size,
        max_concurrent_batches=settings.max_concurrent_batches,
        completion_timeout=settings.completion_timeout_seconds,
    )


def build_provider(settings: Settings) -> CompletionProvider:
    return create_provider(
        CompletionServiceConfig(
            provider=settings.ai_provider,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.completion_timeout_seconds,
            max_retries=settings.completion_max_retries,
        )
    )


def build_reference_dataset(settings: Settings) -> ReferenceDataset | None:
    if not settings.definitive_configured:
        logger.warning("Definitive API credentials are not configured; grounding is unavailable")
        return None
    return DefinitiveClient(
        DefinitiveConfig(
            username=settings.definitive_username,
            password=settings.definitive_password,
            base_url=settings.definitive_api_url,
            page_size=settings.definitive_page_size,
        )
    )


@lru_cache
def get_engine() -> EnrichmentEngine:
    """FastAPI dependency returning the process-wide engine.

    The engine holds no per-request state; the reference dataset is fetched
    again on every grounded request.
    """
    settings = get_settings()
    return EnrichmentEngine(
        provider=build_provider(settings),
        config=build_engine_config(settings),
        reference_dataset=build_reference_dataset(settings),
    )


__all__ = [
    "build_engine_config",
    "build_provider",
    "build_reference_dataset",
    "get_engine",
]
