"""
Pydantic schemas for the Enrichment API.

Re-exports all schemas for convenient importing.
"""

from __future__ import annotations

from .enrichment import EnrichRequest, FieldValueSchema, TestPromptRequest

__all__ = [
    "EnrichRequest",
    "FieldValueSchema",
    "TestPromptRequest",
]
