#!/usr/bin/env python3
"""
Enrichment API - HTTP layer for bulk AI entity enrichment.

This is the FastAPI application serving the enrichment endpoints:
- Bulk column enrichment over many records
- Single-record prompt previews with grounding trace
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError as SchemaValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from enrichment.logging_config import configure_logging, get_logger

from .settings import get_settings

# Configure unified logging format
# Format: 2026-01-06T14:05:52Z [api] LEVEL message
configure_logging(source="api")
logger = get_logger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="Enrichment API", description="Bulk AI entity enrichment API")

    # Malformed bodies are client errors like any other invalid input
    @app.exception_handler(SchemaValidationError)
    async def invalid_body_handler(request: Request, exc: SchemaValidationError) -> JSONResponse:
        errors = exc.errors()
        if errors:
            location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
            message = errors[0].get("msg", "Invalid request")
            detail = f"Invalid {location}: {message}" if location else message
        else:
            detail = "Invalid request"
        logger.warning(f"Rejected request to {request.url.path}: {detail}")
        return JSONResponse(status_code=400, content={"detail": detail})

    # Load settings
    settings = get_settings()

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Register routers
    from .routers import enrichment

    app.include_router(enrichment.router)

    # Core endpoints (not in a router)
    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "enrichment-api"}

    return app


# Create app instance for uvicorn
app = create_app()
