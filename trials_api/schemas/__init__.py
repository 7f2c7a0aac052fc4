"""Pydantic schema exports for API contracts."""

from __future__ import annotations

from trials_api.schemas.search import (
    ParameterError,
    ReindexEntitySummary,
    ReindexResponse,
    SearchResponse,
    ValidationFailure,
)

__all__ = [
    "SearchResponse",
    "ParameterError",
    "ValidationFailure",
    "ReindexEntitySummary",
    "ReindexResponse",
]
