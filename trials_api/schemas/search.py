"""Pydantic schemas for search endpoints."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class SearchResponse(BaseModel):
    """One page of search hits plus the total match count."""

    total_count: int = Field(ge=0)
    items: list[dict[str, Any]] = Field(default_factory=list)


class ParameterError(BaseModel):
    code: Literal["MINIMUM", "MAXIMUM", "INVALID_TYPE"]
    paramName: str
    message: str


class ValidationFailure(BaseModel):
    """Client error body for out-of-range or non-integer query parameters.

    The first violation is repeated at the top level; ``errors`` lists all.
    """

    failedValidation: bool = True
    code: Literal["MINIMUM", "MAXIMUM", "INVALID_TYPE"]
    paramName: str
    message: str
    errors: list[ParameterError]


class ReindexEntitySummary(BaseModel):
    entity_type: str
    total: int
    pages: int
    batches: int
    indexed: int
    failed: int


class ReindexResponse(BaseModel):
    mode: str
    index: str
    indexed: int
    failed: int
    entities: list[ReindexEntitySummary]
    duration_ms: int
    timestamp: str
