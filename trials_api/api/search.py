"""Search endpoints over the trials index and its administrative rebuild."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from trials_api.api.deps import enforce_rate_limit, get_app_settings, get_db
from trials_api.config import Settings
from trials_api.schemas.search import ParameterError, ReindexResponse, SearchResponse, ValidationFailure
from trials_api.services.index_schema import IndexSchemaError
from trials_api.services.reindexer import FullRebuilder, ReindexError
from trials_api.services.search_service import (
    InvalidSearchRequest,
    SearchBackendUnavailable,
    build_search_request,
    search_service,
)

router = APIRouter()

_SEARCH_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ValidationFailure},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Search backend unavailable"},
}
PAGING_PARAMS = ("page", "per_page")


def paging_type_failure(errors: Sequence[dict[str, Any]]) -> ValidationFailure | None:
    """Translate unparseable ``page``/``per_page`` values into a validation failure.

    Returns ``None`` when any error concerns something else, leaving it to
    FastAPI's default handling.
    """
    params: list[ParameterError] = []
    for error in errors:
        loc = tuple(error.get("loc", ()))
        if len(loc) != 2 or loc[0] != "query" or loc[1] not in PAGING_PARAMS:
            return None
        params.append(
            ParameterError(
                code="INVALID_TYPE",
                paramName=loc[1],
                message=f"{loc[1]} must be an integer (got {error.get('input')!r})",
            )
        )
    if not params:
        return None
    first = params[0]
    return ValidationFailure(code=first.code, paramName=first.paramName, message=first.message, errors=params)


def _run_search(entity_type: str, q: str | None, page: int | None, per_page: int | None):
    request = build_search_request(q, page, per_page)
    if isinstance(request, InvalidSearchRequest):
        failure = request.to_failure()
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=failure.model_dump())

    try:
        return search_service.search(entity_type, request)
    except SearchBackendUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Search backend unavailable",
        ) from exc


@router.get(
    "/trials",
    response_model=SearchResponse,
    responses=_SEARCH_RESPONSES,
    dependencies=[Depends(enforce_rate_limit)],
)
def search_trials(
    q: str | None = None,
    page: int | None = Query(default=None),
    per_page: int | None = Query(default=None),
):
    """Full-text search over trials, including embedded interventions, problems and locations."""
    return _run_search("trial", q, page, per_page)


@router.get(
    "/locations",
    response_model=SearchResponse,
    responses=_SEARCH_RESPONSES,
    dependencies=[Depends(enforce_rate_limit)],
)
def search_locations(
    q: str | None = None,
    page: int | None = Query(default=None),
    per_page: int | None = Query(default=None),
):
    """Prefix-friendly search over location names."""
    return _run_search("location", q, page, per_page)


@router.post(
    "/reindex",
    response_model=ReindexResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
def reindex_search_index(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """Recreate and fully repopulate the search index from relational data."""
    if not settings.admin_reindex_enabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Reindex endpoint is disabled",
        )

    try:
        rebuilder = FullRebuilder(search_service.get_client(), settings)
        return rebuilder.run(db).to_dict()
    except (ReindexError, IndexSchemaError) as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Search backend unavailable",
        ) from exc
