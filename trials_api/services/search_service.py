"""Elasticsearch-backed paginated search over trials and locations."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from typing import Any, Literal

import structlog
from elasticsearch import Elasticsearch

from trials_api.config import Settings, get_settings
from trials_api.schemas.search import ParameterError, SearchResponse, ValidationFailure
from trials_api.services.elasticsearch_client import create_client
from trials_api.services.index_schema import ENTITY_TYPE_FIELD

logger = structlog.get_logger(__name__)

MIN_PAGE = 1
MAX_PAGE = 100
MIN_PER_PAGE = 10
MAX_PER_PAGE = 100
DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 20
DEFAULT_OPERATOR = "AND"

BoundCode = Literal["MINIMUM", "MAXIMUM"]


class SearchBackendUnavailable(RuntimeError):
    """Raised when Elasticsearch cannot be reached or queried safely."""


@dataclass(frozen=True)
class SearchRequest:
    """Bounded page of a free-text query, ready to send to the index."""

    query: str | None
    offset: int
    limit: int
    default_operator: str = DEFAULT_OPERATOR


@dataclass(frozen=True)
class ParameterViolation:
    param_name: str
    code: BoundCode
    bound: int
    value: int

    @property
    def message(self) -> str:
        if self.code == "MINIMUM":
            return f"{self.param_name} must be greater than or equal to {self.bound} (got {self.value})"
        return f"{self.param_name} must be less than or equal to {self.bound} (got {self.value})"


@dataclass(frozen=True)
class InvalidSearchRequest:
    """Every bound violation found in one request, in parameter order."""

    violations: tuple[ParameterViolation, ...]

    def to_failure(self) -> ValidationFailure:
        errors = [
            ParameterError(code=violation.code, paramName=violation.param_name, message=violation.message)
            for violation in self.violations
        ]
        first = errors[0]
        return ValidationFailure(code=first.code, paramName=first.paramName, message=first.message, errors=errors)


def _check_bounds(param_name: str, value: int, minimum: int, maximum: int) -> ParameterViolation | None:
    if value < minimum:
        return ParameterViolation(param_name=param_name, code="MINIMUM", bound=minimum, value=value)
    if value > maximum:
        return ParameterViolation(param_name=param_name, code="MAXIMUM", bound=maximum, value=value)
    return None


def build_search_request(
    query: str | None,
    page: int | None = None,
    per_page: int | None = None,
) -> SearchRequest | InvalidSearchRequest:
    """Validate pagination parameters and derive offset/limit.

    Violations are returned, not raised, so callers can report each offending
    parameter and bound.
    """
    page = DEFAULT_PAGE if page is None else page
    per_page = DEFAULT_PER_PAGE if per_page is None else per_page

    violations = [
        violation
        for violation in (
            _check_bounds("page", page, MIN_PAGE, MAX_PAGE),
            _check_bounds("per_page", per_page, MIN_PER_PAGE, MAX_PER_PAGE),
        )
        if violation is not None
    ]
    if violations:
        return InvalidSearchRequest(violations=tuple(violations))

    normalized_query = query.strip() if query else None
    return SearchRequest(
        query=normalized_query or None,
        offset=(page - 1) * per_page,
        limit=per_page,
    )


def _extract_total_hits(response: Any) -> int:
    total = response.get("hits", {}).get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


def format_search_response(response: Any) -> SearchResponse:
    """Map raw index hits to ``{total_count, items}`` keeping hit order."""
    body = getattr(response, "body", response)
    items: list[dict[str, Any]] = []
    for hit in body.get("hits", {}).get("hits", []) or []:
        source = hit.get("_source")
        if isinstance(source, (str, bytes)):
            source = json.loads(source)
        items.append(source or {})
    return SearchResponse(total_count=_extract_total_hits(body), items=items)


class SearchService:
    """Read path against the shared trials index."""

    def __init__(self, settings: Settings | None = None, client: Elasticsearch | None = None) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._lock = threading.Lock()

    @property
    def index_name(self) -> str:
        return self._settings.elasticsearch_index

    def build_query(self, entity_type: str, request: SearchRequest) -> dict:
        if request.query:
            text_clause: dict = {
                "simple_query_string": {
                    "query": request.query,
                    "default_operator": request.default_operator,
                }
            }
        else:
            text_clause = {"match_all": {}}
        return {
            "bool": {
                "must": [text_clause],
                "filter": [{"term": {ENTITY_TYPE_FIELD: entity_type}}],
            }
        }

    def search(self, entity_type: str, request: SearchRequest) -> SearchResponse:
        """Run one page of ``request`` against documents of ``entity_type``."""
        client = self.get_client()
        try:
            response = client.search(
                index=self.index_name,
                query=self.build_query(entity_type, request),
                from_=request.offset,
                size=request.limit,
                track_total_hits=True,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("search.backend_failed", entity_type=entity_type, error=str(exc))
            raise SearchBackendUnavailable(f"Failed to search {entity_type} documents: {exc}") from exc

        return format_search_response(response)

    def get_client(self) -> Elasticsearch:
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = create_client(self._settings)
        return self._client


search_service = SearchService()
