"""Elasticsearch index settings, per-entity mappings and destructive recreate."""

from __future__ import annotations

import copy
from typing import Any

import structlog
from elasticsearch import Elasticsearch

logger = structlog.get_logger(__name__)

ENTITY_TYPE_FIELD = "entity_type"

_KEYWORD = {"type": "keyword"}
_TEXT = {"type": "text"}


class IndexSchemaError(RuntimeError):
    """Raised when the index cannot be deleted/created or mappings conflict."""


def _related(*, with_type: bool = False, with_role: bool = False) -> dict[str, Any]:
    attributes: dict[str, Any] = {"id": _KEYWORD, "name": _TEXT}
    if with_type:
        attributes["type"] = _KEYWORD
    mapping: dict[str, Any] = {"properties": {"attributes": {"properties": attributes}}}
    if with_role:
        mapping["properties"]["role"] = _KEYWORD
    return mapping


ANALYSIS_SETTINGS: dict[str, Any] = {
    "analysis": {
        "filter": {
            "autocomplete_filter": {
                "type": "edge_ngram",
                "min_gram": 1,
                "max_gram": 20,
            },
        },
        "analyzer": {
            "autocomplete": {
                "type": "custom",
                "tokenizer": "standard",
                "filter": ["lowercase", "autocomplete_filter"],
            },
        },
    },
}

TRIAL_MAPPING: dict[str, Any] = {
    "properties": {
        "id": _KEYWORD,
        "url": _KEYWORD,
        "public_title": _TEXT,
        "brief_summary": _TEXT,
        "registration_date": {"type": "date", "format": "date_optional_time"},
        "interventions": _related(with_type=True),
        "intervention": _TEXT,
        "problems": _related(),
        "problem": _TEXT,
        "locations": _related(with_type=True, with_role=True),
        "location": _TEXT,
        "persons": _related(with_type=True, with_role=True),
        "organisations": _related(with_type=True, with_role=True),
    },
}

LOCATION_MAPPING: dict[str, Any] = {
    "properties": {
        "id": _KEYWORD,
        "url": _KEYWORD,
        "name": {
            "type": "text",
            "analyzer": "autocomplete",
            "search_analyzer": "standard",
        },
        "type": _KEYWORD,
    },
}

MAPPINGS_BY_TYPE: dict[str, dict[str, Any]] = {
    "trial": TRIAL_MAPPING,
    "location": LOCATION_MAPPING,
}


def merge_mappings(mappings_by_type: dict[str, dict[str, Any]]) -> dict[str, Any]:
    """Fold per-entity mappings into one index mapping keyed by ``entity_type``.

    A field may appear in several entity mappings only with an identical
    definition.
    """
    properties: dict[str, Any] = {ENTITY_TYPE_FIELD: dict(_KEYWORD)}
    owners: dict[str, str] = {ENTITY_TYPE_FIELD: ENTITY_TYPE_FIELD}

    for entity_type, mapping in mappings_by_type.items():
        for field, definition in mapping.get("properties", {}).items():
            if field in properties and properties[field] != definition:
                raise IndexSchemaError(
                    f"Field '{field}' of '{entity_type}' conflicts with the definition from '{owners[field]}'"
                )
            properties[field] = copy.deepcopy(definition)
            owners.setdefault(field, entity_type)

    return {"properties": properties}


class IndexSchemaManager:
    """Owns the shape of the search index and its destructive rebuild."""

    def __init__(
        self,
        client: Elasticsearch,
        *,
        mappings_by_type: dict[str, dict[str, Any]] | None = None,
        analysis_settings: dict[str, Any] | None = None,
    ) -> None:
        self._client = client
        self._mappings_by_type = mappings_by_type if mappings_by_type is not None else MAPPINGS_BY_TYPE
        self._analysis_settings = analysis_settings if analysis_settings is not None else ANALYSIS_SETTINGS

    @property
    def entity_types(self) -> list[str]:
        return list(self._mappings_by_type)

    def recreate_index(self, name: str) -> None:
        """Drop ``name`` if it exists and create it empty with current mappings.

        Every previously indexed document is lost; a full reindex must follow.
        """
        mappings = merge_mappings(self._mappings_by_type)
        try:
            self._client.indices.delete(index=name, ignore_unavailable=True)
        except Exception as exc:  # noqa: BLE001
            raise IndexSchemaError(f"Failed to delete index '{name}': {exc}") from exc

        try:
            self._client.indices.create(
                index=name,
                settings=copy.deepcopy(self._analysis_settings),
                mappings=mappings,
            )
        except Exception as exc:  # noqa: BLE001
            raise IndexSchemaError(f"Failed to create index '{name}': {exc}") from exc

        logger.info("index.recreated", index=name, entity_types=self.entity_types)
