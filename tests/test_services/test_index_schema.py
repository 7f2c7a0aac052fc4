"""Index settings, mapping merge and recreate behaviour."""

from __future__ import annotations

import pytest

from trials_api.services.index_schema import (
    ANALYSIS_SETTINGS,
    MAPPINGS_BY_TYPE,
    IndexSchemaError,
    IndexSchemaManager,
    merge_mappings,
)


def test_recreate_deletes_missing_index_silently_then_creates(fake_es) -> None:
    IndexSchemaManager(fake_es).recreate_index("trials")

    (delete_name, delete_kwargs), (create_name, create_kwargs) = fake_es.events
    assert delete_name == "indices.delete"
    assert delete_kwargs == {"index": "trials", "ignore_unavailable": True}
    assert create_name == "indices.create"
    assert create_kwargs["index"] == "trials"
    assert create_kwargs["settings"] == ANALYSIS_SETTINGS
    assert create_kwargs["mappings"] == merge_mappings(MAPPINGS_BY_TYPE)


def test_autocomplete_analyzer_uses_lowercased_edge_ngrams() -> None:
    analysis = ANALYSIS_SETTINGS["analysis"]

    assert analysis["filter"]["autocomplete_filter"] == {"type": "edge_ngram", "min_gram": 1, "max_gram": 20}
    assert analysis["analyzer"]["autocomplete"] == {
        "type": "custom",
        "tokenizer": "standard",
        "filter": ["lowercase", "autocomplete_filter"],
    }


def test_merged_mapping_keeps_per_type_fields() -> None:
    properties = merge_mappings(MAPPINGS_BY_TYPE)["properties"]

    assert properties["entity_type"] == {"type": "keyword"}
    assert properties["name"] == {"type": "text", "analyzer": "autocomplete", "search_analyzer": "standard"}
    assert properties["intervention"] == {"type": "text"}
    assert properties["locations"]["properties"]["role"] == {"type": "keyword"}
    assert properties["id"] == {"type": "keyword"}


def test_merge_rejects_conflicting_field_definitions() -> None:
    mappings = {
        "trial": {"properties": {"status": {"type": "keyword"}}},
        "location": {"properties": {"status": {"type": "text"}}},
    }

    with pytest.raises(IndexSchemaError, match="status"):
        merge_mappings(mappings)


def test_delete_failure_is_fatal(fake_es) -> None:
    fake_es.indices.fail_on = {"delete"}

    with pytest.raises(IndexSchemaError, match="delete"):
        IndexSchemaManager(fake_es).recreate_index("trials")

    assert fake_es.event_names == ["indices.delete"]
