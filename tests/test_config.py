"""Configuration tests for search and reindex settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from trials_api.config import get_settings


def _reload_settings():
    get_settings.cache_clear()
    return get_settings()


def test_reindex_settings_defaults(monkeypatch) -> None:
    """Reindexing should page by 1000 rows and abort on rejected documents."""
    monkeypatch.delenv("REINDEX_PAGE_SIZE", raising=False)
    monkeypatch.delenv("REINDEX_ALLOW_PARTIAL_BATCHES", raising=False)
    monkeypatch.delenv("ADMIN_REINDEX_ENABLED", raising=False)
    settings = _reload_settings()

    assert settings.reindex_page_size == 1000
    assert settings.reindex_allow_partial_batches is False
    assert settings.reindex_refresh_on_complete is True
    assert settings.admin_reindex_enabled is False

    get_settings.cache_clear()


def test_reindex_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("REINDEX_PAGE_SIZE", "250")
    monkeypatch.setenv("REINDEX_ALLOW_PARTIAL_BATCHES", "true")
    monkeypatch.setenv("ELASTICSEARCH_INDEX", "trials-staging")

    settings = _reload_settings()
    assert settings.reindex_page_size == 250
    assert settings.reindex_allow_partial_batches is True
    assert settings.elasticsearch_index == "trials-staging"

    get_settings.cache_clear()


def test_reindex_page_size_must_be_positive(monkeypatch) -> None:
    monkeypatch.setenv("REINDEX_PAGE_SIZE", "0")
    get_settings.cache_clear()

    with pytest.raises(ValidationError):
        _ = get_settings()
    get_settings.cache_clear()


def test_log_format_is_restricted(monkeypatch) -> None:
    monkeypatch.setenv("LOG_FORMAT", "xml")
    get_settings.cache_clear()

    with pytest.raises(ValidationError):
        _ = get_settings()
    get_settings.cache_clear()


def test_docs_disabled_in_production(monkeypatch) -> None:
    monkeypatch.setenv("ENV", "production")
    monkeypatch.delenv("ENABLE_DOCS", raising=False)

    settings = _reload_settings()
    assert settings.docs_enabled is False

    get_settings.cache_clear()
