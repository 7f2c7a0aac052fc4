"""Elasticsearch client construction from runtime settings."""

from __future__ import annotations

from elasticsearch import Elasticsearch

from trials_api.config import Settings


def create_client(settings: Settings) -> Elasticsearch:
    """Build a synchronous client honoring timeout and TLS settings."""
    timeout_seconds = max(0.1, settings.elasticsearch_timeout_ms / 1000)
    return Elasticsearch(
        hosts=[settings.elasticsearch_url],
        request_timeout=timeout_seconds,
        verify_certs=settings.elasticsearch_verify_certs,
    )
