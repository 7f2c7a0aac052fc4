"""Pytest environment isolation for API and reindex tests.

Tests never talk to a real Elasticsearch cluster or the runtime database.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import delete

# Configure an isolated database before app settings are imported.
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="trials-pytest-")).resolve()
_TEST_DB = _TEST_ROOT / "test.db"

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB}"
os.environ["ELASTICSEARCH_URL"] = "http://elasticsearch.invalid:9200"
os.environ["ELASTICSEARCH_INDEX"] = "trials"
os.environ["API_BASE_URL"] = "http://api.test"
os.environ["ADMIN_REINDEX_ENABLED"] = "false"

from trials_api.config import get_settings

get_settings.cache_clear()


class FakeIndicesClient:
    """Records index administration calls on the owning fake client."""

    def __init__(self, owner: FakeElasticsearch) -> None:
        self._owner = owner
        self.fail_on: set[str] = set()

    def _record(self, name: str, kwargs: dict[str, Any]) -> dict[str, Any]:
        self._owner.events.append((f"indices.{name}", kwargs))
        if name in self.fail_on:
            raise ConnectionError(f"indices.{name} failed")
        return {"acknowledged": True}

    def delete(self, **kwargs: Any) -> dict[str, Any]:
        return self._record("delete", kwargs)

    def create(self, **kwargs: Any) -> dict[str, Any]:
        return self._record("create", kwargs)

    def refresh(self, **kwargs: Any) -> dict[str, Any]:
        return self._record("refresh", kwargs)


class FakeElasticsearch:
    """In-memory stand-in for ``elasticsearch.Elasticsearch``."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []
        self.indices = FakeIndicesClient(self)
        self.bulk_calls: list[list[dict[str, Any]]] = []
        self.bulk_kwargs: list[dict[str, Any]] = []
        self.search_calls: list[dict[str, Any]] = []
        self.search_response: dict[str, Any] = {"hits": {"total": {"value": 0, "relation": "eq"}, "hits": []}}
        self.search_error: Exception | None = None
        self.bulk_error: Exception | None = None
        self.reject_ids: set[str] = set()
        self.closed = False

    @property
    def event_names(self) -> list[str]:
        return [name for name, _ in self.events]

    def helpers_bulk(self, client: Any, actions: list[dict[str, Any]], **kwargs: Any) -> tuple[int, list[dict]]:
        """Mirror ``elasticsearch.helpers.bulk`` with ``raise_on_error=False``."""
        assert client is self
        operations: list[dict[str, Any]] = []
        for action in actions:
            operations.append({action["_op_type"]: {"_index": action["_index"], "_id": action["_id"]}})
            operations.append(action["_source"])
        self.events.append(("bulk", {"operations": operations}))
        self.bulk_calls.append(operations)
        self.bulk_kwargs.append(kwargs)
        if self.bulk_error is not None:
            raise self.bulk_error

        indexed = 0
        errors: list[dict[str, Any]] = []
        for action in actions:
            if action["_id"] in self.reject_ids:
                errors.append(
                    {
                        "index": {
                            "_index": action["_index"],
                            "_id": action["_id"],
                            "status": 400,
                            "error": {"type": "document_parsing_exception", "reason": "failed to parse field"},
                        }
                    }
                )
            else:
                indexed += 1
        return indexed, errors

    def search(self, **kwargs: Any) -> dict[str, Any]:
        self.search_calls.append(kwargs)
        if self.search_error is not None:
            raise self.search_error
        return self.search_response

    def close(self) -> None:
        self.closed = True


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_test_environment() -> None:
    """Create the database schema once per test session."""
    import trials_api.models  # noqa: F401
    from trials_api.database import Base, engine

    Base.metadata.create_all(bind=engine)
    yield

    Base.metadata.drop_all(bind=engine)
    shutil.rmtree(_TEST_ROOT, ignore_errors=True)


@pytest.fixture(autouse=True)
def _isolate_each_test() -> None:
    """Clear persisted rows and rate limit windows for every test."""
    from trials_api.api.deps import rate_limiter
    from trials_api.database import Base, SessionLocal

    with SessionLocal() as db:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(delete(table))
        db.commit()

    rate_limiter.reset()
    yield


@pytest.fixture
def fake_es(monkeypatch) -> FakeElasticsearch:
    from trials_api.services import reindexer

    client = FakeElasticsearch()
    monkeypatch.setattr(reindexer, "bulk", client.helpers_bulk)
    return client


@pytest.fixture
def db():
    from trials_api.database import SessionLocal

    with SessionLocal() as session:
        yield session
