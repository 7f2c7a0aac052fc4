"""One-shot reindex job entry point."""

from __future__ import annotations

import pytest

from trials_api.database import SessionLocal
from trials_api.jobs import reindex as reindex_job
from trials_api.models import Location


@pytest.fixture
def job_client(monkeypatch, fake_es):
    monkeypatch.setattr(reindex_job, "create_client", lambda _settings: fake_es)
    return fake_es


def test_full_rebuild_exits_zero(job_client) -> None:
    with SessionLocal() as db:
        db.add(Location(id="loc-1", name="Lisbon", type="city"))
        db.commit()

    assert reindex_job.main([]) == 0

    assert job_client.event_names[:2] == ["indices.delete", "indices.create"]
    assert len(job_client.bulk_calls) == 1
    assert job_client.closed is True


def test_failure_exits_non_zero(job_client) -> None:
    job_client.indices.fail_on = {"create"}

    assert reindex_job.main([]) == 1
    assert job_client.bulk_calls == []
    assert job_client.closed is True


def test_client_construction_failure_exits_non_zero(monkeypatch) -> None:
    def broken_client(_settings):
        raise ValueError("URL must include a 'scheme', 'host', and 'port' component")

    monkeypatch.setattr(reindex_job, "create_client", broken_client)

    assert reindex_job.main([]) == 1


def test_since_runs_incremental_sync(job_client) -> None:
    assert reindex_job.main(["--since", "2026-01-01T00:00:00"]) == 0

    assert "indices.delete" not in job_client.event_names
    assert "indices.create" not in job_client.event_names


def test_invalid_since_is_a_usage_error(job_client) -> None:
    with pytest.raises(SystemExit) as exc_info:
        reindex_job.main(["--since", "yesterday"])

    assert exc_info.value.code == 2
    assert job_client.events == []
