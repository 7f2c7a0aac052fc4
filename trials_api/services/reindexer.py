"""Batch synchronization of relational entities into the search index.

Rows are read in primary-key order with offset paging and pushed one page at a
time as a single bulk request. Pages are processed strictly in sequence; the
row count is taken once per entity type and carried by every ``PageCursor`` so
the paging bound never moves during a run. Concurrent writers to the
relational store during a rebuild can still cause drift; that stays the
caller's responsibility.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

import structlog
from elasticsearch import Elasticsearch
from elasticsearch.helpers import bulk
from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from trials_api.config import Settings, get_settings
from trials_api.models.location import Location
from trials_api.models.trial import Trial, TrialLocation, TrialOrganisation, TrialPerson
from trials_api.services.documents import serialize_location, serialize_trial
from trials_api.services.index_schema import IndexSchemaManager

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 1000
DEFAULT_ENTITY_ORDER: tuple[str, ...] = ("trial", "location")


class ReindexError(RuntimeError):
    """Unrecoverable failure that aborts the whole reindex run."""

    def __init__(self, message: str, *, stage: str, entity_type: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.entity_type = entity_type


class BulkRejectedError(ReindexError):
    """Raised when the index rejected documents of a bulk request."""

    def __init__(self, message: str, *, entity_type: str, rejected: list[RejectedDocument]) -> None:
        super().__init__(message, stage="bulk", entity_type=entity_type)
        self.rejected = rejected


@dataclass(frozen=True)
class PageCursor:
    """Position of one page within a snapshot of ``total_at_start`` rows."""

    offset: int
    limit: int
    total_at_start: int

    @property
    def exhausted(self) -> bool:
        return self.offset > self.total_at_start

    def advance(self) -> PageCursor:
        return replace(self, offset=self.offset + self.limit)


def iter_cursors(total_at_start: int, page_size: int) -> Iterator[PageCursor]:
    """Yield cursors from offset 0 while ``offset <= total_at_start``.

    The bound is inclusive, so a total that is an exact multiple of the page
    size produces one trailing empty page.
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    cursor = PageCursor(offset=0, limit=page_size, total_at_start=max(0, total_at_start))
    while not cursor.exhausted:
        yield cursor
        cursor = cursor.advance()


@dataclass
class RejectedDocument:
    id: str
    status: int
    reason: str


def _rejected_document(error: dict[str, Any]) -> RejectedDocument:
    """Build a ``RejectedDocument`` from one ``{op_type: item}`` bulk helper error."""
    item = next(iter(error.values()), {})
    reason = item.get("error")
    if isinstance(reason, dict):
        reason = reason.get("reason") or reason.get("type")
    status_code = int(item.get("status") or 0)
    return RejectedDocument(
        id=str(item.get("_id")),
        status=status_code,
        reason=str(reason) if reason else f"status {status_code}",
    )


@dataclass
class BatchReport:
    """Outcome of one bulk request."""

    entity_type: str
    offset: int
    submitted: int
    indexed: int
    rejected: list[RejectedDocument] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.rejected)


@dataclass
class EntityReport:
    entity_type: str
    total_at_start: int
    pages_fetched: int = 0
    batches: list[BatchReport] = field(default_factory=list)

    @property
    def indexed(self) -> int:
        return sum(batch.indexed for batch in self.batches)

    @property
    def failed(self) -> int:
        return sum(batch.failed for batch in self.batches)


@dataclass
class ReindexReport:
    mode: str
    index: str
    entities: list[EntityReport] = field(default_factory=list)
    duration_ms: int = 0
    timestamp: str = ""

    @property
    def indexed(self) -> int:
        return sum(entity.indexed for entity in self.entities)

    @property
    def failed(self) -> int:
        return sum(entity.failed for entity in self.entities)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "index": self.index,
            "indexed": self.indexed,
            "failed": self.failed,
            "entities": [
                {
                    "entity_type": entity.entity_type,
                    "total": entity.total_at_start,
                    "pages": entity.pages_fetched,
                    "batches": len(entity.batches),
                    "indexed": entity.indexed,
                    "failed": entity.failed,
                }
                for entity in self.entities
            ],
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class IndexedEntity:
    """How one entity type is read from the database and serialized."""

    name: str
    model: type
    serializer: Callable[..., dict[str, Any]]
    load_options: tuple = ()


INDEXED_ENTITIES: dict[str, IndexedEntity] = {
    "trial": IndexedEntity(
        name="trial",
        model=Trial,
        serializer=serialize_trial,
        load_options=(
            selectinload(Trial.interventions),
            selectinload(Trial.problems),
            selectinload(Trial.locations).selectinload(TrialLocation.location),
            selectinload(Trial.persons).selectinload(TrialPerson.person),
            selectinload(Trial.organisations).selectinload(TrialOrganisation.organisation),
        ),
    ),
    "location": IndexedEntity(name="location", model=Location, serializer=serialize_location),
}


class Reindexer(ABC):
    """Shared paging and bulk-submission machinery.

    Subclasses decide which rows are selected and whether the index is rebuilt
    first; both go through the same cursor and bulk contract.
    """

    mode = "base"

    def __init__(
        self,
        client: Elasticsearch,
        settings: Settings | None = None,
        *,
        page_size: int | None = None,
        allow_partial_batches: bool | None = None,
        entities: dict[str, IndexedEntity] | None = None,
    ) -> None:
        self._client = client
        self._settings = settings or get_settings()
        self.index_name = self._settings.elasticsearch_index
        self.page_size = page_size or self._settings.reindex_page_size or DEFAULT_PAGE_SIZE
        self.allow_partial_batches = (
            self._settings.reindex_allow_partial_batches if allow_partial_batches is None else allow_partial_batches
        )
        self._entities = entities if entities is not None else INDEXED_ENTITIES
        self._base_url = f"{self._settings.api_base_url.rstrip('/')}{self._settings.api_v1_prefix}"

    @abstractmethod
    def run(self, db: Session) -> ReindexReport:
        """Execute the run and return its report."""

    def _resolve(self, entity_types: Sequence[str]) -> list[IndexedEntity]:
        unknown = [name for name in entity_types if name not in self._entities]
        if unknown:
            raise ReindexError(f"Unknown entity types: {', '.join(unknown)}", stage="config")
        return [self._entities[name] for name in entity_types]

    def _run_entities(self, db: Session, entity_types: Sequence[str], *, since: datetime | None = None) -> ReindexReport:
        entities = self._resolve(entity_types)
        started_at = time.perf_counter()
        report = ReindexReport(mode=self.mode, index=self.index_name)

        for entity in entities:
            report.entities.append(self.reindex_entity(db, entity, since=since))

        if self._settings.reindex_refresh_on_complete:
            self._refresh()

        report.duration_ms = int((time.perf_counter() - started_at) * 1000)
        report.timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        logger.info(
            "reindex.completed",
            mode=self.mode,
            index=self.index_name,
            indexed=report.indexed,
            failed=report.failed,
            duration_ms=report.duration_ms,
        )
        return report

    def reindex_entity(self, db: Session, entity: IndexedEntity, *, since: datetime | None = None) -> EntityReport:
        """Page through one entity type and bulk index every non-empty page."""
        total = self._count(db, entity, since)
        report = EntityReport(entity_type=entity.name, total_at_start=total)
        logger.info(
            "reindex.entity_started",
            entity_type=entity.name,
            total=total,
            page_size=self.page_size,
            since=since.isoformat() if since else None,
        )

        for cursor in iter_cursors(total, self.page_size):
            rows = self._fetch_page(db, entity, cursor, since)
            report.pages_fetched += 1
            if not rows:
                continue
            batch = self._submit_batch(entity, cursor, rows)
            report.batches.append(batch)
            # keep the identity map bounded to one page
            db.expunge_all()

        return report

    def _select(self, entity: IndexedEntity, since: datetime | None) -> Select:
        query = select(entity.model)
        if since is not None:
            query = query.where(entity.model.updated_at >= since)
        return query

    def _count(self, db: Session, entity: IndexedEntity, since: datetime | None) -> int:
        try:
            total = db.scalar(select(func.count()).select_from(self._select(entity, since).subquery()))
        except SQLAlchemyError as exc:
            raise ReindexError(
                f"Failed to count {entity.name} rows: {exc}", stage="count", entity_type=entity.name
            ) from exc
        return int(total or 0)

    def _fetch_page(self, db: Session, entity: IndexedEntity, cursor: PageCursor, since: datetime | None) -> list:
        query = (
            self._select(entity, since)
            .options(*entity.load_options)
            .order_by(entity.model.id.asc())
            .offset(cursor.offset)
            .limit(cursor.limit)
        )
        try:
            return list(db.scalars(query).all())
        except SQLAlchemyError as exc:
            raise ReindexError(
                f"Failed to fetch {entity.name} page at offset {cursor.offset}: {exc}",
                stage="fetch",
                entity_type=entity.name,
            ) from exc

    def build_actions(self, entity: IndexedEntity, rows: Sequence[Any]) -> list[dict[str, Any]]:
        """Serialize rows into bulk helper index actions."""
        actions: list[dict[str, Any]] = []
        for row in rows:
            document = entity.serializer(row, base_url=self._base_url)
            actions.append(
                {
                    "_op_type": "index",
                    "_index": self.index_name,
                    "_id": document["id"],
                    "_source": document,
                }
            )
        return actions

    def _submit_batch(self, entity: IndexedEntity, cursor: PageCursor, rows: Sequence[Any]) -> BatchReport:
        actions = self.build_actions(entity, rows)
        try:
            # one page is one bulk request
            indexed, errors = bulk(
                self._client,
                actions,
                chunk_size=len(actions),
                raise_on_error=False,
                raise_on_exception=False,
            )
        except Exception as exc:  # noqa: BLE001
            raise ReindexError(
                f"Bulk request for {entity.name} at offset {cursor.offset} failed: {exc}",
                stage="bulk",
                entity_type=entity.name,
            ) from exc

        batch = BatchReport(
            entity_type=entity.name,
            offset=cursor.offset,
            submitted=len(actions),
            indexed=int(indexed),
            rejected=[_rejected_document(error) for error in errors],
        )
        logger.info(
            "reindex.batch_indexed",
            entity_type=entity.name,
            offset=cursor.offset,
            submitted=batch.submitted,
            indexed=batch.indexed,
            failed=batch.failed,
        )

        if batch.rejected:
            logger.warning(
                "reindex.documents_rejected",
                entity_type=entity.name,
                offset=cursor.offset,
                rejected=[doc.id for doc in batch.rejected],
                first_reason=batch.rejected[0].reason,
            )
            if not self.allow_partial_batches:
                raise BulkRejectedError(
                    f"{batch.failed} {entity.name} documents rejected at offset {cursor.offset}",
                    entity_type=entity.name,
                    rejected=batch.rejected,
                )
        return batch

    def _refresh(self) -> None:
        try:
            self._client.indices.refresh(index=self.index_name)
        except Exception as exc:  # noqa: BLE001
            logger.warning("reindex.refresh_failed", index=self.index_name, error=str(exc))


class FullRebuilder(Reindexer):
    """Destroy and recreate the index, then load every entity type."""

    mode = "full"

    def __init__(
        self,
        client: Elasticsearch,
        settings: Settings | None = None,
        *,
        schema_manager: IndexSchemaManager | None = None,
        entity_types: Sequence[str] = DEFAULT_ENTITY_ORDER,
        **kwargs: Any,
    ) -> None:
        super().__init__(client, settings, **kwargs)
        self.schema_manager = schema_manager or IndexSchemaManager(client)
        self.entity_types = tuple(entity_types)

    def run(self, db: Session) -> ReindexReport:
        return self.reindex_all(db, self.entity_types)

    def reindex_all(self, db: Session, entity_types: Sequence[str]) -> ReindexReport:
        """Recreate the index and reindex ``entity_types`` in the given order."""
        self._resolve(entity_types)
        self.schema_manager.recreate_index(self.index_name)
        return self._run_entities(db, entity_types)


class IncrementalSyncer(Reindexer):
    """Upsert rows updated since a given instant into the existing index."""

    mode = "incremental"

    def __init__(
        self,
        client: Elasticsearch,
        settings: Settings | None = None,
        *,
        since: datetime,
        entity_types: Sequence[str] = DEFAULT_ENTITY_ORDER,
        **kwargs: Any,
    ) -> None:
        super().__init__(client, settings, **kwargs)
        self.since = since
        self.entity_types = tuple(entity_types)

    def run(self, db: Session) -> ReindexReport:
        return self.sync_since(db, self.since, self.entity_types)

    def sync_since(self, db: Session, since: datetime, entity_types: Sequence[str]) -> ReindexReport:
        return self._run_entities(db, entity_types, since=since)
