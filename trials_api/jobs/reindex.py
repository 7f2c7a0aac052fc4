"""One-shot job: rebuild the trials search index from the relational store.

Run with ``python -m trials_api.jobs.reindex`` or the ``trials-reindex``
console script. Without arguments the index is deleted, recreated and fully
repopulated. ``--since`` upserts only rows updated after the given instant
into the existing index.
"""

from __future__ import annotations

import argparse
from datetime import datetime

import structlog

from trials_api.config import get_settings
from trials_api.database import SessionLocal
from trials_api.logging_config import configure_logging
from trials_api.services.elasticsearch_client import create_client
from trials_api.services.reindexer import DEFAULT_ENTITY_ORDER, FullRebuilder, IncrementalSyncer, Reindexer

logger = structlog.get_logger("trials_api.jobs.reindex")


def _parse_since(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO datetime: {value!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rebuild the clinical trials search index")
    parser.add_argument(
        "--since",
        type=_parse_since,
        default=None,
        help="Only sync rows updated at or after this ISO datetime; the index is not recreated",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging("trials-reindex", settings.log_level, settings.log_format)

    mode = "full" if args.since is None else "incremental"
    client = None
    try:
        client = create_client(settings)
        reindexer: Reindexer
        if args.since is None:
            reindexer = FullRebuilder(client, settings, entity_types=DEFAULT_ENTITY_ORDER)
        else:
            reindexer = IncrementalSyncer(client, settings, since=args.since, entity_types=DEFAULT_ENTITY_ORDER)
        with SessionLocal() as db:
            report = reindexer.run(db)
    except Exception:
        logger.exception("reindex.aborted", mode=mode, index=settings.elasticsearch_index)
        return 1
    finally:
        if client is not None:
            client.close()

    logger.info("reindex.report", **report.to_dict())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
