"""
Import a review history export into the card store.

This script:
1. Reads the export JSON file
2. Normalizes it with the source adapter (jpdb by default)
3. Resolves terms against the MongoDB subjects collection
4. Replays every card's history and saves the resulting card state

Usage:
    python -m scripts.import_reviews EXPORT.json --user-id USER [--source jpdb] [--dry-run] [--init-db]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import List, Sequence

from review_import import (
    ImportOrchestrator,
    ImportResult,
    ImportSettings,
    ItemResolutionAdapter,
    MongoSubjectService,
    ReviewImportError,
    SqlCardStore,
    UpsertRecord,
    get_adapter,
)
from review_import.fsrs.database import init_db
from review_import.item_resolution import close_connection, get_subjects_collection
from review_import.logging_config import setup_logging

logger = logging.getLogger("review_import.scripts.import_reviews")


class DryRunStore:
    """Reads from the real store, records writes instead of performing them."""

    def __init__(self, store: SqlCardStore):
        self.store = store
        self.would_write: List[UpsertRecord] = []

    async def get_existing(self, user_id: str, keys: Sequence[str]):
        return await self.store.get_existing(user_id, keys)

    async def batch_upsert(self, user_id: str, records: Sequence[UpsertRecord]) -> None:
        self.would_write.extend(records)


def print_summary(result: ImportResult, dry_run: bool = False):
    print(f"\n{'=' * 60}")
    print("IMPORT SUMMARY" + (" (DRY RUN)" if dry_run else ""))
    print(f"{'=' * 60}")
    print(f"  {result.message}")
    print(f"  Processed:          {result.processed_count}")
    print(f"  Duplicates removed: {result.duplicates_removed}")
    print(f"  Skipped:            {result.skipped_count}")
    print(f"  Failed:             {result.failed_count}")
    for name, stats in result.by_source_type.items():
        print(
            f"    {name}: {stats.cards} cards -> {stats.processed} records "
            f"({stats.skipped} skipped, {stats.duplicates_removed} duplicates, "
            f"{stats.failed} failed, {stats.duration_ms} ms)"
        )
    print(f"{'=' * 60}")


async def run_import(
    export_path: Path,
    user_id: str,
    source: str,
    dry_run: bool,
    create_tables: bool,
    settings: ImportSettings,
) -> ImportResult:
    adapter = get_adapter(source)
    with open(export_path, encoding="utf-8") as f:
        raw = json.load(f)
    cards = adapter.normalize(raw)

    store = SqlCardStore()
    if create_tables:
        init_db(store.engine)
    target = DryRunStore(store) if dry_run else store

    service = MongoSubjectService(get_subjects_collection(settings))
    with ItemResolutionAdapter(service, batch_size=settings.lookup_batch_size) as resolver:
        orchestrator = ImportOrchestrator(resolver, target, settings=settings)
        result = await orchestrator.import_reviews(user_id, source, cards)

    if dry_run:
        print(f"\n[DRY RUN] Would save {len(target.would_write)} cards:")
        for record in target.would_write[:20]:
            print(f"  {record.key} ({record.type.value}, {record.mode.value}) due {record.card.due.isoformat()}")
        if len(target.would_write) > 20:
            print(f"  ... and {len(target.would_write) - 20} more")

    return result


def main():
    parser = argparse.ArgumentParser(description="Import a review history export")
    parser.add_argument("export", type=Path, help="Path to the export JSON file")
    parser.add_argument("--user-id", required=True, help="User that owns the imported cards")
    parser.add_argument("--source", default="jpdb", help="Source tool of the export (default: jpdb)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the import without writing any cards"
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create the card table if it does not exist"
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")

    args = parser.parse_args()

    try:
        settings = ImportSettings.from_env()
    except ValueError as e:
        parser.error(str(e))
    setup_logging(args.log_level or settings.log_level)

    if not args.export.exists():
        parser.error(f"Export file not found: {args.export}")

    try:
        result = asyncio.run(run_import(
            args.export, args.user_id, args.source, args.dry_run, args.init_db, settings
        ))
    except json.JSONDecodeError as e:
        logger.error(f"[Import] {args.export} is not valid JSON: {e}")
        raise SystemExit(1) from e
    except (ReviewImportError, ValueError) as e:
        # ValueError: missing DATABASE_URL / MONGO_URI
        logger.error(f"[Import] {e}")
        raise SystemExit(1) from e
    finally:
        close_connection()

    print_summary(result, dry_run=args.dry_run)


if __name__ == "__main__":
    main()
