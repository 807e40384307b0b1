"""
Import Orchestrator - End-to-end review import

Main workflow of import_reviews():
1. Validate input (raises ImportInputError before anything else happens)
2. Resolve every search term once through the resolution adapter
3. Group cards by source type and process the groups concurrently
4. Per group:
   a. Prefetch the user's existing cards (chunked, failures tolerated)
   b. Process (card, item) pairs in chunks: merge histories, replay them
      through the scheduler, skip retired cards
   c. Deduplicate the group's records
5. Deduplicate across groups, persist the survivors in one write
6. Report counts per source type and overall

Persistence failures and fail-fast processing failures end the run with
ImportFailedError naming the stage.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from pydantic import ValidationError

from review_import.config import ImportSettings
from review_import.errors import ImportFailedError, ImportInputError, SimulationError
from review_import.fsrs.memory_state import create_empty_card
from review_import.fsrs.scheduler import FsrsScheduler, SchedulingCapability
from review_import.importing.batching import process_batches, process_batches_resilient
from review_import.importing.dedupe import dedupe_records
from review_import.importing.merger import merge_reviews
from review_import.importing.simulator import simulate_reviews
from review_import.records import ExistingCard, UpsertRecord
from review_import.schemas import (
    CanonicalItem,
    ImportResult,
    ItemType,
    NormalizedCard,
    PracticeMode,
    ReviewEvent,
    SourceTypeStats,
)

logger = logging.getLogger(__name__)


# Cards with no stored state start from this date
INITIAL_CARD_DATE = datetime(2000, 1, 1, tzinfo=timezone.utc)

# CJK unified ideographs (and extension A)
KANJI_PATTERN = re.compile(r"[\u4e00-\u9faf\u3400-\u4dbf]")


class PersistentStore(Protocol):
    async def get_existing(self, user_id: str, keys: Sequence[str]) -> List[ExistingCard]:
        ...

    async def batch_upsert(self, user_id: str, records: Sequence[UpsertRecord]) -> None:
        ...


class ItemResolver(Protocol):
    async def resolve_batch(self, terms: Sequence[str]) -> Mapping[str, List[CanonicalItem]]:
        ...


def determine_mode(item_type: ItemType, spelling: str) -> PracticeMode:
    """
    Pick the practice mode for an item.

    Kanji and radicals are practiced by reading. Vocabulary is too, unless
    it is written purely in kana.
    """
    if item_type != ItemType.VOCABULARY:
        return PracticeMode.READINGS
    if not spelling or KANJI_PATTERN.search(spelling):
        return PracticeMode.READINGS
    return PracticeMode.KANA


@dataclass(frozen=True)
class _PairOutcome:
    status: str  # "processed", "skipped" or "failed"
    record: Optional[UpsertRecord] = None


@dataclass
class _GroupOutcome:
    name: str
    records: List[UpsertRecord] = field(default_factory=list)
    stats: SourceTypeStats = field(default_factory=SourceTypeStats)


def _validate(user_id, source, cards) -> List[NormalizedCard]:
    if not isinstance(user_id, str) or not user_id.strip():
        raise ImportInputError("user_id is required")
    if not isinstance(source, str) or not source.strip():
        raise ImportInputError("source is required and must be a string")
    if not isinstance(cards, (list, tuple)):
        raise ImportInputError("cards must be a list")

    normalized = []
    for index, card in enumerate(cards):
        if isinstance(card, NormalizedCard):
            normalized.append(card)
            continue
        try:
            normalized.append(NormalizedCard.model_validate(card))
        except ValidationError as e:
            raise ImportInputError(f"Invalid card at index {index}: {e}") from e
    return normalized


async def _gather_fail_fast(stage: str, coros) -> list:
    results = await asyncio.gather(*coros, return_exceptions=True)
    for result in results:
        if isinstance(result, ImportFailedError):
            raise result
        if isinstance(result, BaseException):
            raise ImportFailedError(stage, str(result)) from result
    return results


class ImportOrchestrator:
    """
    Runs review imports for one resolver / store / scheduler combination.

    Args:
        resolver: ItemResolutionAdapter (or anything with resolve_batch)
        store: PersistentStore
        scheduler: Scheduling capability (FsrsScheduler by default)
        settings: Batch sizes and retention (defaults when omitted)
    """

    def __init__(
        self,
        resolver: ItemResolver,
        store: PersistentStore,
        scheduler: Optional[SchedulingCapability] = None,
        settings: Optional[ImportSettings] = None,
    ):
        self.settings = settings or ImportSettings()
        self.resolver = resolver
        self.store = store
        self.scheduler = scheduler or FsrsScheduler(desired_retention=self.settings.desired_retention)

    async def import_reviews(self, user_id: str, source: str, cards: Sequence) -> ImportResult:
        """
        Import a batch of normalized cards for a user.

        Args:
            user_id: Owner of the imported cards
            source: Name of the source tool (e.g. "jpdb")
            cards: NormalizedCard objects (or dicts in the same shape)

        Returns:
            ImportResult with per-source-type statistics

        Raises:
            ImportInputError: input failed validation
            ImportFailedError: resolution, processing or persistence failed
        """
        start = time.perf_counter()
        normalized = _validate(user_id, source, cards)
        logger.info(f"[Import] Importing {len(normalized)} {source} cards for {user_id}")

        try:
            resolved = await self.resolver.resolve_batch([card.search_term for card in normalized])
        except Exception as e:
            raise ImportFailedError("resolve", str(e)) from e

        groups: Dict[str, List[NormalizedCard]] = {}
        for card in normalized:
            groups.setdefault(card.group, []).append(card)

        outcomes: List[_GroupOutcome] = await _gather_fail_fast(
            "process",
            (self._process_group(user_id, source, name, group_cards, resolved) for name, group_cards in groups.items()),
        )

        final = dedupe_records([record for outcome in outcomes for record in outcome.records])
        if final.discarded:
            logger.info(f"[DuplicateHandling] Removed {final.discarded} duplicates across source types")

        if final.kept:
            try:
                await self.store.batch_upsert(user_id, final.kept)
            except Exception as e:
                logger.error(f"[Import] Failed to save {len(final.kept)} cards: {e}")
                raise ImportFailedError("persist", str(e)) from e
        else:
            logger.info("[Import] Nothing to save")

        duration_ms = int((time.perf_counter() - start) * 1000)
        processed = len(final.kept)
        result = ImportResult(
            success=True,
            message=f"Successfully imported {processed} cards in {duration_ms / 1000:.1f}s",
            processed_count=processed,
            duplicates_removed=final.discarded + sum(o.stats.duplicates_removed for o in outcomes),
            skipped_count=sum(o.stats.skipped for o in outcomes),
            failed_count=sum(o.stats.failed for o in outcomes),
            duration_ms=duration_ms,
            by_source_type={o.name: o.stats for o in outcomes},
        )
        logger.info(f"[Import] {result.message}")
        return result

    # ---- Per source type ----

    async def _prefetch(self, user_id: str, keys: List[str]) -> Dict[Tuple[str, ItemType], ExistingCard]:
        async def _load(part: List[str]) -> List[ExistingCard]:
            return await self.store.get_existing(user_id, part)

        chunks = await process_batches_resilient(
            keys, self.settings.prefetch_chunk_size, _load, fallback=lambda part: []
        )
        return {(existing.key, existing.type): existing for part in chunks for existing in part}

    async def _process_group(
        self,
        user_id: str,
        source: str,
        name: str,
        cards: List[NormalizedCard],
        resolved: Mapping[str, List[CanonicalItem]],
    ) -> _GroupOutcome:
        start = time.perf_counter()

        pairs = [(card, item) for card in cards for item in resolved.get(card.search_term, [])]
        unresolved = sum(1 for card in cards if not resolved.get(card.search_term))
        if unresolved:
            logger.info(f"[Import] {name}: {unresolved}/{len(cards)} cards matched no item")

        keys = list(dict.fromkeys(item.key for _, item in pairs))
        existing = await self._prefetch(user_id, keys) if keys else {}

        async def _process_chunk(part) -> List[_PairOutcome]:
            return [self._process_pair(source, card, item, existing) for card, item in part]

        chunks = await process_batches(pairs, self.settings.batch_size, _process_chunk)
        pair_outcomes = [outcome for part in chunks for outcome in part]

        deduped = dedupe_records([o.record for o in pair_outcomes if o.record is not None])
        stats = SourceTypeStats(
            cards=len(cards),
            processed=len(deduped.kept),
            skipped=sum(1 for o in pair_outcomes if o.status == "skipped"),
            duplicates_removed=deduped.discarded,
            failed=sum(1 for o in pair_outcomes if o.status == "failed"),
            duration_ms=int((time.perf_counter() - start) * 1000),
        )
        logger.info(
            f"[Import] {name}: {stats.processed} records, {stats.skipped} skipped, "
            f"{stats.duplicates_removed} duplicates, {stats.failed} failed"
        )
        return _GroupOutcome(name=name, records=deduped.kept, stats=stats)

    def _process_pair(
        self,
        source: str,
        card: NormalizedCard,
        item: CanonicalItem,
        existing: Mapping[Tuple[str, ItemType], ExistingCard],
    ) -> _PairOutcome:
        card_id = f"{item.key}-{item.type.value}"
        stored = existing.get((item.key, item.type))

        history: List[ReviewEvent] = []
        if stored is not None:
            history = [
                ReviewEvent(timestamp=log.timestamp, grade=log.rating, source="existing")
                for log in stored.logs
            ]
        events = merge_reviews(history, card.reviews)
        initial = stored.card if stored is not None else create_empty_card(INITIAL_CARD_DATE)

        try:
            result = simulate_reviews(initial, events, self.scheduler, card_id=card_id)
        except SimulationError as e:
            logger.error(f"[Simulator] {e}")
            return _PairOutcome(status="failed")

        final_card = result.final_card
        if math.isinf(final_card.stability):
            logger.info(f"[Import] Skipping never-forget card {card_id} ({card.source})")
            return _PairOutcome(status="skipped")

        if not isinstance(final_card.due, datetime):
            logger.error(f"[Import] Invalid due {final_card.due!r} for {card_id}, using now")
            final_card = replace(final_card, due=datetime.now(timezone.utc))

        return _PairOutcome(
            status="processed",
            record=UpsertRecord(
                key=item.key,
                type=item.type,
                card=final_card,
                mode=determine_mode(item.type, card.search_term),
                logs=result.logs,
                source=f"{source}-{card.source}",
            ),
        )


async def import_reviews(
    user_id: str,
    source: str,
    cards: Sequence,
    resolver: ItemResolver,
    store: PersistentStore,
    scheduler: Optional[SchedulingCapability] = None,
    settings: Optional[ImportSettings] = None,
) -> ImportResult:
    """Run a single import with a throwaway orchestrator."""
    orchestrator = ImportOrchestrator(resolver, store, scheduler=scheduler, settings=settings)
    return await orchestrator.import_reviews(user_id, source, cards)
