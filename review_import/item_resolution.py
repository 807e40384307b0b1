"""
Item resolution: map external search terms to canonical study items.

The import pipeline talks to ItemResolutionAdapter, which trims terms,
answers from its cache where it can, looks the rest up in batches through
a ResolutionService and never lets a lookup failure escape.

MongoSubjectService is the production service: a subjects collection with
documents shaped like

    {"characters": "水", "slug": "water", "object": "vocabulary"}
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from review_import.config import ImportSettings, DEFAULT_LOOKUP_BATCH_SIZE
from review_import.errors import ResolutionError
from review_import.importing.batching import process_batches
from review_import.schemas import CanonicalItem, ItemType

logger = logging.getLogger(__name__)


# Subject "object" kinds and the item type they resolve to
OBJECT_TYPES: Dict[str, ItemType] = {
    "vocabulary": ItemType.VOCABULARY,
    "kana_vocabulary": ItemType.VOCABULARY,
    "kanji": ItemType.KANJI,
    "radical": ItemType.RADICAL,
}


class ResolutionService(Protocol):
    async def batch_find(self, terms: Sequence[str]) -> Mapping[str, Sequence[CanonicalItem]]:
        ...


# ---- Connection Management ----

_client: Optional[MongoClient] = None


def get_subjects_collection(settings: ImportSettings) -> Collection:
    """
    Get the MongoDB subjects collection.

    Uses a persistent connection pool that's reused across calls.

    Returns:
        MongoDB collection object
    """
    global _client

    if not settings.mongo_uri:
        raise ValueError("MONGO_URI not found in environment variables")

    if _client is None:
        _client = MongoClient(
            settings.mongo_uri,
            maxPoolSize=10,  # Connection pool size
            minPoolSize=1,   # Keep at least 1 connection alive
            maxIdleTimeMS=60000  # Keep connections alive for 60 seconds
        )
    return _client[settings.mongo_db_name][settings.subjects_collection]


def close_connection():
    """Close the shared MongoDB client, if one was opened."""
    global _client
    if _client is not None:
        _client.close()
        _client = None


class MongoSubjectService:
    """ResolutionService backed by a MongoDB subjects collection."""

    def __init__(self, collection: Collection):
        self.collection = collection

    def find_subjects(self, terms: Sequence[str]) -> Dict[str, List[CanonicalItem]]:
        """
        Blocking lookup of subjects whose characters match any term.

        Raises:
            ResolutionError: the query failed
        """
        try:
            docs = list(self.collection.find(
                {"characters": {"$in": list(terms)}},
                {"_id": 0, "characters": 1, "slug": 1, "object": 1}
            ))
        except PyMongoError as e:
            raise ResolutionError(f"Subject lookup failed for {len(terms)} terms: {e}") from e

        found: Dict[str, List[CanonicalItem]] = {term: [] for term in terms}
        for doc in docs:
            characters = doc.get("characters")
            item_type = OBJECT_TYPES.get(doc.get("object"))
            if not characters or item_type is None:
                logger.warning(f"[Resolver] Skipping subject {characters!r} with object {doc.get('object')!r}")
                continue
            key = doc.get("slug") or characters
            found.setdefault(characters, []).append(CanonicalItem(key=key, type=item_type))

        return found

    async def batch_find(self, terms: Sequence[str]) -> Dict[str, List[CanonicalItem]]:
        return await asyncio.to_thread(self.find_subjects, terms)


# ---- Cache ----

class ResolutionCache:
    """In-memory term -> items cache owned by one adapter."""

    def __init__(self):
        self._entries: Dict[str, List[CanonicalItem]] = {}
        self.closed = False

    def get(self, term: str) -> Optional[List[CanonicalItem]]:
        return self._entries.get(term)

    def set(self, term: str, items: List[CanonicalItem]):
        self._entries[term] = items

    def clear(self):
        self._entries.clear()

    def keys(self) -> List[str]:
        return list(self._entries)

    def close(self):
        self.clear()
        self.closed = True

    def __contains__(self, term: str) -> bool:
        return term in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _unique_items(items: Iterable[CanonicalItem]) -> List[CanonicalItem]:
    seen = set()
    unique = []
    for item in items:
        marker = (item.type, item.key)
        if marker in seen:
            continue
        seen.add(marker)
        unique.append(item)
    return unique


class ItemResolutionAdapter:
    """
    Resolve search terms to canonical items.

    Args:
        service: ResolutionService used for uncached terms
        cache: Cache to use (a private ResolutionCache by default)
        batch_size: Terms per service call
    """

    def __init__(
        self,
        service: ResolutionService,
        cache: Optional[ResolutionCache] = None,
        batch_size: int = DEFAULT_LOOKUP_BATCH_SIZE,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.service = service
        self.cache = cache if cache is not None else ResolutionCache()
        self.batch_size = batch_size

    async def _lookup(self, terms: List[str]) -> Tuple[List[str], Optional[Mapping[str, Sequence[CanonicalItem]]]]:
        try:
            return terms, await self.service.batch_find(terms)
        except Exception as e:
            logger.warning(f"[Resolver] Lookup failed for {len(terms)} terms, resolving them to nothing: {e}")
            return terms, None

    async def resolve_batch(self, terms: Sequence[str]) -> Dict[str, List[CanonicalItem]]:
        """
        Resolve many terms at once.

        Blank terms resolve to []. Failed lookups resolve to [] and are
        not cached, so a later call retries them.

        Args:
            terms: Search terms as they appear in the source

        Returns:
            Mapping from each original term to its unique items

        Raises:
            ResolutionError: the adapter was closed
        """
        if self.cache.closed:
            raise ResolutionError("Resolution adapter is closed")

        results: Dict[str, List[CanonicalItem]] = {}
        pending: Dict[str, List[str]] = {}

        for term in terms:
            trimmed = (term or "").strip()
            if not trimmed:
                results[term] = []
                continue
            cached = self.cache.get(trimmed)
            if cached is not None:
                results[term] = list(cached)
                continue
            pending.setdefault(trimmed, []).append(term)

        if pending:
            logger.debug(f"[Resolver] {len(pending)} uncached terms, {len(results)} answered locally")
            lookups = await process_batches(list(pending), self.batch_size, self._lookup)
            for looked_up, found in lookups:
                for trimmed in looked_up:
                    if found is None:
                        items = []
                    else:
                        items = _unique_items(found.get(trimmed, ()))
                        self.cache.set(trimmed, items)
                    for original in pending[trimmed]:
                        results[original] = list(items)

        return results

    async def find(self, term: str) -> List[CanonicalItem]:
        """Resolve a single term."""
        resolved = await self.resolve_batch([term])
        return resolved.get(term, [])

    def clear_cache(self):
        self.cache.clear()

    def cache_stats(self) -> Dict[str, object]:
        return {"size": len(self.cache), "keys": self.cache.keys()}

    def close(self):
        """Tear down the cache; the adapter should not be used afterwards."""
        self.cache.close()

    def __enter__(self) -> "ItemResolutionAdapter":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
