from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from review_import.errors import PersistenceError, ResolutionError
from review_import.fsrs.database import init_db
from review_import.records import ExistingCard, UpsertRecord
from review_import.schemas import CanonicalItem, ItemType, ReviewEvent

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def at(days: float) -> datetime:
    return BASE_TIME + timedelta(days=days)


def event(days: float, grade, source: str = "test") -> ReviewEvent:
    return ReviewEvent(timestamp=at(days), grade=grade, source=source)


class FakeResolutionService:
    """In-memory ResolutionService; fails any batch containing a term in fail_on."""

    def __init__(self, catalog: Dict[str, List[CanonicalItem]], fail_on=(), fail_all=False):
        self.catalog = catalog
        self.fail_on = set(fail_on)
        self.fail_all = fail_all
        self.calls: List[List[str]] = []

    async def batch_find(self, terms: Sequence[str]):
        self.calls.append(list(terms))
        if self.fail_all or self.fail_on.intersection(terms):
            raise ResolutionError("lookup unavailable")
        return {term: list(self.catalog.get(term, [])) for term in terms}


class FakeStore:
    """In-memory PersistentStore."""

    def __init__(self, existing: Sequence[ExistingCard] = (), fail_get=False, fail_upsert=False):
        self.existing = list(existing)
        self.fail_get = fail_get
        self.fail_upsert = fail_upsert
        self.get_calls: List[List[str]] = []
        self.upsert_calls: List[List[UpsertRecord]] = []

    async def get_existing(self, user_id: str, keys: Sequence[str]):
        self.get_calls.append(list(keys))
        if self.fail_get:
            raise PersistenceError("read failed")
        return [card for card in self.existing if card.key in keys]

    async def batch_upsert(self, user_id: str, records: Sequence[UpsertRecord]) -> None:
        if self.fail_upsert:
            raise PersistenceError("write failed")
        self.upsert_calls.append(list(records))


@pytest.fixture
def water():
    return CanonicalItem(key="water", type=ItemType.VOCABULARY)


@pytest.fixture
def catalog(water):
    return {
        "水": [water],
        "火": [CanonicalItem(key="fire", type=ItemType.KANJI)],
        "みず": [water],
    }


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    init_db(engine)
    yield engine
    engine.dispose()
