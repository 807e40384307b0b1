import asyncio
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from review_import.config import ImportSettings
from review_import.errors import ImportFailedError, ImportInputError
from review_import.fsrs import FsrsScheduler, Rating, SchedulingState, SimulationLog
from review_import.fsrs.memory_state import CardState
from review_import.importing.orchestrator import ImportOrchestrator, determine_mode, import_reviews
from review_import.item_resolution import ItemResolutionAdapter
from review_import.records import ExistingCard
from review_import.schemas import CanonicalItem, ItemType, NormalizedCard, PracticeMode, ReviewEvent

from tests.conftest import FakeResolutionService, FakeStore, at, event


def unix(seconds):
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def card(term, reviews, source="jpdb-vocabulary-jp-en-1", card_type=None):
    return NormalizedCard(search_term=term, reviews=reviews, source=source, card_type=card_type)


def run(orchestrator, cards, user_id="user-1", source="jpdb"):
    return asyncio.run(orchestrator.import_reviews(user_id, source, cards))


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def make_orchestrator(catalog, store):
    def _make(service=None, scheduler=None, settings=None, store_=None):
        resolver = ItemResolutionAdapter(service or FakeResolutionService(catalog))
        return ImportOrchestrator(resolver, store_ or store, scheduler=scheduler, settings=settings)
    return _make


class BrokenScheduler(FsrsScheduler):
    def next(self, card, now, rating):
        raise RuntimeError("bad parameters")


def test_end_to_end_single_card(make_orchestrator, store):
    reviews = [
        ReviewEvent(timestamp=unix(100), grade="okay", source="jpdb"),
        ReviewEvent(timestamp=unix(200), grade="nothing", source="jpdb"),
        ReviewEvent(timestamp=unix(300), grade="easy", source="jpdb"),
    ]

    result = run(make_orchestrator(), [card("水", reviews)])

    assert result.success
    assert result.processed_count == 1
    assert result.message.startswith("Successfully imported 1 cards in ")
    assert len(store.upsert_calls) == 1
    (saved,) = store.upsert_calls[0]
    assert saved.key == "water"
    assert saved.type == ItemType.VOCABULARY
    assert saved.mode == PracticeMode.READINGS
    assert saved.source == "jpdb-jpdb-vocabulary-jp-en-1"
    assert 2 <= len(saved.logs) <= 3
    assert saved.card.due > unix(300)
    assert saved.card.last_review == unix(300)


def test_unresolvable_terms_produce_empty_success(make_orchestrator, store):
    service = FakeResolutionService({}, fail_all=True)

    result = run(make_orchestrator(service=service), [card("水", [event(0, "okay")])])

    assert result.success
    assert result.processed_count == 0
    assert store.upsert_calls == []


def test_never_forget_cards_are_skipped(make_orchestrator, store):
    result = run(make_orchestrator(), [card("水", [event(0, "okay"), event(1, "never-forget")])])

    assert result.skipped_count == 1
    assert result.processed_count == 0
    assert store.upsert_calls == []


def test_persist_failure_is_terminal(make_orchestrator):
    orchestrator = make_orchestrator(store_=FakeStore(fail_upsert=True))

    with pytest.raises(ImportFailedError) as excinfo:
        run(orchestrator, [card("水", [event(0, "okay")])])

    assert excinfo.value.stage == "persist"


def test_prefetch_failure_is_tolerated(make_orchestrator):
    store = FakeStore(fail_get=True)

    result = run(make_orchestrator(store_=store), [card("水", [event(0, "okay")])])

    assert result.processed_count == 1
    assert len(store.upsert_calls) == 1


def test_simulation_failure_only_drops_that_card(make_orchestrator, store):
    cards = [card("水", [event(0, "okay")]), card("火", [])]

    result = run(make_orchestrator(scheduler=BrokenScheduler()), cards)

    assert result.failed_count == 1
    assert result.processed_count == 1
    assert [r.key for r in store.upsert_calls[0]] == ["fire"]


def test_duplicates_within_a_source_type(make_orchestrator, store):
    cards = [
        card("水", [event(0, "okay")], source="jpdb-vocabulary-jp-en-1", card_type="vocabulary-jp-en"),
        card("みず", [event(0, "easy")], source="jpdb-vocabulary-jp-en-2", card_type="vocabulary-jp-en"),
    ]

    result = run(make_orchestrator(), cards)

    assert result.duplicates_removed == 1
    assert result.by_source_type["vocabulary-jp-en"].duplicates_removed == 1
    (saved,) = store.upsert_calls[0]
    assert saved.source == "jpdb-jpdb-vocabulary-jp-en-2"


def test_duplicates_across_source_types(make_orchestrator, store):
    cards = [
        card("水", [event(0, "okay")], source="jpdb-vocabulary-jp-en-1", card_type="vocabulary-jp-en"),
        card("水", [event(0, "easy")], source="jpdb-vocabulary-en-jp-1", card_type="vocabulary-en-jp"),
    ]

    result = run(make_orchestrator(), cards)

    assert result.processed_count == 1
    assert result.duplicates_removed == 1
    assert set(result.by_source_type) == {"vocabulary-jp-en", "vocabulary-en-jp"}
    assert result.by_source_type["vocabulary-jp-en"].processed == 1
    (saved,) = store.upsert_calls[0]
    assert saved.source == "jpdb-jpdb-vocabulary-en-jp-1"
    assert saved.card.stability == pytest.approx(1.8)


def test_existing_history_is_merged(make_orchestrator):
    stored_card = CardState(
        stability=1.0,
        difficulty=5.0,
        due=at(1),
        last_review=at(0),
        state=SchedulingState.LEARNING,
        reps=1,
    )
    stored_log = SimulationLog(
        previous_state=SchedulingState.NEW,
        new_state=SchedulingState.LEARNING,
        rating=Rating.GOOD,
        timestamp=at(0),
    )
    store = FakeStore(existing=[
        ExistingCard(key="water", type=ItemType.VOCABULARY, card=stored_card, logs=[stored_log]),
    ])

    run(make_orchestrator(store_=store), [card("水", [event(5, "okay")])])

    (saved,) = store.upsert_calls[0]
    assert [log.timestamp for log in saved.logs] == [at(0), at(5)]
    assert saved.card.reps == 2
    assert store.get_calls == [["water"]]


def test_card_without_reviews_keeps_stored_state(make_orchestrator):
    stored_card = CardState(stability=4.0, difficulty=3.0, due=at(9), last_review=at(2), state=SchedulingState.REVIEW, reps=4)
    store = FakeStore(existing=[ExistingCard(key="fire", type=ItemType.KANJI, card=stored_card)])

    run(make_orchestrator(store_=store), [card("火", [])])

    (saved,) = store.upsert_calls[0]
    assert saved.card == stored_card


def test_new_card_without_reviews_starts_in_2000(make_orchestrator, store):
    run(make_orchestrator(), [card("火", [])])

    (saved,) = store.upsert_calls[0]
    assert saved.card.state == SchedulingState.NEW
    assert saved.card.due == datetime(2000, 1, 1, tzinfo=timezone.utc)


def test_small_batches_process_every_pair(make_orchestrator, store):
    catalog = {f"term{i}": [CanonicalItem(key=f"item{i}", type=ItemType.VOCABULARY)] for i in range(5)}
    orchestrator = make_orchestrator(
        service=FakeResolutionService(catalog),
        settings=ImportSettings(batch_size=2, prefetch_chunk_size=2),
    )

    result = run(orchestrator, [card(f"term{i}", [event(0, "okay")]) for i in range(5)])

    assert result.processed_count == 5
    assert len(store.get_calls) == 3


def test_accepts_plain_dicts(make_orchestrator, store):
    cards = [{
        "search_term": "水",
        "source": "manual",
        "reviews": [{"timestamp": at(0).isoformat(), "grade": "okay"}],
    }]

    result = run(make_orchestrator(), cards)

    assert result.processed_count == 1
    assert result.by_source_type["manual"].cards == 1


def test_empty_import_succeeds(make_orchestrator, store):
    result = run(make_orchestrator(), [])
    assert result.success
    assert result.processed_count == 0
    assert result.by_source_type == {}
    assert store.upsert_calls == []


@pytest.mark.parametrize(
    "user_id,source,cards",
    [
        ("", "jpdb", []),
        ("user-1", "", []),
        ("user-1", None, []),
        ("user-1", "jpdb", "not-a-list"),
        ("user-1", "jpdb", [{"search_term": "   ", "source": "jpdb"}]),
        ("user-1", "jpdb", [{"search_term": "水"}]),
    ],
)
def test_invalid_input_is_rejected_before_processing(make_orchestrator, store, user_id, source, cards):
    service = FakeResolutionService({})

    with pytest.raises(ImportInputError):
        asyncio.run(make_orchestrator(service=service).import_reviews(user_id, source, cards))

    assert service.calls == []
    assert store.upsert_calls == []


def test_module_level_entry_point(catalog, store):
    resolver = ItemResolutionAdapter(FakeResolutionService(catalog))
    result = asyncio.run(import_reviews("user-1", "jpdb", [card("水", [event(0, "okay")])], resolver, store))
    assert result.processed_count == 1


@pytest.mark.parametrize(
    "item_type,spelling,expected",
    [
        (ItemType.KANJI, "水", PracticeMode.READINGS),
        (ItemType.RADICAL, "", PracticeMode.READINGS),
        (ItemType.VOCABULARY, "水曜日", PracticeMode.READINGS),
        (ItemType.VOCABULARY, "", PracticeMode.READINGS),
        (ItemType.VOCABULARY, "みず", PracticeMode.KANA),
        (ItemType.VOCABULARY, "カタカナ", PracticeMode.KANA),
    ],
)
def test_determine_mode(item_type, spelling, expected):
    assert determine_mode(item_type, spelling) == expected


def test_failed_resolution_batch_only_drops_its_cards(catalog, store):
    service = FakeResolutionService(catalog, fail_on={"木"})
    resolver = ItemResolutionAdapter(service, batch_size=3)
    orchestrator = ImportOrchestrator(resolver, store)
    cards = [
        card("木", [event(0, "okay")]),
        card("火", [event(0, "okay")]),
        card("みず", [event(0, "okay")]),
        card("水", [event(0, "hard")]),
    ]

    result = run(orchestrator, cards)

    assert result.success
    assert result.processed_count == 1
    assert [r.key for r in store.upsert_calls[0]] == ["water"]


class NoDueScheduler(FsrsScheduler):
    def next(self, card, now, rating):
        card_next, log = super().next(card, now, rating)
        return replace(card_next, due=None), log


def test_missing_due_is_replaced_with_now(make_orchestrator, store):
    before = datetime.now(timezone.utc)

    result = run(make_orchestrator(scheduler=NoDueScheduler()), [card("水", [event(0, "okay")])])

    assert result.processed_count == 1
    (saved,) = store.upsert_calls[0]
    assert isinstance(saved.card.due, datetime)
    assert saved.card.due.tzinfo is not None
    assert before <= saved.card.due <= datetime.now(timezone.utc)


def test_never_forget_at_the_end_of_the_calendar_only_skips_that_card(make_orchestrator, store):
    late = ReviewEvent(timestamp=datetime(9995, 6, 1, tzinfo=timezone.utc), grade="never-forget")
    cards = [card("水", [late]), card("火", [event(0, "okay")])]

    result = run(make_orchestrator(), cards)

    assert result.success
    assert result.skipped_count == 1
    assert result.processed_count == 1
    assert [r.key for r in store.upsert_calls[0]] == ["fire"]


def test_record_source_names_the_import_tool(make_orchestrator, store):
    run(make_orchestrator(), [card("火", [event(0, "okay")], source="manual-7")], source="csv")

    (saved,) = store.upsert_calls[0]
    assert saved.source == "csv-manual-7"
