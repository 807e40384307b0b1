"""
Database - Card Store I/O

Handles all database operations for imported card state.
Uses SQLAlchemy ORM (Postgres in production, SQLite in tests).

This module handles ONLY database I/O.
Scheduling logic is handled by the scheduler module.

SqlCardStore implements the async PersistentStore interface the import
pipeline expects; the blocking session work runs in a worker thread.
"""

from __future__ import annotations
import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from review_import.config import get_database_url
from review_import.errors import PersistenceError
from review_import.fsrs.constants import ControlAction, Rating, SchedulingState
from review_import.fsrs.memory_state import CardState, SimulationLog, ensure_utc
from review_import.fsrs.models import Base, FsrsCard
from review_import.records import ExistingCard, UpsertRecord
from review_import.schemas import ItemType, PracticeMode

logger = logging.getLogger(__name__)


def get_engine(db_url: Optional[str] = None) -> Engine:
    """
    Get SQLAlchemy engine for database connection.

    Uses connection pooling for better performance.

    Args:
        db_url: Connection string (defaults to DATABASE_URL)

    Returns:
        SQLAlchemy Engine instance
    """
    return create_engine(
        db_url or get_database_url(),
        pool_size=5,           # Keep 5 connections open
        max_overflow=10,       # Allow up to 10 extra connections
        pool_pre_ping=True,    # Verify connections before use
        echo=False
    )


def init_db(engine: Engine):
    """
    Initialize database schema if tables don't exist.

    Safe to call multiple times - only creates tables if they don't exist.
    """
    inspector = inspect(engine)
    if FsrsCard.__tablename__ not in inspector.get_table_names():
        Base.metadata.create_all(engine)
        logger.info(f"Created table {FsrsCard.__tablename__}")


# ---- Serialization ----

def _rating_to_json(rating) -> object:
    if isinstance(rating, ControlAction):
        return rating.value
    return int(rating)


def _rating_from_json(value) -> object:
    if isinstance(value, str):
        return ControlAction(value)
    return Rating(value)


def serialize_logs(logs: Iterable[SimulationLog]) -> str:
    """Encode simulation logs as a JSON list."""
    return json.dumps([
        {
            "previous_state": int(log.previous_state),
            "new_state": int(log.new_state),
            "rating": _rating_to_json(log.rating),
            "timestamp": ensure_utc(log.timestamp).isoformat(),
            "stability": log.stability,
            "difficulty": log.difficulty,
            "scheduled_days": log.scheduled_days,
        }
        for log in logs
    ])


def deserialize_logs(payload: Optional[str]) -> List[SimulationLog]:
    """Decode a JSON list written by serialize_logs."""
    if not payload:
        return []
    return [
        SimulationLog(
            previous_state=SchedulingState(entry["previous_state"]),
            new_state=SchedulingState(entry["new_state"]),
            rating=_rating_from_json(entry["rating"]),
            timestamp=ensure_utc(datetime.fromisoformat(entry["timestamp"])),
            stability=entry.get("stability", 0.0),
            difficulty=entry.get("difficulty", 0.0),
            scheduled_days=entry.get("scheduled_days", 0.0),
        )
        for entry in json.loads(payload)
    ]


def _to_existing(row: FsrsCard) -> ExistingCard:
    card = CardState(
        stability=row.stability,
        difficulty=row.difficulty,
        due=ensure_utc(row.due),
        last_review=ensure_utc(row.last_review) if row.last_review else None,
        state=SchedulingState(row.state),
        reps=row.reps,
        lapses=row.lapses,
    )
    return ExistingCard(
        key=row.practice_item_key,
        type=ItemType(row.type),
        card=card,
        logs=deserialize_logs(row.logs),
        mode=PracticeMode(row.mode) if row.mode else None,
    )


def _apply_record(row: FsrsCard, record: UpsertRecord, now: datetime):
    row.mode = record.mode.value
    row.stability = record.card.stability
    row.difficulty = record.card.difficulty
    row.due = record.card.due
    row.last_review = record.card.last_review
    row.state = int(record.card.state)
    row.reps = record.card.reps
    row.lapses = record.card.lapses
    row.logs = serialize_logs(record.logs)
    row.lesson_id = record.lesson_id
    row.source = record.source
    row.updated_at = now


# ---- Store ----

class SqlCardStore:
    """
    Card store backed by the fsrs_cards table.

    Args:
        engine: SQLAlchemy engine (defaults to get_engine())
    """

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine if engine is not None else get_engine()
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def get_session(self) -> Session:
        return self._session_factory()

    def load_existing(self, user_id: str, keys: Sequence[str]) -> List[ExistingCard]:
        """
        Load stored cards for the given item keys (all types).

        Args:
            user_id: User identifier for scoping review data
            keys: Canonical item keys

        Returns:
            ExistingCard per stored row
        """
        if not keys:
            return []

        session = self.get_session()
        try:
            rows = session.query(FsrsCard).filter(
                FsrsCard.user_id == user_id,
                FsrsCard.practice_item_key.in_(list(set(keys)))
            ).all()
            return [_to_existing(row) for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load cards for {user_id}: {e}") from e
        finally:
            session.close()

    def save_records(self, user_id: str, records: Sequence[UpsertRecord]):
        """
        Insert or update records in a single transaction.

        Args:
            user_id: User identifier for scoping review data
            records: Records to write (at most one per key/type)
        """
        if not records:
            return

        now = datetime.now(timezone.utc)
        session = self.get_session()
        try:
            for record in records:
                row = session.get(FsrsCard, (user_id, record.key, record.type.value))
                if row is None:
                    row = FsrsCard(
                        user_id=user_id,
                        practice_item_key=record.key,
                        type=record.type.value,
                    )
                    session.add(row)
                _apply_record(row, record, now)

            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Failed to save {len(records)} cards for {user_id}: {e}") from e
        finally:
            session.close()

    # Async interface used by the import pipeline

    async def get_existing(self, user_id: str, keys: Sequence[str]) -> List[ExistingCard]:
        return await asyncio.to_thread(self.load_existing, user_id, keys)

    async def batch_upsert(self, user_id: str, records: Sequence[UpsertRecord]) -> None:
        await asyncio.to_thread(self.save_records, user_id, records)
