"""
SQLAlchemy ORM Models for the card store

One row per (user, item key, item type). The replayed transition history
is stored alongside the state as a JSON document.
"""

from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class FsrsCard(Base):
    """
    Persistent scheduling state for a single study item.
    """
    __tablename__ = 'fsrs_cards'

    # Primary key: composite of user_id, item key and item type
    user_id = Column(String(255), primary_key=True, nullable=False)
    practice_item_key = Column(String(255), primary_key=True, nullable=False)
    type = Column(String(50), primary_key=True, nullable=False)

    mode = Column(String(50), nullable=False)  # "readings" or "kana"

    # Memory state
    stability = Column(Float, nullable=False)
    difficulty = Column(Float, nullable=False)
    due = Column(DateTime(timezone=True), nullable=False)
    last_review = Column(DateTime(timezone=True), nullable=True)
    state = Column(Integer, nullable=False, default=0)  # 0=NEW, 1=LEARNING, 2=REVIEW, 3=RELEARNING
    reps = Column(Integer, nullable=False, default=0)
    lapses = Column(Integer, nullable=False, default=0)

    # Replayed history, JSON list of transitions
    logs = Column(Text, nullable=False, default="[]")

    lesson_id = Column(String(255), nullable=True)
    source = Column(String(255), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<FsrsCard({self.user_id}, {self.practice_item_key}, {self.type})>"
