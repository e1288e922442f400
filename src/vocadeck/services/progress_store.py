"""Persistence of words, progress records, rating history and sessions."""
import logging
from contextlib import contextmanager
from datetime import datetime, UTC
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vocadeck.errors import StoreError
from vocadeck.models.base import as_utc
from vocadeck.models.models import (
    Deck,
    DeckWord,
    RatingHistory,
    StudySession,
    UserDeckProgress,
    UserProgress,
    Word,
)
from vocadeck.models.srs_models import SchedulingState
from vocadeck.monitoring import store_errors, store_operations

logger = logging.getLogger(__name__)


class ProgressStore:
    """SQLAlchemy-backed store for everything the study flow reads and writes."""

    def __init__(self, db: Session):
        """Initialize the store with a database session."""
        self.db = db

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        store_operations.labels(operation=name).inc()
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            store_errors.labels(operation=name).inc()
            logger.error(f"Store operation {name} failed: {e}")
            raise StoreError(name, e) from e

    # Catalog

    def get_deck(self, deck_id: str) -> Optional[Deck]:
        """Get a deck by its ID."""
        with self._operation("get_deck"):
            return self.db.query(Deck).filter(Deck.id == deck_id).first()

    def get_active_decks(self) -> List[Deck]:
        """Get all active decks ordered by name."""
        with self._operation("get_active_decks"):
            return (
                self.db.query(Deck)
                .filter(Deck.is_active == True)  # noqa: E712
                .order_by(Deck.name)
                .all()
            )

    def get_deck_words(self, deck_id: str) -> List[Word]:
        """Get the words of a deck in deck order."""
        with self._operation("get_deck_words"):
            return (
                self.db.query(Word)
                .join(DeckWord, DeckWord.vocabulary_id == Word.id)
                .filter(DeckWord.deck_id == deck_id)
                .order_by(DeckWord.word_order)
                .all()
            )

    def count_deck_words(self, deck_id: str) -> int:
        """Count the words of a deck."""
        with self._operation("count_deck_words"):
            return (
                self.db.query(func.count(DeckWord.id))
                .filter(DeckWord.deck_id == deck_id)
                .scalar()
            ) or 0

    def deck_has_word(self, deck_id: str, word_id: int) -> bool:
        """Check whether a word belongs to a deck."""
        with self._operation("deck_has_word"):
            return (
                self.db.query(DeckWord.id)
                .filter(DeckWord.deck_id == deck_id, DeckWord.vocabulary_id == word_id)
                .first()
            ) is not None

    def get_words(self, ids: Sequence[int]) -> List[Word]:
        """Get words by their IDs, in no particular order."""
        if not ids:
            return []
        with self._operation("get_words"):
            return self.db.query(Word).filter(Word.id.in_(list(ids))).all()

    # Progress

    def get_progress(self, user_id: str, deck_id: str) -> List[UserProgress]:
        """Get every progress record of a user in a deck."""
        with self._operation("get_progress"):
            return (
                self.db.query(UserProgress)
                .filter(
                    UserProgress.user_id == user_id,
                    UserProgress.deck_id == deck_id,
                )
                .all()
            )

    def get_progress_map(self, user_id: str, deck_id: str) -> Dict[int, UserProgress]:
        """Get the progress records of a user in a deck keyed by word ID."""
        return {p.word_id: p for p in self.get_progress(user_id, deck_id)}

    def get_progress_record(
        self, user_id: str, word_id: int, deck_id: str
    ) -> Optional[UserProgress]:
        """Get the progress record of one (user, word, deck) triple."""
        with self._operation("get_progress_record"):
            return (
                self.db.query(UserProgress)
                .filter(
                    UserProgress.user_id == user_id,
                    UserProgress.word_id == word_id,
                    UserProgress.deck_id == deck_id,
                )
                .first()
            )

    def upsert_progress(
        self,
        user_id: str,
        word_id: int,
        deck_id: str,
        state: SchedulingState,
        next_review_date: datetime,
    ) -> UserProgress:
        """Write the scheduling state of a triple, creating the record on first write.

        Writing the same values twice leaves one record with those values.
        """
        with self._operation("upsert_progress"):
            record = (
                self.db.query(UserProgress)
                .filter(
                    UserProgress.user_id == user_id,
                    UserProgress.word_id == word_id,
                    UserProgress.deck_id == deck_id,
                )
                .first()
            )
            if record is None:
                record = UserProgress(user_id=user_id, word_id=word_id, deck_id=deck_id)
                self.db.add(record)

            record.interval = state.interval
            record.ease_factor = state.ease_factor
            record.repetitions = state.repetitions
            record.again_count = state.again_count
            record.is_leech = state.is_leech
            record.next_review_date = as_utc(next_review_date)

            self.db.commit()
            self.db.refresh(record)
            return record

    # Rating history

    def append_rating_history(
        self,
        user_id: str,
        word_id: int,
        deck_id: str,
        rating: str,
        rated_at: Optional[datetime] = None,
    ) -> RatingHistory:
        """Append one rating to the history log."""
        with self._operation("append_rating_history"):
            entry = RatingHistory(
                user_id=user_id,
                word_id=word_id,
                deck_id=deck_id,
                rating=rating,
                rated_at=as_utc(rated_at or datetime.now(UTC)),
            )
            self.db.add(entry)
            self.db.commit()
            return entry

    def get_recent_ratings(
        self, user_id: str, word_id: int, deck_id: str, limit: int = 2
    ) -> List[str]:
        """Get the latest ratings of a word, newest first."""
        with self._operation("get_recent_ratings"):
            rows = (
                self.db.query(RatingHistory.rating)
                .filter(
                    RatingHistory.user_id == user_id,
                    RatingHistory.word_id == word_id,
                    RatingHistory.deck_id == deck_id,
                )
                .order_by(RatingHistory.rated_at.desc(), RatingHistory.id.desc())
                .limit(limit)
                .all()
            )
            return [row.rating for row in rows]

    # Deck progress

    def get_deck_progress(self, user_id: str, deck_id: str) -> Optional[UserDeckProgress]:
        """Get the deck progress aggregate of a user, if any."""
        with self._operation("get_deck_progress"):
            return (
                self.db.query(UserDeckProgress)
                .filter(
                    UserDeckProgress.user_id == user_id,
                    UserDeckProgress.deck_id == deck_id,
                )
                .first()
            )

    def get_or_create_deck_progress(self, user_id: str, deck_id: str) -> UserDeckProgress:
        """Get the deck progress aggregate of a user, creating it with zeroed counters."""
        progress = self.get_deck_progress(user_id, deck_id)
        if progress is not None:
            return progress

        with self._operation("create_deck_progress"):
            progress = UserDeckProgress(
                user_id=user_id,
                deck_id=deck_id,
                words_learned=0,
                words_mastered=0,
                total_reviews=0,
                current_streak=0,
            )
            self.db.add(progress)
            self.db.commit()
            self.db.refresh(progress)
            logger.info(f"Created deck progress for user {user_id} in deck {deck_id}")
            return progress

    def update_deck_progress(self, user_id: str, deck_id: str, **values: Any) -> UserDeckProgress:
        """Set fields of a deck progress aggregate, creating it on first access."""
        unknown = [name for name in values if name not in UserDeckProgress.__table__.columns]
        if unknown:
            raise ValueError(f"Unknown deck progress fields: {', '.join(unknown)}")

        progress = self.get_or_create_deck_progress(user_id, deck_id)
        with self._operation("update_deck_progress"):
            for name, value in values.items():
                if isinstance(value, datetime):
                    value = as_utc(value)
                setattr(progress, name, value)
            self.db.commit()
            self.db.refresh(progress)
            return progress

    # Sessions

    def record_session(
        self,
        user_id: str,
        deck_id: str,
        session_type: str,
        words_studied: int,
        correct_answers: int,
        started_at: datetime,
        completed_at: datetime,
    ) -> StudySession:
        """Store the summary of a finished session."""
        started_at = as_utc(started_at)
        completed_at = as_utc(completed_at)
        with self._operation("record_session"):
            session = StudySession(
                user_id=user_id,
                deck_id=deck_id,
                session_type=session_type,
                words_studied=words_studied,
                correct_answers=correct_answers,
                session_duration=max(0.0, (completed_at - started_at).total_seconds()),
                started_at=started_at,
                completed_at=completed_at,
            )
            self.db.add(session)
            self.db.commit()
            self.db.refresh(session)
            return session

    def get_sessions_since(self, user_id: str, since: datetime) -> List[StudySession]:
        """Get the sessions of a user completed at or after a moment."""
        with self._operation("get_sessions_since"):
            return (
                self.db.query(StudySession)
                .filter(
                    StudySession.user_id == user_id,
                    StudySession.completed_at >= as_utc(since),
                )
                .order_by(StudySession.completed_at)
                .all()
            )
