"""Study service for running sessions over a deck."""
import logging
import random
import time
from datetime import datetime, timedelta, UTC
from typing import Dict, List, Optional, Union

from sqlalchemy.orm import Session

from vocadeck.config import settings
from vocadeck.errors import NotFoundError
from vocadeck.models.base import as_utc
from vocadeck.models.models import StudySession, UserDeckProgress, UserProgress, Word
from vocadeck.models.srs_models import (
    CardType,
    DeckMetrics,
    DeepDiveCategory,
    DiscoveryRating,
    LeechAction,
    Rating,
    ReviewOutcome,
    SchedulingState,
    SessionQueues,
    SessionStats,
    SessionTally,
    SessionType,
)
from vocadeck.monitoring import (
    leech_changes,
    queue_build_duration,
    queue_builds,
    ratings_recorded,
    sessions_completed,
)
from vocadeck.services.answer_checker import check_answer
from vocadeck.services.progress_store import ProgressStore
from vocadeck.services.queue_builder import (
    build_queues,
    calculate_metrics,
    select_session_words,
)
from vocadeck.services.scheduler import (
    apply_discovery_rating,
    apply_leech_action,
    next_review_date,
    review_word,
)

logger = logging.getLogger(__name__)

AnyRating = Union[Rating, DiscoveryRating]


def next_streak(current_streak: int, last_studied_at: Optional[datetime], now: datetime) -> int:
    """Consecutive UTC days with a completed session, counting the one ending now."""
    if last_studied_at is None:
        return 1
    days = (as_utc(now).date() - as_utc(last_studied_at).date()).days
    if days <= 0:
        return max(1, current_streak)
    if days == 1:
        return current_streak + 1
    return 1


class StudyService:
    """Service that loads queues and applies ratings for one user at a time."""

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        """Initialize the service with a database session."""
        self.db = db
        self.store = ProgressStore(db)
        self.rng = rng or random.Random()

    def _require_deck(self, deck_id: str) -> None:
        if self.store.get_deck(deck_id) is None:
            raise NotFoundError(f"Deck {deck_id} not found")

    def _require_word_in_deck(self, deck_id: str, word_id: int) -> None:
        self._require_deck(deck_id)
        if not self.store.deck_has_word(deck_id, word_id):
            raise NotFoundError(f"Word {word_id} not found in deck {deck_id}")

    def load_queues(self, user_id: str, deck_id: str, now: Optional[datetime] = None) -> SessionQueues:
        """Build the queues of a deck for a user."""
        now = as_utc(now or datetime.now(UTC))
        self._require_deck(deck_id)
        started = time.perf_counter()

        words = self.store.get_deck_words(deck_id)
        progress = self.store.get_progress_map(user_id, deck_id)
        queues = build_queues(words, progress, now, rng=self.rng)

        queue_builds.inc()
        queue_build_duration.observe(time.perf_counter() - started)
        logger.info(
            f"Queues for user {user_id} deck {deck_id}: unseen={len(queues.unseen)} "
            f"review={len(queues.review)} practice={len(queues.practice)} "
            f"near_future={len(queues.near_future)}"
        )
        return queues

    def load_metrics(self, user_id: str, deck_id: str) -> DeckMetrics:
        """Count the words of a deck per progress bucket."""
        self._require_deck(deck_id)
        progress = self.store.get_progress(user_id, deck_id)
        total = self.store.count_deck_words(deck_id)
        return calculate_metrics(progress, total)

    def start_session(
        self,
        user_id: str,
        deck_id: str,
        session_type: SessionType,
        category: Optional[DeepDiveCategory] = None,
        now: Optional[datetime] = None,
    ) -> List[Word]:
        """Choose the words of a new session, in study order."""
        now = as_utc(now or datetime.now(UTC))
        self._require_deck(deck_id)
        if session_type is SessionType.DEEP_DIVE and category is None:
            raise ValueError("A deep-dive session requires a category")

        words = self.store.get_deck_words(deck_id)
        if not words:
            logger.info(f"No vocabulary found for deck {deck_id}")
            return []

        progress = self.store.get_progress_map(user_id, deck_id)
        chosen = select_session_words(
            session_type, words, progress, now, category=category, rng=self.rng
        )
        logger.info(
            f"Starting {session_type.value} session for user {user_id} deck {deck_id} "
            f"with {len(chosen)} words"
        )
        return chosen

    def check_answer(self, word_id: int, answer: str, card_type: CardType) -> bool:
        """Check a typed answer for a word shown as the given card type."""
        words = self.store.get_words([word_id])
        if not words:
            raise NotFoundError(f"Word {word_id} not found")
        correct = check_answer(words[0], answer, card_type)
        logger.debug(f"Answer to word {word_id} as {card_type.value} card: correct={correct}")
        return correct

    def submit_rating(
        self,
        user_id: str,
        deck_id: str,
        word_id: int,
        rating: AnyRating,
        session_type: SessionType,
        now: Optional[datetime] = None,
    ) -> ReviewOutcome:
        """Apply a rating to a word and persist the new schedule.

        Review and deep-dive sessions take review ratings; discovery sessions
        take discovery ratings. The progress write happens before the history
        append, and a failure of either raises StoreError. A word outside the
        deck raises NotFoundError before anything is written.
        """
        now = as_utc(now or datetime.now(UTC))
        self._require_word_in_deck(deck_id, word_id)
        record = self.store.get_progress_record(user_id, word_id, deck_id)
        current = SchedulingState.from_record(record) if record else None

        if session_type is SessionType.DISCOVERY:
            if not isinstance(rating, DiscoveryRating):
                raise ValueError(f"Rating {rating} is not valid in a discovery session")
            state = apply_discovery_rating(current, rating)
            outcome = ReviewOutcome(state=state, next_review_date=next_review_date(state.interval, now))
        else:
            if not isinstance(rating, Rating):
                raise ValueError(f"Rating {rating} is not valid in a {session_type.value} session")
            recent = self.store.get_recent_ratings(
                user_id, word_id, deck_id, limit=settings.srs.leech_removal_streak
            )
            outcome = review_word(current, rating, recent, now)

        self.store.upsert_progress(
            user_id, word_id, deck_id, outcome.state, outcome.next_review_date
        )
        self.store.append_rating_history(user_id, word_id, deck_id, rating.value, rated_at=now)
        self._update_deck_counters(user_id, deck_id)

        ratings_recorded.labels(rating=rating.value).inc()
        if outcome.became_leech:
            leech_changes.labels(change="flagged").inc()
            logger.info(f"Word {word_id} became a leech for user {user_id} in deck {deck_id}")
        if outcome.removed_from_leech:
            leech_changes.labels(change="released").inc()
            logger.info(f"Word {word_id} removed from leeches for user {user_id} in deck {deck_id}")

        logger.debug(
            f"Word {word_id} rated {rating.value}: interval={outcome.state.interval} "
            f"ease={outcome.state.ease_factor:.2f} next_review={outcome.next_review_date.isoformat()}"
        )
        return outcome

    def apply_leech_action(
        self,
        user_id: str,
        deck_id: str,
        word_id: int,
        action: LeechAction,
        now: Optional[datetime] = None,
    ) -> UserProgress:
        """Mark or unmark a word as a leech without advancing its schedule."""
        now = as_utc(now or datetime.now(UTC))
        self._require_word_in_deck(deck_id, word_id)
        record = self.store.get_progress_record(user_id, word_id, deck_id)
        if record is not None:
            current = SchedulingState.from_record(record)
            review_date = as_utc(record.next_review_date)
        else:
            current = None
            review_date = now

        state = apply_leech_action(current, action)
        progress = self.store.upsert_progress(user_id, word_id, deck_id, state, review_date)
        self._update_deck_counters(user_id, deck_id, reviewed=False)

        change = "marked" if action is LeechAction.LEECH else "unmarked"
        leech_changes.labels(change=change).inc()
        logger.info(f"Word {word_id} {change} as leech for user {user_id} in deck {deck_id}")
        return progress

    def complete_session(
        self,
        user_id: str,
        deck_id: str,
        session_type: SessionType,
        tally: SessionTally,
        started_at: datetime,
        now: Optional[datetime] = None,
    ) -> StudySession:
        """Store the summary of a finished session and advance the deck streak."""
        now = as_utc(now or datetime.now(UTC))
        self._require_deck(deck_id)
        session = self.store.record_session(
            user_id=user_id,
            deck_id=deck_id,
            session_type=session_type.value,
            words_studied=tally.total,
            correct_answers=tally.correct_answers,
            started_at=started_at,
            completed_at=now,
        )

        deck_progress = self.store.get_or_create_deck_progress(user_id, deck_id)
        last_studied_at = deck_progress.last_studied_at
        streak = next_streak(deck_progress.current_streak, last_studied_at, now)
        if last_studied_at is None or as_utc(last_studied_at) < now:
            last_studied_at = now
        self.store.update_deck_progress(
            user_id, deck_id, current_streak=streak, last_studied_at=last_studied_at
        )

        sessions_completed.labels(session_type=session_type.value).inc()
        logger.info(
            f"Session completed for user {user_id}: {tally.total} words, "
            f"{tally.correct_answers} correct, streak {streak}"
        )
        return session

    def deck_progress(self, user_id: str) -> Dict[str, UserDeckProgress]:
        """Deck progress of a user for every active deck, keyed by deck ID.

        Decks the user never studied get a zeroed record on first access.
        """
        return {
            deck.id: self.store.get_or_create_deck_progress(user_id, deck.id)
            for deck in self.store.get_active_decks()
        }

    def _update_deck_counters(self, user_id: str, deck_id: str, reviewed: bool = True) -> None:
        metrics = calculate_metrics(
            self.store.get_progress(user_id, deck_id), self.store.count_deck_words(deck_id)
        )
        deck_progress = self.store.get_or_create_deck_progress(user_id, deck_id)
        total_reviews = deck_progress.total_reviews + (1 if reviewed else 0)
        self.store.update_deck_progress(
            user_id,
            deck_id,
            words_learned=metrics.total - metrics.unseen,
            words_mastered=metrics.mastered,
            total_reviews=total_reviews,
        )

    def session_stats(self, user_id: str, now: Optional[datetime] = None) -> SessionStats:
        """Words studied today and over the last 7 and 30 days."""
        now = as_utc(now or datetime.now(UTC))
        seven_days_ago = now - timedelta(days=7)
        thirty_days_ago = now - timedelta(days=30)

        reviews_today = 0
        reviews_7_days = 0
        reviews_30_days = 0
        last_studied_at = None

        for session in self.store.get_sessions_since(user_id, thirty_days_ago):
            completed_at = as_utc(session.completed_at)
            words = session.words_studied or 0
            if completed_at.date() == now.date():
                reviews_today += words
            if completed_at >= seven_days_ago:
                reviews_7_days += words
            reviews_30_days += words
            if last_studied_at is None or completed_at > last_studied_at:
                last_studied_at = completed_at

        return SessionStats(
            reviews_today=reviews_today,
            reviews_7_days=reviews_7_days,
            reviews_30_days=reviews_30_days,
            last_studied_at=last_studied_at,
        )
