"""Database models for vocadeck."""
from datetime import datetime, UTC
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from vocadeck.config import settings
from vocadeck.models.base import Base, TimestampMixin


class Word(Base, TimestampMixin):
    """Vocabulary word model."""

    __tablename__ = "vocabulary"

    id = Column(Integer, primary_key=True)
    french_word = Column(String, nullable=False)
    english_translation = Column(String, nullable=False)
    example_sentence = Column(String)
    sentence_translation = Column(String)

    # Relationships
    decks = relationship("DeckWord", back_populates="word")

    def __repr__(self) -> str:
        return f"<Word id={self.id} french_word={self.french_word!r}>"


class Deck(Base, TimestampMixin):
    """Vocabulary deck model."""

    __tablename__ = "vocabulary_decks"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, default="")
    difficulty_level = Column(String, default="beginner")
    total_words = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)

    # Relationships
    words = relationship("DeckWord", back_populates="deck", order_by="DeckWord.word_order")


class DeckWord(Base, TimestampMixin):
    """Deck-word association model."""

    __tablename__ = "deck_vocabulary"
    __table_args__ = (
        UniqueConstraint("deck_id", "vocabulary_id", name="uq_deck_vocabulary"),
    )

    id = Column(Integer, primary_key=True)
    deck_id = Column(String, ForeignKey("vocabulary_decks.id"), nullable=False)
    vocabulary_id = Column(Integer, ForeignKey("vocabulary.id"), nullable=False)
    word_order = Column(Integer, nullable=False, default=0)

    # Relationships
    deck = relationship("Deck", back_populates="words")
    word = relationship("Word", back_populates="decks")


class UserProgress(Base, TimestampMixin):
    """Scheduling state of one word for one user in one deck."""

    __tablename__ = "user_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "word_id", "deck_id", name="uq_user_word_deck"),
        Index("idx_progress_user_deck", "user_id", "deck_id"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False)
    word_id = Column(Integer, ForeignKey("vocabulary.id"), nullable=False)
    deck_id = Column(String, ForeignKey("vocabulary_decks.id"), nullable=False)
    repetitions = Column(Integer, nullable=False, default=0)
    interval = Column(Integer, nullable=False, default=0)  # days
    ease_factor = Column(Float, nullable=False, default=settings.srs.ease_factor_default)
    again_count = Column(Integer, nullable=False, default=0)
    is_leech = Column(Boolean, nullable=False, default=False)
    next_review_date = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    # Relationships
    word = relationship("Word")

    def __repr__(self) -> str:
        return (
            f"<UserProgress user_id={self.user_id} word_id={self.word_id} "
            f"deck_id={self.deck_id} interval={self.interval} is_leech={self.is_leech}>"
        )


class RatingHistory(Base):
    """Append-only log of ratings."""

    __tablename__ = "rating_history"
    __table_args__ = (
        Index("idx_rating_history_lookup", "user_id", "word_id", "deck_id", "rated_at"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False)
    word_id = Column(Integer, ForeignKey("vocabulary.id"), nullable=False)
    deck_id = Column(String, ForeignKey("vocabulary_decks.id"), nullable=False)
    rating = Column(String, nullable=False)  # again, hard, good, easy, learn, know
    rated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))


class StudySession(Base, TimestampMixin):
    """Summary of a completed study session."""

    __tablename__ = "study_sessions"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False)
    deck_id = Column(String, ForeignKey("vocabulary_decks.id"), nullable=False)
    session_type = Column(String, nullable=False)  # review, discovery, deep-dive
    words_studied = Column(Integer, default=0)
    correct_answers = Column(Integer, default=0)
    session_duration = Column(Float, default=0.0)  # in seconds
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True))


class UserDeckProgress(Base, TimestampMixin):
    """Per-deck aggregate of a user's study activity."""

    __tablename__ = "user_deck_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "deck_id", name="uq_user_deck_progress"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False)
    deck_id = Column(String, ForeignKey("vocabulary_decks.id"), nullable=False)
    words_learned = Column(Integer, nullable=False, default=0)  # words with a progress record
    words_mastered = Column(Integer, nullable=False, default=0)
    total_reviews = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)  # consecutive study days
    last_studied_at = Column(DateTime(timezone=True))

    # Relationships
    deck = relationship("Deck")

    def __repr__(self) -> str:
        return (
            f"<UserDeckProgress user_id={self.user_id} deck_id={self.deck_id} "
            f"words_learned={self.words_learned} total_reviews={self.total_reviews}>"
        )
