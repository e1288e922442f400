"""Test configuration."""
import os
import random
from datetime import datetime, UTC
from pathlib import Path
from typing import Callable, Generator

import pytest
from dotenv import load_dotenv
from faker import Faker

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from sqlalchemy.orm import Session  # noqa: E402

from vocadeck.models.base import SessionLocal, drop_db, init_db  # noqa: E402
from vocadeck.models.models import Deck, DeckWord, Word  # noqa: E402
from vocadeck.services.progress_store import ProgressStore  # noqa: E402
from vocadeck.services.study_service import StudyService  # noqa: E402

fake = Faker("fr_FR")

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    """A fixed moment used as the clock in tests."""
    return NOW


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    drop_db()
    init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        drop_db()


@pytest.fixture
def store(db: Session) -> ProgressStore:
    """Create a progress store instance."""
    return ProgressStore(db)


@pytest.fixture
def study_service(db: Session) -> StudyService:
    """Create a study service with a seeded random generator."""
    return StudyService(db, rng=random.Random(42))


@pytest.fixture
def make_deck(db: Session) -> Callable[..., Deck]:
    """Factory creating a deck with the given number of words."""

    def _make_deck(word_count: int = 10, deck_id: str = None, name: str = None) -> Deck:
        deck = Deck(
            id=deck_id or fake.uuid4(),
            name=name or fake.word().capitalize(),
            description=fake.sentence(),
            difficulty_level="beginner",
            total_words=word_count,
            is_active=True,
        )
        db.add(deck)
        db.flush()
        for order in range(word_count):
            word = Word(
                french_word=f"{fake.word()}-{order}",
                english_translation=f"translation-{order}",
                example_sentence=fake.sentence(),
                sentence_translation=f"sentence-{order}",
            )
            db.add(word)
            db.flush()
            db.add(DeckWord(deck_id=deck.id, vocabulary_id=word.id, word_order=order))
        db.commit()
        db.refresh(deck)
        return deck

    return _make_deck
