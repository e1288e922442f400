"""Tests for queue building and metrics."""
import random
from collections import Counter
from datetime import datetime, timedelta, UTC
from typing import Dict, List

import pytest
from faker import Faker

from vocadeck.models.models import UserProgress, Word
from vocadeck.models.srs_models import DeckMetrics, DeepDiveCategory, SessionType
from vocadeck.services.queue_builder import (
    build_queues,
    calculate_metrics,
    filter_discovery,
    matches_deep_dive_category,
    select_session_words,
    space_leeches,
)

fake = Faker("fr_FR")

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)


def make_words(count: int) -> List[Word]:
    return [
        Word(id=index + 1, french_word=fake.word(), english_translation=f"word-{index}")
        for index in range(count)
    ]


def make_progress(
    word: Word,
    next_review: datetime = NOW,
    interval: int = 0,
    again_count: int = 0,
    is_leech: bool = False,
) -> UserProgress:
    return UserProgress(
        user_id="user-1",
        word_id=word.id,
        deck_id="deck-1",
        repetitions=0,
        interval=interval,
        ease_factor=2.5,
        again_count=again_count,
        is_leech=is_leech,
        next_review_date=next_review,
    )


def ids(words: List[Word]) -> List[int]:
    return [word.id for word in words]


def test_build_queues_without_progress() -> None:
    """Test that a deck with no progress is entirely unseen."""
    words = make_words(10)
    queues = build_queues(words, {}, NOW)
    assert ids(queues.unseen) == ids(words)
    assert queues.review == []
    assert queues.practice == []
    assert queues.near_future == []


def test_build_queues_partition() -> None:
    """Test that every word lands in exactly one queue."""
    words = make_words(8)
    progress = {
        1: make_progress(words[0], NOW - timedelta(days=1)),
        2: make_progress(words[1], NOW),
        3: make_progress(words[2], NOW + timedelta(days=1)),
        4: make_progress(words[3], NOW + timedelta(days=3)),
        5: make_progress(words[4], NOW + timedelta(days=10), interval=10),
        7: make_progress(words[6], NOW + timedelta(days=30), interval=30),
    }

    queues = build_queues(words, progress, NOW, rng=random.Random(1))

    assert sorted(ids(queues.review)) == [1, 2]
    assert ids(queues.near_future) == [3, 4]
    assert ids(queues.practice) == [5, 7]
    assert ids(queues.unseen) == [6, 8]

    all_ids = ids(queues.unseen) + ids(queues.review) + ids(queues.practice) + ids(queues.near_future)
    assert sorted(all_ids) == ids(words)
    assert queues.total == len(words)


def test_build_queues_handles_naive_dates() -> None:
    """Test that dates read back from SQLite without tzinfo compare as UTC."""
    words = make_words(2)
    progress = {
        1: make_progress(words[0], (NOW - timedelta(hours=1)).replace(tzinfo=None)),
        2: make_progress(words[1], (NOW + timedelta(days=2)).replace(tzinfo=None)),
    }
    queues = build_queues(words, progress, NOW)
    assert ids(queues.review) == [1]
    assert ids(queues.near_future) == [2]


def test_space_leeches_is_permutation() -> None:
    """Test that spacing reorders without dropping or duplicating words."""
    words = make_words(20)
    progress = {
        word.id: make_progress(word, again_count=5 if word.id % 4 == 0 else 0, is_leech=word.id % 4 == 0)
        for word in words
    }
    spaced = space_leeches(words, progress, rng=random.Random(7))
    assert Counter(ids(spaced)) == Counter(ids(words))


def test_space_leeches_gap() -> None:
    """Test that leeches come after every three regular words."""
    words = make_words(8)
    leech_ids = {7, 8}
    progress = {
        word.id: make_progress(word, again_count=4, is_leech=word.id in leech_ids)
        for word in words
    }

    spaced = space_leeches(words, progress, rng=random.Random(3), min_gap=3)

    pattern = ["L" if word.id in leech_ids else "R" for word in spaced]
    assert pattern == ["R", "R", "R", "L", "R", "R", "R", "L"]


def test_space_leeches_when_regular_words_run_out() -> None:
    """Test that remaining leeches are appended once regular words are exhausted."""
    words = make_words(5)
    leech_ids = {3, 4, 5}
    progress = {
        word.id: make_progress(word, is_leech=word.id in leech_ids)
        for word in words
    }

    spaced = space_leeches(words, progress, rng=random.Random(5), min_gap=3)

    pattern = ["L" if word.id in leech_ids else "R" for word in spaced]
    assert pattern == ["R", "R", "L", "L", "L"]


def test_space_leeches_does_not_enforce_max_gap() -> None:
    """Test that a single leech waits for only the minimum gap, then regulars continue."""
    words = make_words(10)
    progress = {word.id: make_progress(word, is_leech=word.id == 1) for word in words}
    spaced = space_leeches(words, progress, rng=random.Random(11), min_gap=3)
    assert spaced[3].id == 1
    assert len(spaced) == 10


def test_space_leeches_shuffles_regular_words() -> None:
    """Test that different seeds give different orders."""
    words = make_words(12)
    orders = {tuple(ids(space_leeches(words, {}, rng=random.Random(seed)))) for seed in range(5)}
    assert len(orders) > 1


def test_calculate_metrics() -> None:
    """Test bucket counts for a mix of records."""
    words = make_words(10)
    records = [
        make_progress(words[0], interval=100, again_count=5, is_leech=True),
        make_progress(words[1], interval=0),
        make_progress(words[2], interval=6),
        make_progress(words[3], interval=7),
        make_progress(words[4], interval=21),
        make_progress(words[5], interval=60),
    ]

    metrics = calculate_metrics(records, total_deck_word_count=10)

    assert metrics == DeckMetrics(
        unseen=4, leeches=1, learning=2, strengthening=1, consolidating=1, mastered=1
    )
    assert metrics.total == 10


def test_calculate_metrics_sums_to_deck_size_when_all_seen() -> None:
    """Test that the buckets cover the deck once every word has a record."""
    words = make_words(6)
    records = [make_progress(word, interval=word.id * 12) for word in words]
    metrics = calculate_metrics(records, total_deck_word_count=6)
    assert metrics.unseen == 0
    assert metrics.total == 6


def test_calculate_metrics_unseen_floors_at_zero() -> None:
    """Test that inconsistent counts never give negative unseen words."""
    words = make_words(5)
    records = [make_progress(word) for word in words]
    metrics = calculate_metrics(records, total_deck_word_count=3)
    assert metrics.unseen == 0
    assert metrics.learning == 5


def test_calculate_metrics_empty_deck() -> None:
    """Test that a deck of ten unseen words reports only unseen."""
    assert calculate_metrics([], 10) == DeckMetrics(unseen=10)


@pytest.mark.parametrize(
    "category, interval, is_leech, expected",
    [
        (DeepDiveCategory.LEECHES, 100, True, True),
        (DeepDiveCategory.LEECHES, 3, False, False),
        (DeepDiveCategory.LEARNING, 3, False, True),
        (DeepDiveCategory.LEARNING, 3, True, False),
        (DeepDiveCategory.STRENGTHENING, 7, False, True),
        (DeepDiveCategory.STRENGTHENING, 21, False, False),
        (DeepDiveCategory.CONSOLIDATING, 59, False, True),
        (DeepDiveCategory.CONSOLIDATING, 60, False, False),
    ],
)
def test_matches_deep_dive_category(
    category: DeepDiveCategory, interval: int, is_leech: bool, expected: bool
) -> None:
    """Test that deep-dive categories mirror the buckets."""
    word = make_words(1)[0]
    progress = make_progress(word, interval=interval, is_leech=is_leech)
    assert matches_deep_dive_category(category, progress) is expected


@pytest.mark.parametrize("category", list(DeepDiveCategory))
def test_deep_dive_excludes_unseen(category: DeepDiveCategory) -> None:
    """Test that words without progress never match a category."""
    assert matches_deep_dive_category(category, None) is False


def test_filter_discovery_excludes_rated_words() -> None:
    """Test that a word rated once, even to learn, is not discovered again."""
    words = make_words(4)
    progress = {2: make_progress(words[1], interval=0)}
    assert ids(filter_discovery(words, progress)) == [1, 3, 4]


def test_select_review_session_due_words() -> None:
    """Test that a review session takes the due words."""
    words = make_words(5)
    progress = {
        1: make_progress(words[0], NOW - timedelta(days=1)),
        3: make_progress(words[2], NOW + timedelta(days=10), interval=10),
    }
    selected = select_session_words(SessionType.REVIEW, words, progress, NOW)
    assert ids(selected) == [1]


def test_select_review_session_falls_back_to_whole_deck() -> None:
    """Test that a review session with nothing due practices the whole deck."""
    words = make_words(3)
    progress = {1: make_progress(words[0], NOW + timedelta(days=10), interval=10)}
    selected = select_session_words(SessionType.REVIEW, words, progress, NOW)
    assert ids(selected) == [1, 2, 3]


def test_select_deep_dive_session() -> None:
    """Test deep-dive selection and the required category."""
    words = make_words(3)
    progress: Dict[int, UserProgress] = {
        1: make_progress(words[0], interval=10),
        2: make_progress(words[1], interval=2, is_leech=True),
    }
    selected = select_session_words(
        SessionType.DEEP_DIVE, words, progress, NOW, category=DeepDiveCategory.STRENGTHENING
    )
    assert ids(selected) == [1]

    with pytest.raises(ValueError):
        select_session_words(SessionType.DEEP_DIVE, words, progress, NOW)
