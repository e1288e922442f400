"""Queue construction and progress metrics for a deck.

Words are any objects with an ``id``; progress records are any objects with
the scheduling attributes of ``UserProgress``. Nothing here touches the
database, so queues and metrics can be rebuilt from whatever the caller has
loaded.
"""
import logging
import random
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from vocadeck.config import settings
from vocadeck.models.base import as_utc
from vocadeck.models.srs_models import (
    DEEP_DIVE_BUCKETS,
    Bucket,
    DeckMetrics,
    DeepDiveCategory,
    SchedulingState,
    SessionQueues,
    SessionType,
)
from vocadeck.services.scheduler import classify_bucket, is_due, is_near_future

logger = logging.getLogger(__name__)

METRIC_FIELDS = {
    Bucket.LEECH: "leeches",
    Bucket.LEARNING: "learning",
    Bucket.STRENGTHENING: "strengthening",
    Bucket.CONSOLIDATING: "consolidating",
    Bucket.MASTERED: "mastered",
}


def bucket_of(progress: Any) -> Bucket:
    """Bucket of a word given its progress record, or UNSEEN when there is none."""
    if progress is None:
        return Bucket.UNSEEN
    return classify_bucket(SchedulingState.from_record(progress))


def build_queues(
    deck_words: Sequence[Any],
    progress_by_word_id: Mapping[Any, Any],
    now: datetime,
    rng: Optional[random.Random] = None,
    horizon_days: Optional[int] = None,
    min_gap: Optional[int] = None,
) -> SessionQueues:
    """Partition deck words into unseen, review, near-future and practice queues.

    Deck order is kept in every queue except review, which goes through
    space_leeches.
    """
    unseen: List[Any] = []
    review: List[Any] = []
    practice: List[Any] = []
    near_future: List[Any] = []

    for word in deck_words:
        progress = progress_by_word_id.get(word.id)
        if progress is None:
            unseen.append(word)
            continue

        review_date = as_utc(progress.next_review_date)
        if is_due(review_date, now):
            review.append(word)
        elif is_near_future(review_date, now, horizon_days):
            near_future.append(word)
        else:
            practice.append(word)

    logger.debug(
        f"Partitioned {len(deck_words)} words: unseen={len(unseen)} review={len(review)} "
        f"near_future={len(near_future)} practice={len(practice)}"
    )

    return SessionQueues(
        unseen=unseen,
        review=space_leeches(review, progress_by_word_id, rng=rng, min_gap=min_gap),
        practice=practice,
        near_future=near_future,
    )


def space_leeches(
    review_words: Sequence[Any],
    progress_by_word_id: Mapping[Any, Any],
    rng: Optional[random.Random] = None,
    min_gap: Optional[int] = None,
) -> List[Any]:
    """Shuffle review words and spread leeches among regular words.

    A leech is placed once at least ``min_gap`` regular words have been placed
    since the previous one, or when regular words run out. There is no upper
    bound on the gap.
    """
    rng = rng or random.Random()
    if min_gap is None:
        min_gap = settings.queue.leech_min_gap

    leeches: List[Any] = []
    regular: List[Any] = []
    for word in review_words:
        if bucket_of(progress_by_word_id.get(word.id)) is Bucket.LEECH:
            leeches.append(word)
        else:
            regular.append(word)

    rng.shuffle(leeches)
    rng.shuffle(regular)

    spaced: List[Any] = []
    leech_index = 0
    regular_index = 0
    since_last_leech = 0

    while leech_index < len(leeches) or regular_index < len(regular):
        add_leech = leech_index < len(leeches) and (
            since_last_leech >= min_gap or regular_index >= len(regular)
        )
        if add_leech:
            spaced.append(leeches[leech_index])
            leech_index += 1
            since_last_leech = 0
        else:
            spaced.append(regular[regular_index])
            regular_index += 1
            since_last_leech += 1

    return spaced


def calculate_metrics(progress_records: Iterable[Any], total_deck_word_count: int) -> DeckMetrics:
    """Count words per bucket; unseen is what the progress records do not cover."""
    counts: Dict[str, int] = {name: 0 for name in METRIC_FIELDS.values()}
    seen = 0
    for progress in progress_records:
        counts[METRIC_FIELDS[bucket_of(progress)]] += 1
        seen += 1

    return DeckMetrics(unseen=max(0, total_deck_word_count - seen), **counts)


def matches_deep_dive_category(category: DeepDiveCategory, progress: Any) -> bool:
    """Whether a word belongs to a deep-dive category; unseen words never do."""
    if progress is None:
        return False
    return bucket_of(progress) is DEEP_DIVE_BUCKETS[category]


def filter_deep_dive(
    words: Sequence[Any],
    progress_by_word_id: Mapping[Any, Any],
    category: DeepDiveCategory,
) -> List[Any]:
    return [
        word for word in words
        if matches_deep_dive_category(category, progress_by_word_id.get(word.id))
    ]


def filter_discovery(words: Sequence[Any], progress_by_word_id: Mapping[Any, Any]) -> List[Any]:
    """Words the user has never rated in this deck."""
    return [word for word in words if word.id not in progress_by_word_id]


def select_session_words(
    session_type: SessionType,
    deck_words: Sequence[Any],
    progress_by_word_id: Mapping[Any, Any],
    now: datetime,
    category: Optional[DeepDiveCategory] = None,
    rng: Optional[random.Random] = None,
) -> List[Any]:
    """Words to study, in order, for a session of the given type.

    A review session with nothing due falls back to practicing the whole deck.
    """
    if session_type is SessionType.REVIEW:
        queues = build_queues(deck_words, progress_by_word_id, now, rng=rng)
        if queues.review:
            return queues.review
        logger.info("No words due for review, falling back to practice of the whole deck")
        return list(deck_words)

    if session_type is SessionType.DISCOVERY:
        return filter_discovery(deck_words, progress_by_word_id)

    if session_type is SessionType.DEEP_DIVE:
        if category is None:
            raise ValueError("A deep-dive session requires a category")
        return filter_deep_dive(deck_words, progress_by_word_id, category)

    raise ValueError(f"Unknown session type: {session_type!r}")
