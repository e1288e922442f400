"""Spaced repetition scheduling rules.

Everything in this module is a pure function of its arguments: no database
access, no clock reads. Callers pass ``now`` explicitly.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Optional, Sequence, Union

from vocadeck.config import SRSSettings, settings
from vocadeck.models.srs_models import (
    Bucket,
    DiscoveryRating,
    LeechAction,
    Rating,
    ReviewOutcome,
    SchedulingState,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def initial_state(srs: Optional[SRSSettings] = None) -> SchedulingState:
    """State of a word that has never been rated."""
    srs = srs or settings.srs
    return SchedulingState(interval=0, ease_factor=srs.ease_factor_default, repetitions=0)


def compute_next_state(
    current: Optional[SchedulingState],
    rating: Rating,
    srs: Optional[SRSSettings] = None,
) -> SchedulingState:
    """Apply a review rating to a scheduling state.

    again: interval resets, ease drops (floored), repetitions reset, failure counted.
    hard:  interval shrinks but stays >= 1, ease drops (floored).
    good:  interval grows by the ease factor.
    easy:  interval grows by ease factor and easy bonus, ease rises.

    A leech flag is raised when an "again" takes the failure tally to the
    leech threshold. It is never cleared here, see should_remove_from_leech.
    """
    srs = srs or settings.srs
    current = current or initial_state(srs)
    interval = current.interval
    ease = current.ease_factor

    if rating is Rating.AGAIN:
        again_count = current.again_count + 1
        return current.evolve(
            interval=srs.again_interval,
            ease_factor=max(srs.min_ease_factor, ease - srs.again_ease_penalty),
            repetitions=0,
            again_count=again_count,
            is_leech=current.is_leech or again_count >= srs.leech_threshold,
        )

    if rating is Rating.HARD:
        return current.evolve(
            interval=max(1, math.floor(interval * srs.hard_interval_factor)),
            ease_factor=max(srs.min_ease_factor, ease - srs.hard_ease_penalty),
        )

    if rating is Rating.GOOD:
        new_interval = math.floor(interval * ease)
        new_ease = ease
    elif rating is Rating.EASY:
        new_interval = math.floor(interval * ease * srs.easy_bonus)
        new_ease = ease + srs.easy_ease_bonus
    else:
        raise ValueError(f"Unknown review rating: {rating!r}")

    if new_interval == 0 and srs.apply_new_word_interval:
        new_interval = srs.new_word_interval

    return current.evolve(
        interval=new_interval,
        ease_factor=new_ease,
        repetitions=current.repetitions + 1,
    )


def apply_discovery_rating(
    current: Optional[SchedulingState],
    rating: DiscoveryRating,
    srs: Optional[SRSSettings] = None,
) -> SchedulingState:
    """Initialize the schedule of a word met in a discovery session."""
    srs = srs or settings.srs
    current = current or initial_state(srs)
    if rating is DiscoveryRating.KNOW:
        return current.evolve(
            interval=srs.mastered_interval,
            ease_factor=srs.ease_factor_default,
            repetitions=1,
        )
    if rating is DiscoveryRating.LEARN:
        return current.evolve(
            interval=0,
            ease_factor=srs.ease_factor_default,
            repetitions=0,
        )
    raise ValueError(f"Unknown discovery rating: {rating!r}")


def apply_leech_action(current: Optional[SchedulingState], action: LeechAction) -> SchedulingState:
    """Set or clear the leech flag without touching the schedule."""
    current = current or initial_state()
    return current.evolve(is_leech=action is LeechAction.LEECH)


def next_review_date(interval: int, now: datetime) -> datetime:
    """Date at which a word with the given interval becomes due."""
    if interval > 0:
        return now + timedelta(days=interval)
    return now


def classify_bucket(state: SchedulingState, srs: Optional[SRSSettings] = None) -> Bucket:
    """Classify a rated word; leech takes precedence over interval buckets."""
    srs = srs or settings.srs
    if state.is_leech:
        return Bucket.LEECH
    if state.interval < srs.learning_max_interval:
        return Bucket.LEARNING
    if state.interval < srs.strengthening_max_interval:
        return Bucket.STRENGTHENING
    if state.interval < srs.consolidating_max_interval:
        return Bucket.CONSOLIDATING
    return Bucket.MASTERED


def is_due(review_date: datetime, now: datetime) -> bool:
    return review_date <= now


def days_until_review(review_date: datetime, now: datetime) -> int:
    """Whole days until the review date, rounded up."""
    return math.ceil((review_date - now).total_seconds() / SECONDS_PER_DAY)


def is_near_future(review_date: datetime, now: datetime, horizon_days: Optional[int] = None) -> bool:
    """True when the word is not due yet but will be within the horizon."""
    if horizon_days is None:
        horizon_days = settings.queue.near_future_threshold
    days = days_until_review(review_date, now)
    return 0 < days <= horizon_days


RatingLike = Union[Rating, DiscoveryRating, str]


def _rating_value(rating: RatingLike) -> str:
    return rating if isinstance(rating, str) else rating.value


def should_remove_from_leech(
    state: SchedulingState,
    rating: Rating,
    recent_ratings: Sequence[RatingLike],
    srs: Optional[SRSSettings] = None,
) -> bool:
    """Check whether a leech has earned its way out.

    ``recent_ratings`` are the prior ratings of the word, newest first, not
    including ``rating``. A leech is released when the last
    ``leech_removal_streak`` prior ratings were all "easy" and the current
    rating is not a failure.
    """
    srs = srs or settings.srs
    if not state.is_leech or rating is Rating.AGAIN:
        return False
    streak = srs.leech_removal_streak
    if len(recent_ratings) < streak:
        return False
    return all(_rating_value(r) == Rating.EASY.value for r in recent_ratings[:streak])


def review_word(
    current: Optional[SchedulingState],
    rating: Rating,
    recent_ratings: Sequence[RatingLike],
    now: datetime,
    srs: Optional[SRSSettings] = None,
) -> ReviewOutcome:
    """Full update for one review rating: schedule, leech flag and due date."""
    srs = srs or settings.srs
    current = current or initial_state(srs)
    state = compute_next_state(current, rating, srs)

    removed = should_remove_from_leech(current, rating, recent_ratings, srs)
    if removed:
        logger.info(f"Leech released after {srs.leech_removal_streak} consecutive easy ratings")
        state = state.evolve(is_leech=False)

    return ReviewOutcome(
        state=state,
        next_review_date=next_review_date(state.interval, now),
        removed_from_leech=removed,
        became_leech=state.is_leech and not current.is_leech,
    )
