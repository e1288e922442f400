"""Value objects and enums for scheduling and session queues."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Union


class Rating(Enum):
    """Ratings a user can give during a review session."""
    AGAIN = "again"  # Failed to recall
    HARD = "hard"  # Recalled with difficulty
    GOOD = "good"  # Recalled
    EASY = "easy"  # Recalled without effort


class DiscoveryRating(Enum):
    """Ratings a user can give when meeting a word for the first time."""
    LEARN = "learn"  # Word is new, start learning it
    KNOW = "know"  # Word is already known


class LeechAction(Enum):
    """Manual leech status changes, they do not advance the schedule."""
    LEECH = "leech"
    REMOVE_LEECH = "remove-leech"


class SessionType(Enum):
    """Kinds of study sessions."""
    REVIEW = "review"
    DISCOVERY = "discovery"
    DEEP_DIVE = "deep-dive"


class CardType(Enum):
    """How a word is asked: which side is shown and which is typed."""
    RECOGNITION = "recognition"  # French shown, English answer
    PRODUCTION = "production"  # English shown, French answer
    LISTENING = "listening"  # French heard, French answer


class DeepDiveCategory(Enum):
    """Progress categories that can be drilled in a deep-dive session."""
    LEECHES = "leeches"
    LEARNING = "learning"
    STRENGTHENING = "strengthening"
    CONSOLIDATING = "consolidating"


class Bucket(Enum):
    """Mutually exclusive progress classification of a word."""
    UNSEEN = "unseen"
    LEECH = "leech"
    LEARNING = "learning"
    STRENGTHENING = "strengthening"
    CONSOLIDATING = "consolidating"
    MASTERED = "mastered"


DEEP_DIVE_BUCKETS = {
    DeepDiveCategory.LEECHES: Bucket.LEECH,
    DeepDiveCategory.LEARNING: Bucket.LEARNING,
    DeepDiveCategory.STRENGTHENING: Bucket.STRENGTHENING,
    DeepDiveCategory.CONSOLIDATING: Bucket.CONSOLIDATING,
}


@dataclass(frozen=True)
class SchedulingState:
    """Scheduling fields of a progress record."""
    interval: int = 0
    ease_factor: float = 2.5
    repetitions: int = 0
    again_count: int = 0
    is_leech: bool = False

    @classmethod
    def from_record(cls, record: Any) -> "SchedulingState":
        """Build a state from anything with progress attributes (e.g. a UserProgress row)."""
        return cls(
            interval=record.interval,
            ease_factor=record.ease_factor,
            repetitions=record.repetitions,
            again_count=record.again_count,
            is_leech=bool(record.is_leech),
        )

    def evolve(self, **changes) -> "SchedulingState":
        return replace(self, **changes)


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of applying one rating to a word."""
    state: SchedulingState
    next_review_date: datetime
    removed_from_leech: bool = False
    became_leech: bool = False


@dataclass(frozen=True)
class SessionQueues:
    """Disjoint queues of deck words for one user."""
    unseen: List[Any] = field(default_factory=list)
    review: List[Any] = field(default_factory=list)
    practice: List[Any] = field(default_factory=list)
    near_future: List[Any] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.unseen) + len(self.review) + len(self.practice) + len(self.near_future)


@dataclass(frozen=True)
class DeckMetrics:
    """Word counts per progress bucket for one deck."""
    unseen: int = 0
    leeches: int = 0
    learning: int = 0
    strengthening: int = 0
    consolidating: int = 0
    mastered: int = 0

    @property
    def total(self) -> int:
        return (
            self.unseen
            + self.leeches
            + self.learning
            + self.strengthening
            + self.consolidating
            + self.mastered
        )


@dataclass
class SessionTally:
    """Running count of ratings given during a session."""
    total: int = 0
    again: int = 0
    hard: int = 0
    good: int = 0
    easy: int = 0
    learn: int = 0
    know: int = 0

    def record(self, rating: Union[Rating, DiscoveryRating]) -> None:
        """Count a Rating or DiscoveryRating."""
        if not isinstance(rating, (Rating, DiscoveryRating)):
            raise ValueError(f"Cannot count {rating!r} as a rating")
        name = rating.value
        setattr(self, name, getattr(self, name) + 1)
        self.total += 1

    @property
    def correct_answers(self) -> int:
        return self.good + self.easy + self.know


@dataclass(frozen=True)
class SessionStats:
    """Words studied over recent periods."""
    reviews_today: int = 0
    reviews_7_days: int = 0
    reviews_30_days: int = 0
    last_studied_at: Optional[datetime] = None
