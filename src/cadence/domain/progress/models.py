"""
Domain models for per-learner card progress.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum


@dataclass(frozen=True)
class Card:
    """
    Read-only card content, owned by the deck collaborator.

    The engine never mutates a Card; scheduling state lives in ProgressRecord.
    """

    id: int
    deck_id: int
    front: str
    back: str


@dataclass(frozen=True)
class ProgressRecord:
    """
    Scheduling state for one (user, card) pair.

    Attributes:
        last_grade: Most recent grade (0-5).
        interval: Days until the next scheduled review.
        ease_factor: SM-2 multiplier, never below MIN_EASE_FACTOR.
        due_date: When the card is due again (UTC).
        updated_at: Time of the last review, used for history bucketing.
        deck_id: Copied from the immutable Card so deck scans need no join.
        review_count: Total reviews recorded.
        lapse_count: Reviews graded below the lapse threshold.
        created_at: Time of the first review.
    """

    user_id: int
    card_id: int
    deck_id: int
    last_grade: int
    interval: int
    ease_factor: float
    due_date: datetime
    updated_at: datetime
    review_count: int = 0
    lapse_count: int = 0
    created_at: datetime | None = None


class ReviewButton(IntEnum):
    """
    The four-button study UI, mapped onto the 0-5 grade scale.

    This is a presentation mapping only; scheduling always sees the grade.
    """

    AGAIN = 1
    HARD = 2
    GOOD = 4
    EASY = 5

    @classmethod
    def parse(cls, name: str) -> "ReviewButton":
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(
                f"Unknown button {name!r}; expected one of {', '.join(b.name.lower() for b in cls)}"
            ) from None


def bucket_for_grade(grade: int) -> str:
    """Map a 0-5 grade onto the four tally buckets."""
    if grade >= 5:
        return "easy"
    if grade == 4:
        return "good"
    if grade >= 2:
        return "hard"
    return "again"


@dataclass
class GradeTally:
    """Count of reviews per button bucket."""

    easy: int = 0
    good: int = 0
    hard: int = 0
    again: int = 0

    def add(self, grade: int) -> None:
        bucket = bucket_for_grade(grade)
        setattr(self, bucket, getattr(self, bucket) + 1)

    @property
    def total(self) -> int:
        return self.easy + self.good + self.hard + self.again

    @property
    def correct(self) -> int:
        return self.easy + self.good
