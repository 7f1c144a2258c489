"""
Domain models for derived progress statistics.

These are views recomputed from ProgressRecord and Card on every read;
they are never stored as the source of truth.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from cadence.domain.constants import DEFAULT_EASE_FACTOR
from cadence.domain.progress.models import GradeTally


def percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return part / whole * 100.0


@dataclass
class StudyDay:
    """Reviews whose latest update fell on one UTC calendar day."""

    day: date
    cards_studied: int
    performance: GradeTally

    @property
    def success_rate(self) -> float:
        if self.cards_studied == 0:
            return 0.0
        return self.performance.correct / self.cards_studied


@dataclass(frozen=True)
class CardProgress:
    """Per-card scheduling view. Unseen cards report the new-card defaults."""

    card_id: int
    interval: int = 0
    ease_factor: float = DEFAULT_EASE_FACTOR
    last_grade: int = 0
    due_date: datetime | None = None


@dataclass
class DeckStats:
    """
    Deck-level progress for one learner.

    Attributes:
        due_cards: Attempted but not yet mastered (grade-based, 0 < grade < 4).
        review_queue_size: Cards due for review right now (time-based, unseen included).
        new_cards: Cards without a progress record.
        grade_distribution: Tally of every record's last grade.
    """

    deck_id: int
    total_cards: int = 0
    mastered_cards: int = 0
    due_cards: int = 0
    review_queue_size: int = 0
    new_cards: int = 0
    last_studied: datetime | None = None
    grade_distribution: GradeTally = field(default_factory=GradeTally)
    study_history: list[StudyDay] = field(default_factory=list)
    card_progress: list[CardProgress] = field(default_factory=list)

    @property
    def mastery_percentage(self) -> float:
        return percentage(self.mastered_cards, self.total_cards)

    @property
    def due_percentage(self) -> float:
        return percentage(self.due_cards, self.total_cards)


@dataclass
class AccountStats:
    """
    Account-level progress across every deck a learner has studied.

    Attributes:
        total_cards: Cards the learner has a progress record for.
        cards_to_review: Records whose due date has passed (time-based).
        average_grade: Mean last grade, 0.0 without records.
    """

    user_id: int
    total_cards: int = 0
    mastered_cards: int = 0
    cards_to_review: int = 0
    average_grade: float = 0.0
    decks_studied: int = 0
    average_ease_factor: float = DEFAULT_EASE_FACTOR
    average_interval: float = 0.0
    last_studied: datetime | None = None
    recent_history: list[StudyDay] = field(default_factory=list)

    @property
    def mastery_percentage(self) -> float:
        return percentage(self.mastered_cards, self.total_cards)
