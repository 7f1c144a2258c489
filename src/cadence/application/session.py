"""
In-memory tracking of one study sitting.

A SessionTracker belongs to exactly one learner and one session. It is never
persisted; on completion it hands a SessionSummary to the caller and is done.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from ulid import ULID

from cadence.domain.clock import as_utc, utc_now
from cadence.domain.constants import STREAK_THRESHOLD
from cadence.domain.errors import SessionCompleted
from cadence.domain.progress.models import GradeTally

from .scheduling import validate_grade

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SessionSnapshot:
    session_id: str
    state: SessionState
    started_at: datetime
    cards_reviewed: int
    correct_streak: int
    longest_streak: int
    grade_tally: GradeTally


@dataclass(frozen=True)
class SessionSummary:
    session_id: str
    started_at: datetime
    ended_at: datetime
    cards_reviewed: int
    longest_streak: int
    grade_tally: GradeTally

    @property
    def duration_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def accuracy(self) -> float:
        if self.cards_reviewed == 0:
            return 0.0
        return self.grade_tally.correct / self.cards_reviewed


@dataclass
class SessionTracker:
    """
    Streak and grade tally for a single study session.

    States: ACTIVE -> COMPLETED. Reviews are only accepted while ACTIVE; the
    tracker completes on `complete()` or once `queue_size` reviews are in.
    """

    queue_size: int | None = None
    clock: Callable[[], datetime] = field(default=utc_now, repr=False)
    started_at: datetime | None = None
    session_id: str = field(default_factory=lambda: str(ULID()))
    cards_reviewed: int = 0
    correct_streak: int = 0
    longest_streak: int = 0
    grade_tally: GradeTally = field(default_factory=GradeTally)
    state: SessionState = SessionState.ACTIVE
    _summary: SessionSummary | None = field(default=None, init=False, repr=False)

    def __post_init__(self):
        self.started_at = as_utc(self.started_at or self.clock())

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    def record(self, grade: int) -> SessionSnapshot:
        if not self.is_active:
            raise SessionCompleted(f"Session {self.session_id} has already completed")
        grade = validate_grade(grade)

        self.cards_reviewed += 1
        self.grade_tally.add(grade)
        if grade >= STREAK_THRESHOLD:
            self.correct_streak += 1
            self.longest_streak = max(self.longest_streak, self.correct_streak)
        else:
            self.correct_streak = 0

        if self.queue_size is not None and self.cards_reviewed >= self.queue_size:
            self.complete()
        return self.snapshot()

    def complete(self, now: datetime | None = None) -> SessionSummary:
        """End the session. Completing twice returns the first summary."""
        if self._summary is not None:
            return self._summary

        self.state = SessionState.COMPLETED
        self._summary = SessionSummary(
            session_id=self.session_id,
            started_at=self.started_at,
            ended_at=as_utc(now or self.clock()),
            cards_reviewed=self.cards_reviewed,
            longest_streak=self.longest_streak,
            grade_tally=replace(self.grade_tally),
        )
        logger.info(
            f"Session {self.session_id} completed: {self.cards_reviewed} cards, "
            f"longest streak {self.longest_streak}"
        )
        return self._summary

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            state=self.state,
            started_at=self.started_at,
            cards_reviewed=self.cards_reviewed,
            correct_streak=self.correct_streak,
            longest_streak=self.longest_streak,
            grade_tally=replace(self.grade_tally),
        )
