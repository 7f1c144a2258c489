"""
SM-2 scheduling for a single review.

This is a pure computation module with no I/O. The current time is always
passed in so results are reproducible.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from cadence.domain.constants import (
    DEFAULT_EASE_FACTOR,
    DEFAULT_MAX_INTERVAL,
    EASE_BONUS,
    EASE_PENALTY,
    EASE_PRECISION,
    FIRST_INTERVAL,
    LAPSE_INTERVAL,
    LAPSE_THRESHOLD,
    MAX_GRADE,
    MIN_EASE_FACTOR,
    MIN_GRADE,
    SECOND_INTERVAL,
)
from cadence.domain.errors import InvalidGrade
from cadence.domain.progress.models import ProgressRecord


@dataclass(frozen=True)
class SchedulingPolicy:
    """
    Tunables that sit on top of the fixed SM-2 rules.

    Attributes:
        relearn_minutes: If set, a lapsed card is due again after this many
            minutes rather than a full day. The stored interval is still 1.
        max_interval_days: Upper bound for computed intervals.
    """

    relearn_minutes: int | None = None
    max_interval_days: int = DEFAULT_MAX_INTERVAL


DEFAULT_POLICY = SchedulingPolicy()


@dataclass(frozen=True)
class PriorState:
    interval: int = 0
    ease_factor: float = DEFAULT_EASE_FACTOR


@dataclass(frozen=True)
class ScheduleResult:
    interval: int
    ease_factor: float
    due_date: datetime


def validate_grade(grade: object) -> int:
    """Return the grade unchanged if it is an integer in 0-5, else raise InvalidGrade."""
    if isinstance(grade, bool) or not isinstance(grade, int):
        raise InvalidGrade(grade)
    if grade < MIN_GRADE or grade > MAX_GRADE:
        raise InvalidGrade(grade)
    return grade


def next_ease_factor(ease_factor: float, grade: int) -> float:
    if grade >= LAPSE_THRESHOLD:
        ease_factor = ease_factor + EASE_BONUS * (grade - LAPSE_THRESHOLD)
    else:
        ease_factor = ease_factor - EASE_PENALTY
    return round(max(MIN_EASE_FACTOR, ease_factor), EASE_PRECISION)


def next_interval(prior_interval: int, ease_factor: float, grade: int) -> int:
    """
    Interval in days after a review, given the already-updated ease factor.
    """
    if grade < LAPSE_THRESHOLD:
        return LAPSE_INTERVAL
    if prior_interval == 0:
        return FIRST_INTERVAL
    if prior_interval == 1:
        return SECOND_INTERVAL
    # Halves round up
    return int(math.floor(prior_interval * ease_factor + 0.5))


def schedule(
    grade: int,
    prior: PriorState | ProgressRecord | None,
    now: datetime,
    policy: SchedulingPolicy = DEFAULT_POLICY,
) -> ScheduleResult:
    """
    Compute the next schedule for a card.

    Args:
        grade: Recall quality, 0 (blackout) to 5 (perfect).
        prior: Previous interval and ease factor. None for a first review.
        now: Review time; the due date is computed from it.
        policy: Relearn step and interval cap.

    Returns:
        ScheduleResult with the new interval, ease factor and due date.

    Raises:
        InvalidGrade: If grade is not an integer in 0-5.
    """
    grade = validate_grade(grade)
    if prior is None:
        prior = PriorState()

    ease_factor = next_ease_factor(prior.ease_factor, grade)
    interval = min(next_interval(prior.interval, ease_factor, grade), policy.max_interval_days)

    if grade < LAPSE_THRESHOLD and policy.relearn_minutes is not None:
        due_date = now + timedelta(minutes=policy.relearn_minutes)
    else:
        due_date = now + timedelta(days=interval)

    return ScheduleResult(interval=interval, ease_factor=ease_factor, due_date=due_date)
