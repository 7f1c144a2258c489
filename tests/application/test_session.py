from datetime import timedelta

import pytest

from cadence.application.session import SessionState, SessionTracker
from cadence.domain.errors import InvalidGrade, SessionCompleted


@pytest.fixture
def tracker(now):
    return SessionTracker(clock=lambda: now)


def test_new_session_is_active(tracker, now):
    assert tracker.is_active
    assert tracker.started_at == now
    assert tracker.cards_reviewed == 0
    assert len(tracker.session_id) == 26


def test_session_ids_are_unique(now):
    assert SessionTracker(clock=lambda: now).session_id != SessionTracker(clock=lambda: now).session_id


def test_streak_counts_good_and_easy(tracker):
    for grade in (4, 5, 5, 2, 4):
        snapshot = tracker.record(grade)

    assert snapshot.cards_reviewed == 5
    assert snapshot.correct_streak == 1
    assert snapshot.longest_streak == 3


def test_grade_three_breaks_streak(tracker):
    tracker.record(5)
    tracker.record(3)
    assert tracker.correct_streak == 0
    assert tracker.longest_streak == 1


def test_grade_tally_buckets(tracker):
    for grade in (5, 4, 3, 2, 1, 0):
        tracker.record(grade)

    tally = tracker.grade_tally
    assert (tally.easy, tally.good, tally.hard, tally.again) == (1, 1, 2, 2)
    assert tally.total == 6


def test_invalid_grade_leaves_counters_alone(tracker):
    with pytest.raises(InvalidGrade):
        tracker.record(9)
    assert tracker.cards_reviewed == 0


def test_completes_at_queue_size(now):
    tracker = SessionTracker(queue_size=2, clock=lambda: now)

    assert tracker.record(4).state == SessionState.ACTIVE
    assert tracker.record(4).state == SessionState.COMPLETED

    with pytest.raises(SessionCompleted):
        tracker.record(4)
    assert tracker.cards_reviewed == 2


def test_complete_returns_summary(tracker, now):
    tracker.record(5)
    tracker.record(1)

    summary = tracker.complete(now + timedelta(minutes=2))

    assert summary.session_id == tracker.session_id
    assert summary.cards_reviewed == 2
    assert summary.longest_streak == 1
    assert summary.duration_seconds == 120
    assert summary.accuracy == 0.5
    assert tracker.state == SessionState.COMPLETED


def test_complete_is_idempotent(tracker, now):
    first = tracker.complete(now)
    second = tracker.complete(now + timedelta(hours=1))
    assert first is second


def test_summary_is_detached_from_tracker(tracker, now):
    tracker.record(5)
    snapshot = tracker.snapshot()
    summary = tracker.complete(now)

    tracker.grade_tally.add(0)

    assert snapshot.grade_tally.again == 0
    assert summary.grade_tally.again == 0


def test_empty_session_accuracy(tracker, now):
    assert tracker.complete(now).accuracy == 0.0
