"""
Study session orchestration.

Ties the due queue, the review service and the session tracker together for
one learner working through one deck.
"""

import logging
import random
from datetime import datetime

from cadence.domain.errors import SessionCompleted
from cadence.domain.progress.models import Card, ProgressRecord

from .due_selector import DueCardSelector, DueQueue, QueueOrder
from .review_service import ReviewService
from .session import SessionSnapshot, SessionSummary, SessionTracker

logger = logging.getLogger(__name__)


class StudySession:
    """
    Serves due cards one at a time and records each answer.

    Use `start()` to build the working set, then alternate `current_card`
    and `answer(grade)` until `current_card` is None. The session completes
    itself when the queue is exhausted; `end()` stops it early.
    """

    def __init__(
        self,
        review_service: ReviewService,
        selector: DueCardSelector,
        deck_id: int,
        user_id: int,
        order: QueueOrder = QueueOrder.DUE_DATE,
        limit: int | None = None,
        rng: random.Random | None = None,
    ):
        self._reviews = review_service
        self._selector = selector
        self.deck_id = deck_id
        self.user_id = user_id
        self.order = order
        self.limit = limit
        self._rng = rng
        self._queue: DueQueue | None = None
        self._position = 0
        self.tracker: SessionTracker | None = None

    async def start(self, now: datetime | None = None) -> DueQueue:
        self._queue = await self._selector.select_due(
            self.deck_id,
            self.user_id,
            limit=self.limit,
            order=self.order,
            now=now,
            rng=self._rng,
        )
        self._position = 0
        kwargs = {"queue_size": len(self._queue)}
        if now is not None:
            kwargs["started_at"] = now
        self.tracker = SessionTracker(**kwargs)
        if not self._queue:
            self.tracker.complete(now)
        logger.info(
            f"Study session {self.tracker.session_id} deck={self.deck_id} "
            f"user={self.user_id}: {len(self._queue)} cards"
        )
        return self._queue

    @property
    def current_card(self) -> Card | None:
        if self._queue is None or self._position >= len(self._queue):
            return None
        return self._queue[self._position]

    @property
    def remaining(self) -> int:
        if self._queue is None:
            return 0
        return len(self._queue) - self._position

    async def answer(self, grade: int, now: datetime | None = None) -> ProgressRecord:
        """Record a grade for the current card and advance."""
        card = self.current_card
        if card is None or self.tracker is None or not self.tracker.is_active:
            raise SessionCompleted("No card left to answer in this session")

        record = await self._reviews.record_review(self.user_id, card.id, grade, now=now)
        self._position += 1
        self.tracker.record(grade)
        return record

    def snapshot(self) -> SessionSnapshot | None:
        return self.tracker.snapshot() if self.tracker else None

    def end(self, now: datetime | None = None) -> SessionSummary:
        if self.tracker is None:
            raise SessionCompleted("Session was never started")
        return self.tracker.complete(now)
