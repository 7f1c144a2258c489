"""
Review Service: Application layer orchestrator for a single review.

Validates the grade, checks the card, and pushes the read-modify-write of the
learner's progress record down to the store as one atomic upsert.
"""

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from cadence.domain.clock import as_utc, utc_now
from cadence.domain.constants import DEFAULT_EASE_FACTOR, LAPSE_THRESHOLD
from cadence.domain.errors import CardNotFound
from cadence.domain.progress.models import Card, ProgressRecord
from cadence.domain.progress.ports import CardCatalog, ProgressStore

from .scheduling import DEFAULT_POLICY, SchedulingPolicy, schedule, validate_grade

logger = logging.getLogger(__name__)


class ReviewService:
    """
    Records reviews against per-learner progress records.

    Card rows are never written; the store is touched exactly once per review.
    """

    def __init__(
        self,
        store: ProgressStore,
        catalog: CardCatalog,
        policy: SchedulingPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            store: The progress record store (port).
            catalog: Read-only card lookup (port).
            policy: Scheduling tunables; SM-2 defaults if not provided.
            clock: Source of `now` when the caller does not pass one.
        """
        self._store = store
        self._catalog = catalog
        self._policy = policy or DEFAULT_POLICY
        self._clock = clock

    async def record_review(
        self,
        user_id: int,
        card_id: int,
        grade: int,
        now: datetime | None = None,
    ) -> ProgressRecord:
        """
        Apply a grade to the learner's progress on a card.

        Passing the same `now` on a retry makes the call idempotent.

        Raises:
            InvalidGrade: grade outside 0-5 (before any read).
            CardNotFound: unknown card (nothing is written).
            StoreUnavailable: propagated from the store.
        """
        grade = validate_grade(grade)
        card = await self._require_card(card_id)
        reviewed_at = as_utc(now or self._clock())

        def apply(prior: ProgressRecord | None) -> ProgressRecord:
            result = schedule(grade, prior, reviewed_at, self._policy)
            lapsed = 1 if grade < LAPSE_THRESHOLD else 0
            if prior is None:
                return ProgressRecord(
                    user_id=user_id,
                    card_id=card.id,
                    deck_id=card.deck_id,
                    last_grade=grade,
                    interval=result.interval,
                    ease_factor=result.ease_factor,
                    due_date=result.due_date,
                    updated_at=reviewed_at,
                    review_count=1,
                    lapse_count=lapsed,
                    created_at=reviewed_at,
                )
            return replace(
                prior,
                last_grade=grade,
                interval=result.interval,
                ease_factor=result.ease_factor,
                due_date=result.due_date,
                updated_at=reviewed_at,
                review_count=prior.review_count + 1,
                lapse_count=prior.lapse_count + lapsed,
            )

        record = await self._store.upsert(user_id, card.id, apply)
        logger.info(
            f"Review user={user_id} card={card.id} grade={grade} -> "
            f"interval={record.interval} ease={record.ease_factor} due={record.due_date.isoformat()}"
        )
        return record

    async def reset_card(
        self,
        user_id: int,
        card_id: int,
        now: datetime | None = None,
    ) -> ProgressRecord | None:
        """
        Return a learner's card to the new-card schedule, due immediately.

        Only the interval, ease factor and due date change; the last grade and
        review time stay as they were, so history and mastery are unaffected.
        Returns None without writing if the learner never reviewed the card.
        """
        card = await self._require_card(card_id)
        if await self._store.get(user_id, card.id) is None:
            return None

        reset_at = as_utc(now or self._clock())

        def apply(prior: ProgressRecord | None) -> ProgressRecord:
            base = prior or ProgressRecord(
                user_id=user_id,
                card_id=card.id,
                deck_id=card.deck_id,
                last_grade=0,
                interval=0,
                ease_factor=DEFAULT_EASE_FACTOR,
                due_date=reset_at,
                updated_at=reset_at,
                created_at=reset_at,
            )
            return replace(base, interval=0, ease_factor=DEFAULT_EASE_FACTOR, due_date=reset_at)

        record = await self._store.upsert(user_id, card.id, apply)
        logger.info(f"Reset user={user_id} card={card.id}")
        return record

    async def get_progress(self, user_id: int, card_id: int) -> ProgressRecord | None:
        return await self._store.get(user_id, card_id)

    async def _require_card(self, card_id: int) -> Card:
        card = await self._catalog.get_card(card_id)
        if card is None:
            logger.warning(f"Review rejected: card {card_id} not found")
            raise CardNotFound(card_id)
        return card
