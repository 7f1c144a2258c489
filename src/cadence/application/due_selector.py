"""
Due card selection for study sessions.

Builds the working set for one learner and one deck:
1. Cards without a progress record (unseen) are always due
2. Cards whose record's due date has passed are due
3. The due set is ordered by due date (drill) or shuffled (free study)
"""

import logging
import random
from collections.abc import Callable, Iterator, Sequence
from datetime import datetime
from enum import Enum
from itertools import islice

from cadence.domain.clock import as_utc, utc_now
from cadence.domain.progress.models import Card, ProgressRecord
from cadence.domain.progress.ports import CardCatalog, ProgressStore


logger = logging.getLogger(__name__)


class QueueOrder(str, Enum):
    """How the due set is ordered. Explicit per call, never inferred."""

    DUE_DATE = "due_date"  # SRS drill: unseen first, then oldest due date
    SHUFFLED = "shuffled"  # Free study: random order over the same set


class DueQueue(Sequence[Card]):
    """
    Finite, restartable sequence of due cards.

    Iterating twice yields the same cards in the same order.
    """

    def __init__(self, cards: Sequence[Card], limit: int | None = None):
        self._cards = tuple(cards)
        self._limit = limit

    def __iter__(self) -> Iterator[Card]:
        return islice(iter(self._cards), self._limit)

    def __len__(self) -> int:
        if self._limit is None:
            return len(self._cards)
        return min(self._limit, len(self._cards))

    def __getitem__(self, index):
        return self.cards[index]

    def __repr__(self) -> str:
        return f"DueQueue({[c.id for c in self]})"

    @property
    def cards(self) -> tuple[Card, ...]:
        return tuple(self)


def is_due(record: ProgressRecord | None, now: datetime) -> bool:
    """Time-based due-ness: unseen, or the due date has passed."""
    return record is None or record.due_date <= now


def order_due(cards: Sequence[Card], records: dict[int, ProgressRecord]) -> list[Card]:
    """
    Sort due cards for drilling: unseen first, then ascending due date.

    Ties keep the incoming (deck) order.
    """

    def key(card: Card) -> tuple[int, float]:
        record = records.get(card.id)
        if record is None:
            return (0, 0.0)
        return (1, record.due_date.timestamp())

    return sorted(cards, key=key)


def reshuffle(cards: Sequence[Card], rng: random.Random | None = None) -> DueQueue:
    """Return the same cards in a new random order. The input is not modified."""
    shuffled = list(cards)
    (rng or random.Random()).shuffle(shuffled)
    return DueQueue(shuffled)


class DueCardSelector:
    """Selects the cards of a deck a learner should study now."""

    def __init__(
        self,
        store: ProgressStore,
        catalog: CardCatalog,
        default_limit: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._catalog = catalog
        self._default_limit = default_limit
        self._clock = clock

    async def select_due(
        self,
        deck_id: int,
        user_id: int,
        limit: int | None = None,
        order: QueueOrder = QueueOrder.DUE_DATE,
        now: datetime | None = None,
        rng: random.Random | None = None,
    ) -> DueQueue:
        """
        Return the due cards of a deck for one learner.

        Args:
            deck_id: Deck to draw from.
            user_id: Learner whose progress decides due-ness.
            limit: Keep only the first `limit` cards after ordering.
            order: QueueOrder.DUE_DATE or QueueOrder.SHUFFLED.
            now: Reference time; defaults to the selector clock.
            rng: Random source for shuffled order.

        Returns:
            DueQueue of at most `limit` cards.
        """
        if limit is None:
            limit = self._default_limit
        if limit is not None and limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit}")

        now = as_utc(now or self._clock())
        cards = await self._catalog.get_cards_in_deck(deck_id)
        records = {r.card_id: r for r in await self._store.list_by_deck(deck_id, user_id)}

        due = [card for card in cards if is_due(records.get(card.id), now)]

        if order == QueueOrder.SHUFFLED:
            queue = DueQueue(reshuffle(due, rng).cards, limit)
        else:
            queue = DueQueue(order_due(due, records), limit)

        logger.debug(
            f"Due selection deck={deck_id} user={user_id}: "
            f"{len(due)}/{len(cards)} due, returning {len(queue)} ({order.value})"
        )
        return queue
