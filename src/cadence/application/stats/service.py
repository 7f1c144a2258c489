"""
Progress Aggregator: Application layer orchestrator.

Coordinates reading cards and progress records from the ports and handing them
to the calculator. Results are recomputed on every call, never cached.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from cadence.domain.clock import as_utc, utc_now
from cadence.domain.constants import DEFAULT_RECENT_DAYS
from cadence.domain.progress.ports import CardCatalog, ProgressStore
from cadence.domain.stats.models import AccountStats, DeckStats

from .calculator import StatsCalculator

logger = logging.getLogger(__name__)


class ProgressAggregator:
    """
    Application service for deck and account progress.

    Follows Dependency Inversion: depends on the CardCatalog and ProgressStore
    abstractions, not concrete adapter implementations.
    """

    def __init__(
        self,
        store: ProgressStore,
        catalog: CardCatalog,
        calculator: StatsCalculator | None = None,
        recent_days: int = DEFAULT_RECENT_DAYS,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            store: The progress record store (port).
            catalog: Read-only card lookup (port).
            calculator: Optional custom calculator; uses default if not provided.
            recent_days: Study days reported in account stats.
            clock: Source of `now` for time-based due counts.
        """
        self._store = store
        self._catalog = catalog
        self._calc = calculator or StatsCalculator()
        self._recent_days = recent_days
        self._clock = clock

    async def deck_progress(self, deck_id: int, user_id: int, now: datetime | None = None) -> DeckStats:
        """
        Mastery, due counts, history and per-card progress of one deck.

        An empty or unknown deck yields all-zero stats.
        """
        cards = await self._catalog.get_cards_in_deck(deck_id)
        records = await self._store.list_by_deck(deck_id, user_id)
        stats = self._calc.deck_stats(deck_id, cards, records, as_utc(now or self._clock()))
        logger.debug(
            f"Deck progress deck={deck_id} user={user_id}: "
            f"{stats.mastered_cards}/{stats.total_cards} mastered"
        )
        return stats

    async def account_progress(self, user_id: int, now: datetime | None = None) -> AccountStats:
        records = await self._store.list_by_user(user_id)
        now = as_utc(now or self._clock())
        return self._calc.account_stats(user_id, records, now, self._recent_days)

    async def list_deck_progress(self, user_id: int, now: datetime | None = None) -> list[DeckStats]:
        """
        Summaries for every deck the learner has progress in, ordered by deck id.
        """
        now = as_utc(now or self._clock())
        records = await self._store.list_by_user(user_id)
        deck_ids = sorted({r.deck_id for r in records})

        summaries = []
        for deck_id in deck_ids:
            cards = await self._catalog.get_cards_in_deck(deck_id)
            deck_records = [r for r in records if r.deck_id == deck_id]
            summaries.append(self._calc.deck_stats(deck_id, cards, deck_records, now))
        return summaries
