"""
Stats calculator for deriving progress views from raw records.

This is a pure computation module with no I/O.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timezone

from cadence.domain.constants import DEFAULT_EASE_FACTOR, DEFAULT_HISTORY_DAYS, MASTERY_THRESHOLD
from cadence.domain.progress.models import Card, GradeTally, ProgressRecord
from cadence.domain.stats.models import AccountStats, CardProgress, DeckStats, StudyDay

from ..due_selector import is_due


def is_mastered(record: ProgressRecord) -> bool:
    return record.last_grade >= MASTERY_THRESHOLD


def needs_practice(record: ProgressRecord) -> bool:
    """
    Grade-based: attempted but not yet mastered.

    Not to be confused with `is_due`, which compares the due date to now.
    """
    return 0 < record.last_grade < MASTERY_THRESHOLD


def _mean(values: Sequence[float], default: float = 0.0) -> float:
    if not values:
        return default
    return sum(values) / len(values)


class StatsCalculator:
    """
    Computes deck and account statistics from cards and progress records.

    Stateless and side-effect free.
    """

    def __init__(self, history_days: int = DEFAULT_HISTORY_DAYS):
        self.history_days = history_days

    def study_history(self, records: Iterable[ProgressRecord], days: int | None = None) -> list[StudyDay]:
        """
        Group records by the UTC calendar day of their last update.

        Each day carries the tally of the grades last recorded that day.
        Newest day first, at most `days` entries.
        """
        by_day: dict[date, GradeTally] = defaultdict(GradeTally)
        for record in records:
            by_day[record.updated_at.astimezone(timezone.utc).date()].add(record.last_grade)

        ordered = sorted(by_day.items(), key=lambda item: item[0], reverse=True)
        limit = self.history_days if days is None else days
        return [
            StudyDay(day=day, cards_studied=tally.total, performance=tally)
            for day, tally in ordered[:limit]
        ]

    def deck_stats(
        self,
        deck_id: int,
        cards: Sequence[Card],
        records: Iterable[ProgressRecord],
        now: datetime,
    ) -> DeckStats:
        by_card = {r.card_id: r for r in records}
        # Only records whose card still belongs to the deck count
        relevant = [by_card[c.id] for c in cards if c.id in by_card]

        stats = DeckStats(deck_id=deck_id, total_cards=len(cards))
        for card in cards:
            record = by_card.get(card.id)
            if is_due(record, now):
                stats.review_queue_size += 1
            if record is None:
                stats.new_cards += 1
                stats.card_progress.append(CardProgress(card_id=card.id))
                continue

            if is_mastered(record):
                stats.mastered_cards += 1
            if needs_practice(record):
                stats.due_cards += 1
            stats.grade_distribution.add(record.last_grade)
            stats.card_progress.append(
                CardProgress(
                    card_id=card.id,
                    interval=record.interval,
                    ease_factor=record.ease_factor,
                    last_grade=record.last_grade,
                    due_date=record.due_date,
                )
            )

        if relevant:
            stats.last_studied = max(r.updated_at for r in relevant)
        stats.study_history = self.study_history(relevant)
        return stats

    def account_stats(
        self,
        user_id: int,
        records: Sequence[ProgressRecord],
        now: datetime,
        recent_days: int,
    ) -> AccountStats:
        stats = AccountStats(user_id=user_id, total_cards=len(records))
        if not records:
            return stats

        stats.mastered_cards = sum(1 for r in records if is_mastered(r))
        stats.cards_to_review = sum(1 for r in records if is_due(r, now))
        stats.average_grade = _mean([r.last_grade for r in records])
        stats.average_ease_factor = _mean([r.ease_factor for r in records], DEFAULT_EASE_FACTOR)
        stats.average_interval = _mean([r.interval for r in records])
        stats.decks_studied = len({r.deck_id for r in records})
        stats.last_studied = max(r.updated_at for r in records)
        stats.recent_history = self.study_history(records, days=recent_days)
        return stats
