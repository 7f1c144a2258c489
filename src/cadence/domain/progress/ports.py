"""
Ports (interfaces) for card content and progress persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from .models import Card, ProgressRecord

# Computes the new record from the prior one (None on first review).
ProgressUpdate = Callable[[ProgressRecord | None], ProgressRecord]


class CardCatalog(ABC):
    """
    Read-only view of decks and cards.

    Implementations:
        - InMemoryCardCatalog: Dict-backed, optionally loaded from a YAML deck file.
    """

    @abstractmethod
    async def get_cards_in_deck(self, deck_id: int) -> list[Card]:
        """
        Return the cards of a deck in deck order.

        Unknown decks yield an empty list.
        """
        pass

    @abstractmethod
    async def get_card(self, card_id: int) -> Card | None:
        pass

    async def card_exists(self, card_id: int) -> bool:
        return await self.get_card(card_id) is not None

    async def get_deck_title(self, deck_id: int) -> str | None:
        """Display name of a deck, None if the catalog has none."""
        return None


class ProgressStore(ABC):
    """
    Port for per-(user, card) scheduling state.

    Implementations:
        - InMemoryProgressStore: Process-local dict guarded by a lock.
        - SqliteProgressStore: SQLite table keyed by (user_id, card_id).

    Adapters raise StoreUnavailable on transient I/O failures.
    """

    @abstractmethod
    async def get(self, user_id: int, card_id: int) -> ProgressRecord | None:
        pass

    @abstractmethod
    async def upsert(self, user_id: int, card_id: int, fn: ProgressUpdate) -> ProgressRecord:
        """
        Atomically apply `fn` to the current record and persist the result.

        The read of the prior state, the call to `fn` and the write must form a
        single unit: two concurrent upserts on the same key are serialized, so
        neither is computed from state the other has already replaced.

        Args:
            user_id: The learner.
            card_id: The card.
            fn: Pure function from the prior record (or None) to the new record.

        Returns:
            The persisted record.
        """
        pass

    @abstractmethod
    async def list_by_deck(self, deck_id: int, user_id: int) -> list[ProgressRecord]:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: int) -> list[ProgressRecord]:
        pass
