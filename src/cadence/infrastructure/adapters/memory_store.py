"""
In-Memory Progress Store: Infrastructure adapter for tests and ephemeral runs.

Implements ProgressStore with a dict keyed by (user_id, card_id).
"""

import logging
import threading

from cadence.domain.progress.models import ProgressRecord
from cadence.domain.progress.ports import ProgressStore, ProgressUpdate

logger = logging.getLogger(__name__)


class InMemoryProgressStore(ProgressStore):
    """
    Process-local progress records.

    A single lock covers read -> fn -> write, so concurrent upserts of the same
    key are serialized. Nothing survives a restart.
    """

    def __init__(self, records: list[ProgressRecord] | None = None):
        self._records: dict[tuple[int, int], ProgressRecord] = {}
        self._lock = threading.Lock()
        for record in records or []:
            self._records[(record.user_id, record.card_id)] = record

    async def get(self, user_id: int, card_id: int) -> ProgressRecord | None:
        return self._records.get((user_id, card_id))

    async def upsert(self, user_id: int, card_id: int, fn: ProgressUpdate) -> ProgressRecord:
        key = (user_id, card_id)
        with self._lock:
            prior = self._records.get(key)
            record = fn(prior)
            if (record.user_id, record.card_id) != key:
                raise ValueError(
                    f"Update for {key} returned a record for {(record.user_id, record.card_id)}"
                )
            self._records[key] = record
        logger.debug(f"Upserted progress user={user_id} card={card_id} ({'update' if prior else 'insert'})")
        return record

    async def list_by_deck(self, deck_id: int, user_id: int) -> list[ProgressRecord]:
        return [
            r for (uid, _), r in sorted(self._records.items()) if uid == user_id and r.deck_id == deck_id
        ]

    async def list_by_user(self, user_id: int) -> list[ProgressRecord]:
        return [r for (uid, _), r in sorted(self._records.items()) if uid == user_id]
