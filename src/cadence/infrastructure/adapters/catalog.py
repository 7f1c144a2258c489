"""
In-Memory Card Catalog: read-only deck and card lookup.

Cards can be supplied directly or loaded from a YAML deck file:

    decks:
      - id: 1
        title: Spanish basics
        cards:
          - {id: 10, front: hola, back: hello}
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from cadence.domain.progress.models import Card
from cadence.domain.progress.ports import CardCatalog

logger = logging.getLogger(__name__)


class InMemoryCardCatalog(CardCatalog):
    """Dict-backed catalog. Deck order is insertion order."""

    def __init__(self, cards: list[Card] | None = None, deck_titles: dict[int, str] | None = None):
        self._cards: dict[int, Card] = {}
        self._decks: dict[int, list[int]] = {}
        self.deck_titles = dict(deck_titles or {})
        for card in cards or []:
            self.add(card)

    def add(self, card: Card) -> None:
        if card.id in self._cards:
            raise ValueError(f"Duplicate card id {card.id}")
        self._cards[card.id] = card
        self._decks.setdefault(card.deck_id, []).append(card.id)

    async def get_cards_in_deck(self, deck_id: int) -> list[Card]:
        return [self._cards[cid] for cid in self._decks.get(deck_id, [])]

    async def get_card(self, card_id: int) -> Card | None:
        return self._cards.get(card_id)

    async def get_deck_title(self, deck_id: int) -> str | None:
        return self.deck_titles.get(deck_id)

    @classmethod
    def from_yaml(cls, path: Path) -> "InMemoryCardCatalog":
        """
        Load decks from a YAML file.

        Raises:
            ValueError: If the file is not a mapping with a `decks` list, or a
                card is missing its id.
        """
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict) or not isinstance(data.get("decks", []), list):
            raise ValueError(f"{path}: expected a mapping with a 'decks' list")

        catalog = cls()
        for deck in data.get("decks", []):
            deck_id = _require_int(deck, "id", path)
            if deck.get("title"):
                catalog.deck_titles[deck_id] = str(deck["title"])
            for raw in deck.get("cards") or []:
                catalog.add(
                    Card(
                        id=_require_int(raw, "id", path),
                        deck_id=deck_id,
                        front=str(raw.get("front", "")),
                        back=str(raw.get("back", "")),
                    )
                )

        logger.info(f"Loaded {len(catalog._cards)} cards in {len(catalog._decks)} decks from {path}")
        return catalog


def _require_int(entry: Any, key: str, path: Path) -> int:
    if not isinstance(entry, dict) or key not in entry:
        raise ValueError(f"{path}: entry without '{key}': {entry!r}")
    try:
        return int(entry[key])
    except (TypeError, ValueError):
        raise ValueError(f"{path}: '{key}' must be an integer, got {entry[key]!r}") from None
