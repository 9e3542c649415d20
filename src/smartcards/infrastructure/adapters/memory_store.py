"""
In-memory card store: dict-backed implementation of CardStatsStore.

Used for offline study from a deck file and as a test double.
"""

import logging

from ulid import ULID

from smartcards.domain.cards.models import Card, CardStats
from smartcards.domain.cards.ports import CardStatsStore
from smartcards.domain.errors import StoreError

logger = logging.getLogger(__name__)


def generate_card_id() -> str:
    """Generate a stable card ID using ULID."""
    return f"card_{ULID()}"


class InMemoryStatsStore(CardStatsStore):
    """
    Keeps decks as ordered lists of cards.

    Every save is also appended to `saved`, so callers can inspect the
    sequence of writes.
    """

    def __init__(self, decks: dict[str, list[Card]] | None = None):
        self._decks: dict[str, list[Card]] = {
            deck_id: [card.snapshot() for card in cards]
            for deck_id, cards in (decks or {}).items()
        }
        self.saved: list[tuple[str, CardStats]] = []

    async def load_cards(self, deck_id: str) -> list[Card]:
        return [card.snapshot() for card in self._decks.get(deck_id, [])]

    async def save_stats(self, card_id: str, stats: CardStats) -> None:
        card = self._find(card_id)
        if card is None:
            raise StoreError(f"Unknown card: {card_id}")
        card.stats = stats.copy()
        self.saved.append((card_id, stats.copy()))

    async def create_card(self, deck_id: str, card: Card) -> Card:
        stored = card.snapshot()
        if not stored.id:
            stored.id = generate_card_id()
        elif self._find(stored.id) is not None:
            raise StoreError(f"Card already exists: {stored.id}")
        self._decks.setdefault(deck_id, []).append(stored)
        logger.debug(f"Created card {stored.id} in deck {deck_id}")
        return stored.snapshot()

    def _find(self, card_id: str) -> Card | None:
        for cards in self._decks.values():
            for card in cards:
                if card.id == card_id:
                    return card
        return None
