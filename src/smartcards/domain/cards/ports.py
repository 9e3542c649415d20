"""
Ports (interfaces) for the collaborators of a study session.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import Card, CardStats


class CardStatsStore(ABC):
    """
    Port for the remote deck/card store.

    Implementations:
        - InMemoryStatsStore: dict-backed, for tests and offline use.
        - RestStatsStore: PostgREST-style HTTP API.
    """

    @abstractmethod
    async def load_cards(self, deck_id: str) -> list[Card]:
        """
        Fetch every card of a deck, stats included.

        Args:
            deck_id: Identifier of the deck in the store.

        Returns:
            Cards in store order (oldest first).
        """
        pass

    @abstractmethod
    async def save_stats(self, card_id: str, stats: CardStats) -> None:
        """
        Persist updated stats for one card.

        Args:
            card_id: The card whose stats changed.
            stats: Snapshot of the card's stats after the answer.
        """
        pass

    @abstractmethod
    async def create_card(self, deck_id: str, card: Card) -> Card:
        """
        Store a new card in a deck.

        Args:
            deck_id: Target deck.
            card: Card content. Its id may be empty; the store assigns one.

        Returns:
            The stored card with its store-assigned id.
        """
        pass

    async def close(self) -> None:
        """Release connections. Stores without any keep the default."""
        return None


class ContentGenerator(ABC):
    """Port for the AI text-generation service."""

    @abstractmethod
    async def generate_cards(
        self,
        topic: str,
        count: int = 5,
        difficulty: str = "medium",
        deck_name: str | None = None,
        existing_questions: list[str] | None = None,
    ) -> list[Card]:
        """
        Generate new question/answer cards about a topic.

        Returned cards carry empty ids until a store assigns them.
        """
        pass

    @abstractmethod
    async def explain_card(self, question: str, answer: str) -> str:
        pass

    @abstractmethod
    async def ask(self, question: str, context: str | None = None) -> str:
        pass

    async def close(self) -> None:
        return None
