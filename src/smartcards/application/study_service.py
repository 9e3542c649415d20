"""
Study Session Service: Application layer orchestrator.

Coordinates the scheduler engine with the card store and the content
generator. Stats are saved after every answer without waiting for the
store: a failed save is logged and never blocks or fails the session.
"""

import asyncio
import logging
from datetime import datetime

from smartcards.application.scheduler.engine import SchedulerEngine
from smartcards.domain.cards.models import AnswerOutcome, Card, CardStats, ChatMessage
from smartcards.domain.cards.ports import CardStatsStore, ContentGenerator
from smartcards.domain.errors import (
    ContentGenerationError,
    NoActiveCardError,
    NotActiveError,
    StoreError,
)

logger = logging.getLogger(__name__)


class StudySessionService:
    """
    Application service for running a study session against a deck.

    Follows Dependency Inversion: depends on the CardStatsStore and
    ContentGenerator abstractions, not concrete adapters.
    """

    def __init__(
        self,
        engine: SchedulerEngine,
        store: CardStatsStore,
        generator: ContentGenerator | None = None,
    ):
        """
        Args:
            engine: Scheduler that owns the session state.
            store: The repository (port) for loading cards and saving stats.
            generator: Optional AI port; generation and helper calls fail without it.
        """
        self.engine = engine
        self._store = store
        self._generator = generator
        self._pending: set[asyncio.Task] = set()

        self.deck_id: str | None = None
        self.deck_name: str | None = None
        self.chat_history: list[ChatMessage] = []
        self.last_error: str | None = None

    async def start(self, deck_id: str, deck_name: str | None = None) -> Card | None:
        """
        Load a deck from the store and start a session on it.

        Raises:
            EmptyPoolError: If the deck has no cards.
            StoreError: If the store cannot be reached.
        """
        cards = await self._store.load_cards(deck_id)
        first = self.engine.start_session(cards)
        self.deck_id = deck_id
        self.deck_name = deck_name
        self.chat_history = []
        return first

    async def answer(self, is_correct: bool, now: datetime | None = None) -> AnswerOutcome:
        outcome = self.engine.record_answer(is_correct, now)
        self._schedule_save(outcome)
        return outcome

    async def submit(self, text: str, now: datetime | None = None) -> AnswerOutcome:
        outcome = self.engine.submit_answer(text, now)
        self._schedule_save(outcome)
        return outcome

    async def drain(self) -> None:
        """Wait for every in-flight stats save to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending_saves(self) -> int:
        return len(self._pending)

    async def close(self) -> None:
        """Finish pending saves, then close the store and generator."""
        await self.drain()
        try:
            await self._store.close()
        finally:
            if self._generator is not None:
                await self._generator.close()

    # ------------------------------------------------------------------
    # Content generation
    # ------------------------------------------------------------------

    async def generate_cards(
        self,
        topic: str,
        count: int = 5,
        difficulty: str = "medium",
    ) -> list[Card]:
        """
        Generate cards with the AI port, store them, and add them to the pool.

        Cards created before a failure stay in the store and the pool.

        Raises:
            ContentGenerationError: Without a generator, or if generation fails.
            StoreError: If a card cannot be stored.
        """
        generator = self._require_generator()
        if self.deck_id is None:
            raise NotActiveError("Start a session before generating cards")

        existing = [card.question for card in self.engine.pool]
        generated = await generator.generate_cards(
            topic,
            count=count,
            difficulty=difficulty,
            deck_name=self.deck_name,
            existing_questions=existing,
        )

        created: list[Card] = []
        for card in generated:
            stored = await self._store.create_card(self.deck_id, card)
            created.extend(self.engine.add_cards([stored]))
        logger.info(f"Added {len(created)} generated cards to deck {self.deck_id}")
        return created

    async def explain_current(self) -> str:
        card = self.engine.current_card
        if card is None:
            raise NoActiveCardError("No card is being presented")
        return await self._require_generator().explain_card(card.question, card.answer)

    async def ask(self, question: str) -> str:
        """Ask the study helper a free-form question; kept in chat_history."""
        generator = self._require_generator()
        self.chat_history.append(ChatMessage(is_user=True, content=question))

        response = await generator.ask(question, context=self.helper_context())
        self.chat_history.append(ChatMessage(is_user=False, content=response))
        return response

    def helper_context(self) -> str | None:
        parts = []
        if self.deck_name:
            parts.append(f"Deck: {self.deck_name}")
        card = self.engine.current_card
        if card is not None:
            parts.append(f"Current flashcard - Question: {card.question}, Answer: {card.answer}")
        return ". ".join(parts) if parts else None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_generator(self) -> ContentGenerator:
        if self._generator is None:
            raise ContentGenerationError("No content generator configured")
        return self._generator

    def _schedule_save(self, outcome: AnswerOutcome) -> None:
        task = asyncio.create_task(self._save(outcome.previous_card_id, outcome.stats))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _save(self, card_id: str, stats: CardStats) -> None:
        try:
            await self._store.save_stats(card_id, stats)
        except StoreError as e:
            self.last_error = f"Failed to save card stats: {e}"
            logger.warning(f"Failed to save stats for {card_id}: {e}", exc_info=True)
