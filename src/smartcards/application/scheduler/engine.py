"""
Adaptive scheduler engine: stateful driver for one study session.

Tracks the card pool, the current card and the session tally, and picks
the next card by a weighted random draw after every answer:
1. Candidates are the pool minus the card just answered (full pool if that
   leaves nothing)
2. Each candidate is weighted by WeightPolicy
3. One uniform draw in [0, total_weight) walks the candidates in pool order

The engine is synchronous and not thread-safe. Hosts that share one engine
between threads must guard the whole instance with a single lock.
"""

import logging
import math
import random
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from smartcards.application.grading import grade_answer
from smartcards.domain.cards.models import AnswerOutcome, Card, SessionPhase, as_utc
from smartcards.domain.errors import EmptyPoolError, NoActiveCardError, NotActiveError

from .weights import WeightBreakdown, WeightPolicy

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SchedulerEngine:
    """
    Session state machine: IDLE -> ACTIVE -> FINISHED.

    The engine owns its pool. Cards are copied in on start_session and
    add_cards, and every accessor hands out snapshots.
    """

    def __init__(
        self,
        policy: WeightPolicy | None = None,
        rng: random.Random | None = None,
        seed: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            policy: Weight policy; uses default constants if not provided.
            rng: Random source for draws. Takes precedence over `seed`.
            seed: Seed for a private random.Random when no rng is given.
            clock: Returns the current time when an operation gets no `now`.
        """
        self._policy = policy or WeightPolicy()
        self._rng = rng if rng is not None else random.Random(seed)
        self._clock = clock or utcnow

        self._pool: list[Card] = []
        self._current_id: str | None = None
        self._phase = SessionPhase.IDLE
        self._session_correct = 0
        self._session_total = 0

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def policy(self) -> WeightPolicy:
        return self._policy

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def current_card_id(self) -> str | None:
        return self._current_id

    @property
    def current_card(self) -> Card | None:
        card = self._find(self._current_id)
        return card.snapshot() if card else None

    @property
    def pool(self) -> tuple[Card, ...]:
        return tuple(card.snapshot() for card in self._pool)

    @property
    def session_correct(self) -> int:
        return self._session_correct

    @property
    def session_total(self) -> int:
        return self._session_total

    @property
    def mastery_progress(self) -> float:
        """Correct answers over all attempts across the pool, 0 if none."""
        attempts = sum(card.stats.total_attempts for card in self._pool)
        if attempts == 0:
            return 0.0
        return sum(card.stats.correct_count for card in self._pool) / attempts

    @property
    def session_accuracy(self) -> float:
        if self._session_total == 0:
            return 0.0
        return self._session_correct / self._session_total

    def weights(self, now: datetime | None = None) -> list[WeightBreakdown]:
        """Factor breakdown for every card in the pool, in pool order."""
        now = self._now(now)
        return [self._policy.breakdown(card, now) for card in self._pool]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start_session(self, cards: Iterable[Card], now: datetime | None = None) -> Card | None:
        """
        Install `cards` as the pool and select the first card.

        Raises:
            EmptyPoolError: If `cards` is empty. The engine keeps its phase.
            ValueError: If two cards share an id.
        """
        pool = [card.snapshot() for card in cards]
        if not pool:
            raise EmptyPoolError("Cannot start a session without cards")
        self._check_unique_ids(pool)

        self._pool = pool
        self._session_correct = 0
        self._session_total = 0
        self._phase = SessionPhase.ACTIVE
        logger.info(f"Session started with {len(pool)} cards")

        return self._select_next(None, self._now(now))

    def record_answer(self, is_correct: bool, now: datetime | None = None) -> AnswerOutcome:
        """
        Record the outcome for the current card and move on to the next one.

        Raises:
            NotActiveError: If the session has ended.
            NoActiveCardError: If no card is being presented.
        """
        card = self._require_current_card()
        now = self._now(now)

        card.stats.record_outcome(is_correct, now)
        self._session_total += 1
        if is_correct:
            self._session_correct += 1

        logger.debug(
            f"Answer on {card.id}: correct={is_correct} streak={card.stats.streak} "
            f"session={self._session_correct}/{self._session_total}"
        )

        next_card = self._select_next(card.id, now)
        return AnswerOutcome(
            previous_card_id=card.id,
            was_correct=is_correct,
            stats=card.stats.copy(),
            next_card=next_card,
        )

    def submit_answer(self, text: str, now: datetime | None = None) -> AnswerOutcome:
        """Grade a typed answer against the current card, then record it."""
        card = self._require_current_card()
        return self.record_answer(grade_answer(text, card.answer), now)

    def skip(self, now: datetime | None = None) -> Card | None:
        """Move to another card without recording an answer."""
        self._require_active()
        return self._select_next(self._current_id, self._now(now))

    def select_next(self, exclude_id: str | None = None, now: datetime | None = None) -> Card | None:
        """
        Draw a new current card, avoiding `exclude_id` when possible.

        Raises:
            NotActiveError: Outside an active session.
        """
        self._require_active()
        return self._select_next(exclude_id, self._now(now))

    def end_session(self) -> None:
        """
        Freeze the session. The current card and counters stay readable.

        Raises:
            NotActiveError: If the session is not active.
        """
        self._require_active()
        self._phase = SessionPhase.FINISHED
        logger.info(
            f"Session ended: {self._session_correct}/{self._session_total} correct"
        )

    def restart(self, now: datetime | None = None) -> Card | None:
        """
        Wipe every card's stats and begin again on the same pool.

        This is irreversible: all historical performance held by the engine
        is discarded, not just the session tally.

        Raises:
            EmptyPoolError: If no pool was ever installed.
        """
        if not self._pool:
            raise EmptyPoolError("Cannot restart a session without cards")

        for card in self._pool:
            card.stats.reset()
        self._session_correct = 0
        self._session_total = 0
        self._phase = SessionPhase.ACTIVE
        logger.info(f"Session restarted; stats reset for {len(self._pool)} cards")

        return self._select_next(None, self._now(now))

    def add_cards(self, cards: Iterable[Card], now: datetime | None = None) -> list[Card]:
        """
        Append cards to the pool in any phase.

        Starts presenting one of them if the session is active with nothing
        on screen.

        Raises:
            ValueError: If an id is already in the pool or repeated.
        """
        added = [card.snapshot() for card in cards]
        self._check_unique_ids(self._pool + added)
        self._pool.extend(added)

        if added and self._phase == SessionPhase.ACTIVE and self._current_id is None:
            self._select_next(None, self._now(now))
        return [card.snapshot() for card in added]

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _select_next(self, exclude_id: str | None, now: datetime) -> Card | None:
        if not self._pool:
            self._current_id = None
            return None

        candidates = [card for card in self._pool if card.id != exclude_id] or self._pool
        chosen = self._weighted_choice(candidates, now)
        self._current_id = chosen.id
        logger.debug(f"Selected {chosen.id} from {len(candidates)} candidates")
        return chosen.snapshot()

    def _weighted_choice(self, candidates: list[Card], now: datetime) -> Card:
        weights = [self._policy.weight(card.stats, now) for card in candidates]
        total = sum(weights)
        if not (total > 0 and math.isfinite(total)):
            logger.warning(f"Degenerate total weight {total}; choosing uniformly")
            return self._rng.choice(candidates)

        target = self._rng.random() * total
        cumulative = 0.0
        for card, weight in zip(candidates, weights):
            cumulative += weight
            if cumulative >= target:
                return card

        # Float rounding can leave target a hair above the final sum.
        return candidates[-1]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _now(self, now: datetime | None) -> datetime:
        """Explicit `now` or the clock, naive values taken as UTC."""
        return as_utc(now or self._clock())

    def _find(self, card_id: str | None) -> Card | None:
        if card_id is None:
            return None
        for card in self._pool:
            if card.id == card_id:
                return card
        return None

    def _require_active(self) -> None:
        if self._phase != SessionPhase.ACTIVE:
            raise NotActiveError(f"Session is {self._phase.value}, not active")

    def _require_current_card(self) -> Card:
        if self._phase == SessionPhase.FINISHED:
            raise NotActiveError("Session has ended; restart or start a new session")
        card = self._find(self._current_id)
        if self._phase != SessionPhase.ACTIVE or card is None:
            raise NoActiveCardError("No card is being presented")
        return card

    @staticmethod
    def _check_unique_ids(cards: list[Card]) -> None:
        seen: set[str] = set()
        for card in cards:
            if card.id in seen:
                raise ValueError(f"Duplicate card id in pool: {card.id}")
            seen.add(card.id)
