"""
Domain models for flashcards and their performance statistics.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

from smartcards.domain.constants import DEFAULT_TOPIC


def as_utc(ts: datetime | None) -> datetime | None:
    """Naive datetimes are taken as UTC; aware ones pass through."""
    if ts is not None and ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


class AnswerType(str, Enum):
    """How a card expects to be answered."""

    REVEAL = "reveal"
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT_INPUT = "text_input"


class SessionPhase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    FINISHED = "finished"


@dataclass
class CardStats:
    """
    Per-card performance record.

    Attributes:
        correct_count: Number of correct answers, never decreases outside reset().
        incorrect_count: Number of incorrect answers, never decreases outside reset().
        last_reviewed: Time of the most recent answer, None if never answered.
        streak: Signed run counter. Positive is a run of correct answers,
            negative a run of misses, zero means never reviewed or reset.
    """

    correct_count: int = 0
    incorrect_count: int = 0
    last_reviewed: datetime | None = None
    streak: int = 0

    def __post_init__(self):
        self.last_reviewed = as_utc(self.last_reviewed)

    @property
    def total_attempts(self) -> int:
        return self.correct_count + self.incorrect_count

    @property
    def accuracy(self) -> float:
        if self.total_attempts == 0:
            return 0.0
        return self.correct_count / self.total_attempts

    def record_outcome(self, correct: bool, now: datetime) -> None:
        """
        Apply one answer to the record.

        A correct answer after a losing run restarts the run at +1 rather than
        just flipping the sign; misses are symmetric.
        """
        if correct:
            self.correct_count += 1
            self.streak = self.streak + 1 if self.streak >= 0 else 1
        else:
            self.incorrect_count += 1
            self.streak = self.streak - 1 if self.streak <= 0 else -1
        self.last_reviewed = as_utc(now)

    def reset(self) -> None:
        self.correct_count = 0
        self.incorrect_count = 0
        self.last_reviewed = None
        self.streak = 0

    def copy(self) -> "CardStats":
        return replace(self)


@dataclass
class Card:
    """
    A flashcard. Identity is owned by the external store; question and
    answer are opaque to the scheduler.
    """

    id: str
    question: str
    answer: str
    topic: str = DEFAULT_TOPIC
    answer_type: AnswerType = AnswerType.REVEAL
    choices: list[str] = field(default_factory=list)
    stats: CardStats = field(default_factory=CardStats)

    def __post_init__(self):
        if not self.topic or not self.topic.strip():
            self.topic = DEFAULT_TOPIC
        self.answer_type = AnswerType(self.answer_type)

    def snapshot(self) -> "Card":
        """Independent copy, safe to hand out of the engine."""
        return replace(self, choices=list(self.choices), stats=self.stats.copy())


@dataclass(frozen=True)
class AnswerOutcome:
    """
    Event returned after an answer is recorded.

    Attributes:
        previous_card_id: The card that was just answered.
        was_correct: Whether the answer was correct.
        stats: Snapshot of the answered card's stats after the update.
        next_card: Snapshot of the newly selected card, None if nothing is left.
    """

    previous_card_id: str
    was_correct: bool
    stats: CardStats
    next_card: Card | None


@dataclass(frozen=True)
class ChatMessage:
    is_user: bool
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
