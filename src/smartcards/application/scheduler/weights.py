"""
Selection weights for the adaptive scheduler.

This is a pure computation module with no I/O. A card's weight is the
product of five independent factors, floored so that no card ever drops
out of the draw by weight alone.
"""

from dataclasses import dataclass
from datetime import datetime

from smartcards.domain import constants as c
from smartcards.domain.cards.models import Card, CardStats, as_utc


@dataclass(frozen=True)
class WeightBreakdown:
    """
    Per-card factors behind a selection weight.
    """

    card_id: str
    difficulty: float
    recency: float
    novelty: float
    accuracy_boost: float
    streak_momentum: float
    weight: float  # product of the factors, after the floor

    @property
    def raw_weight(self) -> float:
        return (
            self.difficulty
            * self.recency
            * self.novelty
            * self.accuracy_boost
            * self.streak_momentum
        )


@dataclass(frozen=True)
class WeightPolicy:
    """
    Computes selection weights from CardStats.

    Stateless and side-effect free. The floor and the recency clamp are
    tunable through AppConfig.
    """

    weight_floor: float = c.WEIGHT_FLOOR
    recency_unseen: float = c.RECENCY_UNSEEN
    recency_min: float = c.RECENCY_MIN
    recency_max: float = c.RECENCY_MAX
    recency_per_minute: float = c.RECENCY_PER_MINUTE
    recency_offset: float = c.RECENCY_OFFSET
    novelty_boost: float = c.NOVELTY_BOOST

    def __post_init__(self):
        if self.weight_floor <= 0:
            raise ValueError("weight_floor must be positive")
        if self.recency_min > self.recency_max:
            raise ValueError("recency_min must not exceed recency_max")

    def weight(self, stats: CardStats, now: datetime) -> float:
        """
        Final selection weight for a card's stats at time `now`.
        """
        raw = (
            self.difficulty(stats)
            * self.recency(stats, now)
            * self.novelty(stats)
            * self.accuracy_boost(stats)
            * self.streak_momentum(stats)
        )
        return max(raw, self.weight_floor)

    def breakdown(self, card: Card, now: datetime) -> WeightBreakdown:
        stats = card.stats
        return WeightBreakdown(
            card_id=card.id,
            difficulty=self.difficulty(stats),
            recency=self.recency(stats, now),
            novelty=self.novelty(stats),
            accuracy_boost=self.accuracy_boost(stats),
            streak_momentum=self.streak_momentum(stats),
            weight=self.weight(stats, now),
        )

    def difficulty(self, stats: CardStats) -> float:
        """
        Historical error ratio, (misses + 1) / (hits + 1). Never zero.
        """
        return (stats.incorrect_count + 1) / (stats.correct_count + 1)

    def recency(self, stats: CardStats, now: datetime) -> float:
        """
        Suppresses cards seen a moment ago, favours cards left alone.

        Linear in minutes since the last review, clamped to
        [recency_min, recency_max]. Unreviewed cards get a fixed value.
        """
        if stats.last_reviewed is None:
            return self.recency_unseen

        now = as_utc(now)
        minutes = (now - stats.last_reviewed).total_seconds() / 60
        value = minutes * self.recency_per_minute + self.recency_offset
        return min(max(value, self.recency_min), self.recency_max)

    def novelty(self, stats: CardStats) -> float:
        return self.novelty_boost if stats.total_attempts == 0 else 1.0

    def accuracy_boost(self, stats: CardStats) -> float:
        if stats.total_attempts == 0:
            return 1.0
        if stats.accuracy < c.LOW_ACCURACY_THRESHOLD:
            return c.LOW_ACCURACY_BOOST
        if stats.accuracy < c.MID_ACCURACY_THRESHOLD:
            return c.MID_ACCURACY_BOOST
        return 1.0

    def streak_momentum(self, stats: CardStats) -> float:
        """
        Amplifies losing runs, dampens winning runs of two or more.
        """
        if stats.streak <= -c.STREAK_MIN_RUN:
            return 1.0 + abs(stats.streak) * c.LOSING_STREAK_STEP
        if stats.streak >= c.STREAK_MIN_RUN:
            return 1.0 / (1.0 + stats.streak * c.WINNING_STREAK_STEP)
        return 1.0
