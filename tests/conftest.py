from datetime import datetime, timedelta, timezone

import pytest

from smartcards.application.scheduler.engine import SchedulerEngine
from smartcards.domain.cards.models import Card, CardStats

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_card():
    """Factory for cards with stats; `minutes_ago` sets last_reviewed."""

    def _make(
        card_id: str,
        correct: int = 0,
        incorrect: int = 0,
        streak: int = 0,
        minutes_ago: float | None = None,
        question: str | None = None,
        answer: str = "answer",
    ) -> Card:
        last = NOW - timedelta(minutes=minutes_ago) if minutes_ago is not None else None
        return Card(
            id=card_id,
            question=question or f"Question {card_id}?",
            answer=answer,
            stats=CardStats(
                correct_count=correct,
                incorrect_count=incorrect,
                last_reviewed=last,
                streak=streak,
            ),
        )

    return _make


@pytest.fixture
def engine():
    """Seeded engine whose clock is frozen at NOW."""
    return SchedulerEngine(seed=1234, clock=lambda: NOW)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config files
    monkeypatch.setenv("HOME", str(home))
    return home
