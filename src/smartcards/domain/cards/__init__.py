# Domain Cards Package
from .models import AnswerOutcome, AnswerType, Card, CardStats, ChatMessage, SessionPhase
from .ports import CardStatsStore, ContentGenerator

__all__ = [
    "AnswerOutcome",
    "AnswerType",
    "Card",
    "CardStats",
    "ChatMessage",
    "SessionPhase",
    "CardStatsStore",
    "ContentGenerator",
]
