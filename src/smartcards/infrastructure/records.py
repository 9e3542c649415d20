"""Mapping between store/file records and domain cards."""

from datetime import datetime
from typing import Any

from smartcards.domain.cards.models import AnswerType, Card, CardStats, as_utc

# Labels used by the hosted store alongside the enum values
_ANSWER_TYPE_LABELS = {
    "reveal": AnswerType.REVEAL,
    "multiple choice": AnswerType.MULTIPLE_CHOICE,
    "multiple_choice": AnswerType.MULTIPLE_CHOICE,
    "text input": AnswerType.TEXT_INPUT,
    "text_input": AnswerType.TEXT_INPUT,
}


def parse_answer_type(value: Any) -> AnswerType:
    """Unknown or missing values fall back to reveal."""
    if isinstance(value, AnswerType):
        return value
    if not value:
        return AnswerType.REVEAL
    return _ANSWER_TYPE_LABELS.get(str(value).strip().lower(), AnswerType.REVEAL)


def parse_timestamp(value: Any) -> datetime | None:
    """
    Accepts datetimes or ISO 8601 strings. Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        ts = datetime.fromisoformat(text)
    return as_utc(ts)


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def stats_from_record(record: dict[str, Any]) -> CardStats:
    return CardStats(
        correct_count=int(record.get("correct_count") or 0),
        incorrect_count=int(record.get("incorrect_count") or 0),
        last_reviewed=parse_timestamp(record.get("last_reviewed")),
        streak=int(record.get("streak") or 0),
    )


def stats_to_record(stats: CardStats) -> dict[str, Any]:
    return {
        "correct_count": stats.correct_count,
        "incorrect_count": stats.incorrect_count,
        "streak": stats.streak,
        "last_reviewed": format_timestamp(stats.last_reviewed),
    }


def card_from_record(record: dict[str, Any]) -> Card:
    """
    Build a Card from a flat store row (stats columns inline) or a mapping
    with a nested `stats` block.

    Raises:
        KeyError: If `id`, `question` or `answer` is missing.
    """
    stats_source = record.get("stats")
    if not isinstance(stats_source, dict):
        stats_source = record
    return Card(
        id=str(record["id"]),
        question=str(record["question"]),
        answer=str(record["answer"]),
        topic=str(record.get("topic") or ""),
        answer_type=parse_answer_type(record.get("answer_type")),
        choices=[str(choice) for choice in record.get("choices") or []],
        stats=stats_from_record(stats_source),
    )


def card_to_record(card: Card) -> dict[str, Any]:
    return {
        "id": card.id,
        "question": card.question,
        "answer": card.answer,
        "topic": card.topic,
        "answer_type": card.answer_type.value,
        "choices": list(card.choices),
        **stats_to_record(card.stats),
    }
