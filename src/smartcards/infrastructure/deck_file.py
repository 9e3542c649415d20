"""Load a deck of cards from a YAML file.

Expected shape:

    deck: Capitals
    cards:
      - question: Capital of France?
        answer: Paris
        topic: Geography        # optional
        answer_type: text_input # optional, default reveal
        stats:                  # optional
          correct_count: 2
          incorrect_count: 1
          streak: -1
          last_reviewed: 2024-05-01T10:00:00Z

Cards without an `id` get a generated one.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from smartcards.domain.cards.models import Card
from smartcards.infrastructure.adapters.memory_store import generate_card_id
from smartcards.infrastructure.records import card_from_record

logger = logging.getLogger(__name__)


class DeckFileError(ValueError):
    """The deck file could not be read or has the wrong shape."""


@dataclass
class DeckFile:
    name: str
    cards: list[Card]


def parse_deck(raw: str, default_name: str = "Deck") -> DeckFile:
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise DeckFileError(f"Invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise DeckFileError("Deck file must be a mapping with a 'cards' list")

    entries = data.get("cards")
    if not isinstance(entries, list):
        raise DeckFileError("Deck file has no 'cards' list")

    cards: list[Card] = []
    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            raise DeckFileError(f"Card #{index} is not a mapping")
        record = dict(entry)
        if not record.get("id"):
            record["id"] = generate_card_id()
        try:
            cards.append(card_from_record(record))
        except KeyError as e:
            raise DeckFileError(f"Card #{index} is missing {e}") from e
        except (TypeError, ValueError) as e:
            raise DeckFileError(f"Card #{index} is invalid: {e}") from e

    return DeckFile(name=str(data.get("deck") or default_name), cards=cards)


def load_deck(path: Path) -> DeckFile:
    """
    Read a deck file from disk.

    Raises:
        DeckFileError: If the file is unreadable or malformed.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DeckFileError(f"Cannot read {path}: {e}") from e

    deck = parse_deck(raw, default_name=path.stem)
    logger.info(f"Loaded {len(deck.cards)} cards from {path}")
    return deck
