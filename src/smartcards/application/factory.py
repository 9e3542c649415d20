"""
Adapter Factory
Centralizes the logic for selecting the card store and content generator.
"""

import logging

from smartcards.application.config import AppConfig
from smartcards.domain.cards.models import Card
from smartcards.domain.cards.ports import CardStatsStore, ContentGenerator
from smartcards.infrastructure.adapters.memory_store import InMemoryStatsStore
from smartcards.infrastructure.adapters.openai_generator import OpenAIContentGenerator
from smartcards.infrastructure.adapters.rest_store import RestStatsStore

logger = logging.getLogger(__name__)


def get_stats_store(
    config: AppConfig, decks: dict[str, list[Card]] | None = None
) -> CardStatsStore:
    """
    Returns the CardStatsStore implementation selected by config.

    `decks` seeds the in-memory store and is ignored by the REST store.
    """
    if config.store_backend == "rest":
        if not config.store_url:
            raise ValueError("store_backend 'rest' requires store_url")
        logger.info(f"Store: REST at {config.store_url}")
        return RestStatsStore(url=config.store_url, api_key=config.store_api_key)

    logger.info("Store: in-memory")
    return InMemoryStatsStore(decks)


def get_content_generator(config: AppConfig) -> ContentGenerator | None:
    """
    Returns a ContentGenerator, or None when no API key is configured.
    """
    if not config.generator_api_key:
        return None
    return OpenAIContentGenerator(
        api_key=config.generator_api_key,
        url=config.generator_url,
        model=config.generator_model,
    )
