"""
REST card store: CardStatsStore over a PostgREST-style HTTP API.

Talks to a hosted `flashcards` table (e.g. Supabase) keyed by card id and
filtered by deck id.
"""

import logging
from typing import Any

import httpx

from smartcards.domain.cards.models import AnswerType, Card, CardStats
from smartcards.domain.cards.ports import CardStatsStore
from smartcards.domain.constants import REQUEST_TIMEOUT
from smartcards.domain.errors import StoreError
from smartcards.infrastructure.records import card_from_record, stats_to_record

# Labels the hosted table stores for answer types
_STORE_LABELS = {
    AnswerType.REVEAL: "Reveal",
    AnswerType.MULTIPLE_CHOICE: "Multiple Choice",
    AnswerType.TEXT_INPUT: "Text Input",
}


class RestStatsStore(CardStatsStore):
    """Adapter for a hosted card table reached over HTTP."""

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        table: str = "flashcards",
        client: httpx.AsyncClient | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.url = url.rstrip("/")
        self.table = table
        self._headers = {"Content-Type": "application/json"}
        if api_key:
            self._headers["apikey"] = api_key
            self._headers["Authorization"] = f"Bearer {api_key}"
        self._client = client
        self.logger.debug(f"RestStatsStore initialized with url={self.url} table={self.table}")

    @property
    def endpoint(self) -> str:
        return f"{self.url}/rest/v1/{self.table}"

    async def load_cards(self, deck_id: str) -> list[Card]:
        rows = await self._request(
            "GET",
            params={"deck_id": f"eq.{deck_id}", "select": "*", "order": "created_at.asc"},
        )
        try:
            return [card_from_record(row) for row in rows or []]
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Malformed card row in deck {deck_id}: {e}") from e

    async def save_stats(self, card_id: str, stats: CardStats) -> None:
        await self._request("PATCH", params={"id": f"eq.{card_id}"}, json=stats_to_record(stats))

    async def create_card(self, deck_id: str, card: Card) -> Card:
        payload: dict[str, Any] = {
            "deck_id": deck_id,
            "question": card.question,
            "answer": card.answer,
            "topic": card.topic,
            "answer_type": _STORE_LABELS[card.answer_type],
            "choices": list(card.choices),
        }
        if card.id:
            payload["id"] = card.id

        rows = await self._request(
            "POST", json=payload, headers={"Prefer": "return=representation"}
        )
        try:
            return card_from_record(rows[0])
        except (IndexError, KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Store returned no usable row for new card: {e}") from e

    async def _request(
        self,
        method: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)

        try:
            resp = await self._client.request(
                method,
                self.endpoint,
                params=params,
                json=json,
                headers={**self._headers, **(headers or {})},
            )
            resp.raise_for_status()
            if not resp.content:
                return None
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            self.logger.error(f"Store {method} {self.endpoint} failed: {e}")
            raise StoreError(str(e)) from e

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
