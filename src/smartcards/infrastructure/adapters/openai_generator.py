"""
OpenAI-compatible content generator.

Implements ContentGenerator over the chat-completions HTTP API. Any server
speaking the same protocol works by pointing `url` at it.
"""

import logging
import re

import httpx
from pydantic import BaseModel, ValidationError

from smartcards.domain import constants as c
from smartcards.domain.cards.models import AnswerType, Card
from smartcards.domain.cards.ports import ContentGenerator
from smartcards.domain.errors import ContentGenerationError

logger = logging.getLogger(__name__)

# Existing questions passed to the model as "do not repeat" context
MAX_EXISTING_QUESTIONS = 20

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class GeneratedCard(BaseModel):
    question: str
    answer: str
    topic: str = ""


class GeneratedCards(BaseModel):
    cards: list[GeneratedCard]


def build_generation_prompt(
    topic: str,
    count: int,
    difficulty: str,
    deck_name: str | None,
    existing_questions: list[str],
) -> str:
    parts = [f"Generate {count} flashcard questions about: {topic}", f"Difficulty level: {difficulty}"]

    if deck_name:
        parts.append(
            f'These cards belong to a deck called "{deck_name}". '
            "Keep every question relevant to that deck."
        )

    if existing_questions:
        listing = "\n".join(f"- {q}" for q in existing_questions[:MAX_EXISTING_QUESTIONS])
        parts.append(
            "The deck already contains these questions. Do not repeat them "
            f"or write near-duplicates:\n{listing}"
        )

    parts.append(
        "Test understanding rather than rote recall, mixing conceptual and factual questions.\n"
        "Reply with JSON only, no markdown, in exactly this shape:\n"
        '{"cards":[{"question":"...","answer":"...","topic":"..."}]}\n'
        "Answers are one or two sentences. The topic is a one or two word label."
    )
    return "\n\n".join(parts)


def parse_generated_cards(content: str) -> list[Card]:
    """
    Parse the model's reply into id-less cards.

    Raises:
        ContentGenerationError: If the reply is not the expected JSON.
    """
    text = content.strip()
    match = _FENCE_RE.match(text)
    if match:
        text = match.group(1)

    try:
        parsed = GeneratedCards.model_validate_json(text)
    except ValidationError as e:
        raise ContentGenerationError(f"Failed to parse generated cards: {e}") from e

    return [
        Card(
            id="",
            question=card.question.strip(),
            answer=card.answer.strip(),
            topic=card.topic.strip(),
            answer_type=AnswerType.REVEAL,
        )
        for card in parsed.cards
        if card.question.strip() and card.answer.strip()
    ]


class OpenAIContentGenerator(ContentGenerator):
    """Adapter for an OpenAI-style chat-completions endpoint."""

    def __init__(
        self,
        api_key: str | None,
        url: str = c.DEFAULT_GENERATOR_URL,
        model: str = c.DEFAULT_GENERATOR_MODEL,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url.rstrip("/")
        self.model = model
        self._api_key = api_key
        self._client = client

    async def generate_cards(
        self,
        topic: str,
        count: int = 5,
        difficulty: str = "medium",
        deck_name: str | None = None,
        existing_questions: list[str] | None = None,
    ) -> list[Card]:
        prompt = build_generation_prompt(
            topic, count, difficulty, deck_name, existing_questions or []
        )
        content = await self._complete(prompt, c.GENERATE_TEMPERATURE, c.GENERATE_MAX_TOKENS)
        cards = parse_generated_cards(content)
        logger.info(f"Generated {len(cards)} cards about {topic!r}")
        return cards

    async def explain_card(self, question: str, answer: str) -> str:
        prompt = (
            "A student studying flashcards needs help with this card.\n\n"
            f"Question: {question}\n"
            f"Answer: {answer}\n\n"
            "Explain why this answer is correct, add context or a memory tip, "
            "and give a short example where it helps. Two or three short paragraphs at most."
        )
        return await self._complete(prompt, c.EXPLAIN_TEMPERATURE, c.EXPLAIN_MAX_TOKENS)

    async def ask(self, question: str, context: str | None = None) -> str:
        prompt = "You are a helpful study assistant. "
        if context:
            prompt += f"The student is studying flashcards about: {context}. "
        prompt += (
            "\n\nAnswer this question clearly and concisely:\n"
            f"{question}\n\n"
            "Give factual answers directly and explain concepts simply, "
            "in under three paragraphs."
        )
        return await self._complete(prompt, c.ASK_TEMPERATURE, c.ASK_MAX_TOKENS)

    async def _complete(self, prompt: str, temperature: float, max_tokens: int) -> str:
        if not self._api_key:
            raise ContentGenerationError("No API key configured for content generation")

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=c.REQUEST_TIMEOUT)

        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        try:
            resp = await self._client.post(
                f"{self.url}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Content generation failed: {e.response.status_code} {e.response.text}")
            raise ContentGenerationError(
                f"API error (status: {e.response.status_code})"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Content generation failed: {e}")
            raise ContentGenerationError(str(e)) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ContentGenerationError("No content in response") from e
        if not content:
            raise ContentGenerationError("No content in response")
        return content.strip()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
