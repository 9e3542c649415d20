import logging
import threading
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from smartcards.application.scheduler.engine import SchedulerEngine
from smartcards.consts import VERSION
from smartcards.domain.cards.models import AnswerOutcome, AnswerType, Card, CardStats
from smartcards.domain.errors import EmptyPoolError, NotActiveError
from smartcards.infrastructure.records import parse_timestamp

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("smartcards.server")

# One engine per server process. Every engine call holds this lock.
_lock = threading.Lock()
_engine = SchedulerEngine()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"smartcards server v{VERSION} starting up...")
    yield
    logger.info("smartcards server shutting down...")


app = FastAPI(
    title="smartcards server",
    description="Adaptive flashcard scheduling over HTTP.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


def reset_engine(engine: SchedulerEngine | None = None) -> None:
    """Replace the process-wide engine (new session host, or tests)."""
    global _engine
    with _lock:
        _engine = engine or SchedulerEngine()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class StatsPayload(BaseModel):
    correct_count: int = Field(default=0, ge=0)
    incorrect_count: int = Field(default=0, ge=0)
    last_reviewed: datetime | None = None
    streak: int = 0

    @classmethod
    def from_stats(cls, stats: CardStats) -> "StatsPayload":
        return cls(
            correct_count=stats.correct_count,
            incorrect_count=stats.incorrect_count,
            last_reviewed=stats.last_reviewed,
            streak=stats.streak,
        )


class CardPayload(BaseModel):
    id: str
    question: str
    answer: str
    topic: str = ""
    answer_type: AnswerType = AnswerType.REVEAL
    choices: list[str] = Field(default_factory=list)
    stats: StatsPayload = Field(default_factory=StatsPayload)

    @classmethod
    def from_card(cls, card: Card) -> "CardPayload":
        return cls(
            id=card.id,
            question=card.question,
            answer=card.answer,
            topic=card.topic,
            answer_type=card.answer_type,
            choices=list(card.choices),
            stats=StatsPayload.from_stats(card.stats),
        )

    def to_card(self) -> Card:
        return Card(
            id=self.id,
            question=self.question,
            answer=self.answer,
            topic=self.topic,
            answer_type=self.answer_type,
            choices=list(self.choices),
            stats=CardStats(
                correct_count=self.stats.correct_count,
                incorrect_count=self.stats.incorrect_count,
                last_reviewed=parse_timestamp(self.stats.last_reviewed),
                streak=self.stats.streak,
            ),
        )


class StartRequest(BaseModel):
    cards: list[CardPayload]
    seed: int | None = None


class AnswerRequest(BaseModel):
    is_correct: bool


class SubmitRequest(BaseModel):
    text: str


class SessionResponse(BaseModel):
    phase: str
    current_card: CardPayload | None
    session_correct: int
    session_total: int
    session_accuracy: float
    mastery_progress: float
    pool_size: int


class AnswerResponse(BaseModel):
    previous_card_id: str
    was_correct: bool
    stats: StatsPayload
    next_card: CardPayload | None
    session: SessionResponse


class WeightRow(BaseModel):
    card_id: str
    difficulty: float
    recency: float
    novelty: float
    accuracy_boost: float
    streak_momentum: float
    weight: float


def _session_view(engine: SchedulerEngine) -> SessionResponse:
    card = engine.current_card
    return SessionResponse(
        phase=engine.phase.value,
        current_card=CardPayload.from_card(card) if card else None,
        session_correct=engine.session_correct,
        session_total=engine.session_total,
        session_accuracy=engine.session_accuracy,
        mastery_progress=engine.mastery_progress,
        pool_size=len(engine.pool),
    )


def _answer_view(engine: SchedulerEngine, outcome: AnswerOutcome) -> AnswerResponse:
    return AnswerResponse(
        previous_card_id=outcome.previous_card_id,
        was_correct=outcome.was_correct,
        stats=StatsPayload.from_stats(outcome.stats),
        next_card=CardPayload.from_card(outcome.next_card) if outcome.next_card else None,
        session=_session_view(engine),
    )


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, EmptyPoolError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, NotActiveError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


@app.get("/health", response_model=HealthResponse)
def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
def get_version():
    return {"version": VERSION}


@app.post("/session/start", response_model=SessionResponse)
def start_session(req: StartRequest):
    """
    Start a new session on the given cards, replacing any previous one.
    """
    global _engine
    from smartcards.application.config import resolve_config

    try:
        config = resolve_config()
        engine = SchedulerEngine(
            policy=config.weight_policy(),
            seed=req.seed if req.seed is not None else config.seed,
        )
        engine.start_session([card.to_card() for card in req.cards])
    except (EmptyPoolError, ValueError) as e:
        logger.warning(f"Session start rejected: {e}")
        raise _http_error(e) from e

    with _lock:
        _engine = engine
        logger.info(f"Session started via API with {len(req.cards)} cards")
        return _session_view(_engine)


@app.get("/session", response_model=SessionResponse)
def get_session():
    with _lock:
        return _session_view(_engine)


@app.get("/session/weights", response_model=list[WeightRow])
def get_weights():
    with _lock:
        return [WeightRow(**vars(row)) for row in _engine.weights()]


@app.post("/session/answer", response_model=AnswerResponse)
def answer(req: AnswerRequest):
    with _lock:
        try:
            outcome = _engine.record_answer(req.is_correct)
        except NotActiveError as e:
            raise _http_error(e) from e
        return _answer_view(_engine, outcome)


@app.post("/session/submit", response_model=AnswerResponse)
def submit(req: SubmitRequest):
    with _lock:
        try:
            outcome = _engine.submit_answer(req.text)
        except NotActiveError as e:
            raise _http_error(e) from e
        return _answer_view(_engine, outcome)


@app.post("/session/skip", response_model=SessionResponse)
def skip():
    with _lock:
        try:
            _engine.skip()
        except NotActiveError as e:
            raise _http_error(e) from e
        return _session_view(_engine)


@app.post("/session/end", response_model=SessionResponse)
def end_session():
    with _lock:
        try:
            _engine.end_session()
        except NotActiveError as e:
            raise _http_error(e) from e
        return _session_view(_engine)


@app.post("/session/restart", response_model=SessionResponse)
def restart():
    """
    Restart on the same cards. Wipes all of their stats.
    """
    with _lock:
        try:
            _engine.restart()
        except EmptyPoolError as e:
            raise _http_error(e) from e
        logger.info("Session restarted via API")
        return _session_view(_engine)
