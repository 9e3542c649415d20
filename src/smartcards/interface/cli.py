"""smartcards CLI: study sessions, weight diagnostics, config and server."""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated

import typer

from smartcards.application.config import AppConfig, resolve_config
from smartcards.application.factory import get_content_generator, get_stats_store
from smartcards.application.scheduler.engine import SchedulerEngine
from smartcards.application.study_service import StudySessionService
from smartcards.domain.cards.models import AnswerOutcome, AnswerType, Card
from smartcards.domain.errors import SmartcardsError
from smartcards.infrastructure.adapters.memory_store import InMemoryStatsStore
from smartcards.infrastructure.deck_file import DeckFileError, load_deck
from smartcards.infrastructure.logging_setup import setup_logging

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="smartcards: adaptive flashcard study in the terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage smartcards configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
):
    """Global settings for smartcards."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose >= 2:
        logging.getLogger("smartcards").setLevel(logging.DEBUG)


def _build_engine(config: AppConfig, seed: int | None) -> SchedulerEngine:
    return SchedulerEngine(
        policy=config.weight_policy(),
        seed=seed if seed is not None else config.seed,
    )


def _load_deck_or_exit(path: Path):
    try:
        return load_deck(path)
    except DeckFileError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


# ---------------------------------------------------------------------------
# Study
# ---------------------------------------------------------------------------


@app.command()
def study(
    ctx: typer.Context,
    deck_file: Annotated[
        Path | None, typer.Argument(help="YAML deck file to study offline.")
    ] = None,
    deck_id: Annotated[
        str | None, typer.Option("--deck-id", help="Deck id in the configured card store.")
    ] = None,
    seed: Annotated[int | None, typer.Option(help="Seed for reproducible card order.")] = None,
    typed: Annotated[
        bool,
        typer.Option("--typed", help="Type answers to reveal cards instead of self-grading."),
    ] = False,
    limit: Annotated[
        int, typer.Option(help="Stop after this many answers (0 = until you quit).")
    ] = 0,
):
    """
    [bold green]Study[/bold green] a deck, one adaptively chosen card at a time.

    Cards are asked by their answer type: reveal and self-grade, pick a
    choice, or type the answer. At any prompt, [bold]g[/bold] generates new
    cards and [bold]?[/bold] asks the study helper (both need a generator API key).
    """
    if (deck_file is None) == (deck_id is None):
        typer.secho("Give either a DECK_FILE or --deck-id.", fg="red", err=True)
        raise typer.Exit(2)

    config = resolve_config({"verbose": ctx.obj.get("verbose", 1)})
    setup_logging(config.log_dir, config.verbose)
    engine = _build_engine(config, seed)

    if deck_file is not None:
        deck = _load_deck_or_exit(deck_file)
        deck_id, deck_name = deck.name, deck.name
        store = InMemoryStatsStore({deck.name: deck.cards})
    else:
        deck_name = deck_id
        store = get_stats_store(config)

    service = StudySessionService(engine, store, get_content_generator(config))

    try:
        asyncio.run(_run_study(service, deck_id, deck_name, typed=typed, limit=limit))
    except SmartcardsError as e:
        logger.error(f"Study session for {deck_id} failed: {e}")
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


Turn = Callable[[StudySessionService, Card], Awaitable[AnswerOutcome | bool | None]]


async def _run_study(
    service: StudySessionService,
    deck_id: str,
    deck_name: str | None,
    typed: bool,
    limit: int,
) -> None:
    engine = service.engine
    try:
        card = await service.start(deck_id, deck_name)
        typer.echo(f"Studying {deck_name} ({len(engine.pool)} cards). 'q' quits.\n")

        while card is not None and (limit <= 0 or engine.session_total < limit):
            typer.secho(f"Q: {card.question}", bold=True)
            outcome = await _turn_for(card, typed)(service, card)

            if outcome is None:
                break
            if outcome is False:
                card = engine.current_card
                continue
            card = outcome.next_card

        engine.end_session()
        await service.drain()
        typer.echo(
            f"\nSession: {engine.session_correct}/{engine.session_total} correct "
            f"({engine.session_accuracy:.0%}). Mastery: {engine.mastery_progress:.0%}"
        )
    finally:
        await service.close()


def _turn_for(card: Card, typed: bool) -> Turn:
    if card.answer_type is AnswerType.MULTIPLE_CHOICE and card.choices:
        return _choice_turn
    if typed or card.answer_type is AnswerType.TEXT_INPUT:
        return _typed_turn
    return _reveal_turn


async def _reveal_turn(service: StudySessionService, card: Card) -> AnswerOutcome | bool | None:
    """Returns the outcome, False after a skip, or None to quit."""
    while True:
        reply = typer.prompt(
            "Enter to reveal, [s]kip, [g]enerate, [?] ask, [q]uit",
            default="",
            show_default=False,
        ).strip().lower()
        if reply == "q":
            return None
        if reply == "s":
            service.engine.skip()
            return False
        if not await _helper_action(service, reply):
            break

    typer.echo(f"A: {card.answer}")
    while True:
        grade = typer.prompt("Correct? [y/n], [e]xplain, [q]uit").strip().lower()
        if grade == "q":
            return None
        if grade == "e":
            await _explain(service)
            continue
        if grade in ("y", "n"):
            return await service.answer(grade == "y")
        typer.echo("Please answer y or n.")


async def _typed_turn(service: StudySessionService, card: Card) -> AnswerOutcome | bool | None:
    while True:
        reply = typer.prompt("Your answer (:s skip, :g generate, :? ask, :q quit)")
        command = reply.strip().lower()
        if command == ":q":
            return None
        if command == ":s":
            service.engine.skip()
            return False
        if not (command.startswith(":") and await _helper_action(service, command[1:])):
            break

    outcome = await service.submit(reply)
    _show_grade(outcome, card)
    return outcome


async def _choice_turn(service: StudySessionService, card: Card) -> AnswerOutcome | bool | None:
    for number, choice in enumerate(card.choices, start=1):
        typer.echo(f"  {number}. {choice}")

    while True:
        reply = typer.prompt("Pick a number, [s]kip, [g]enerate, [?] ask, [q]uit").strip().lower()
        if reply == "q":
            return None
        if reply == "s":
            service.engine.skip()
            return False
        if await _helper_action(service, reply):
            continue
        if reply.isdigit() and 1 <= int(reply) <= len(card.choices):
            break
        typer.echo(f"Please pick 1-{len(card.choices)}.")

    outcome = await service.submit(card.choices[int(reply) - 1])
    _show_grade(outcome, card)
    return outcome


def _show_grade(outcome: AnswerOutcome, card: Card) -> None:
    if outcome.was_correct:
        typer.secho("Correct!", fg="green")
    else:
        typer.secho(f"Wrong. The answer is: {card.answer}", fg="red")


async def _helper_action(service: StudySessionService, command: str) -> bool:
    """Runs [g]enerate or [?] ask. False if `command` is neither."""
    if command == "g":
        await _generate(service)
    elif command == "?":
        await _ask(service)
    else:
        return False
    return True


async def _generate(service: StudySessionService) -> None:
    topic = typer.prompt("Topic", default=service.deck_name or "")
    count = typer.prompt("How many cards", default=5, type=int)
    try:
        created = await service.generate_cards(topic, count=count)
    except SmartcardsError as e:
        typer.secho(f"Generation failed: {e}", fg="yellow")
        return
    typer.secho(f"Added {len(created)} card(s) to {service.deck_name}.", fg="green")


async def _ask(service: StudySessionService) -> None:
    question = typer.prompt("Ask the study helper")
    try:
        typer.echo(await service.ask(question))
    except SmartcardsError as e:
        typer.secho(f"Study helper unavailable: {e}", fg="yellow")


async def _explain(service: StudySessionService) -> None:
    try:
        typer.echo(await service.explain_current())
    except SmartcardsError as e:
        typer.secho(f"Explanation unavailable: {e}", fg="yellow")


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


@app.command()
def weights(
    deck_file: Annotated[Path, typer.Argument(help="YAML deck file.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output results as JSON.")] = False,
):
    """Show each card's selection weight and the factors behind it."""
    deck = _load_deck_or_exit(deck_file)
    if not deck.cards:
        typer.secho("Deck has no cards.", fg="yellow")
        raise typer.Exit(1)

    config = resolve_config()
    engine = _build_engine(config, None)
    engine.start_session(deck.cards)
    rows = engine.weights()
    questions = {card.id: card.question for card in engine.pool}
    total = sum(row.weight for row in rows)

    if json_output:
        typer.echo(
            json.dumps(
                [
                    {
                        "id": row.card_id,
                        "question": questions[row.card_id],
                        "difficulty": row.difficulty,
                        "recency": row.recency,
                        "novelty": row.novelty,
                        "accuracy_boost": row.accuracy_boost,
                        "streak_momentum": row.streak_momentum,
                        "weight": row.weight,
                        "probability": row.weight / total,
                    }
                    for row in rows
                ],
                indent=2,
            )
        )
        return

    typer.echo(
        f"{'weight':>8} {'p':>6}  {'diff':>5} {'rec':>4} {'nov':>4} {'acc':>4} {'strk':>5}  question"
    )
    for row in sorted(rows, key=lambda r: r.weight, reverse=True):
        typer.echo(
            f"{row.weight:8.3f} {row.weight / total:6.1%}  {row.difficulty:5.2f} "
            f"{row.recency:4.1f} {row.novelty:4.1f} {row.accuracy_boost:4.1f} "
            f"{row.streak_momentum:5.2f}  {questions[row.card_id]}"
        )


# ---------------------------------------------------------------------------
# Config / server
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display the resolved configuration as JSON."""
    config = resolve_config()
    data = config.model_dump(mode="json", exclude={"store_api_key", "generator_api_key"})
    typer.echo(json.dumps(data, indent=2))


@app.command()
def server(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8777,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the study-session HTTP server."""
    import uvicorn

    uvicorn.run("smartcards.server:app", host=host, port=port, reload=reload)
