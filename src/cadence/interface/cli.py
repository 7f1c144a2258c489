"""Cadence CLI: review, study and progress commands."""

import asyncio
import json
import logging
import random
import sys
from pathlib import Path
from typing import Annotated

import typer

from cadence.application.config import resolve_config
from cadence.application.due_selector import QueueOrder
from cadence.application.factory import Engine, build_engine
from cadence.application.study_session import StudySession
from cadence.domain.errors import CadenceError, InvalidGrade
from cadence.domain.progress.models import ReviewButton
from cadence.interface._common import (
    _resolve_with_overrides,
    account_stats_to_dict,
    card_to_dict,
    deck_stats_to_dict,
    record_to_dict,
    summary_to_dict,
)

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: spaced-repetition progress engine for flashcard decks.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------

progress_app = typer.Typer(help="Deck and account progress.", no_args_is_help=True)
app.add_typer(progress_app, name="progress")

config_app = typer.Typer(help="Manage cadence configuration.")
app.add_typer(config_app, name="config")

UserOption = Annotated[int, typer.Option("--user", "-u", help="Learner id.")]
StoreOption = Annotated[str | None, typer.Option("--store", help="Progress store: memory, sqlite.")]
DbOption = Annotated[Path | None, typer.Option("--db", help="SQLite database path.")]
CatalogOption = Annotated[Path | None, typer.Option("--catalog", help="YAML deck file.")]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON.")]


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for cadence."""
    if verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)
    elif verbose == 1:
        logging.getLogger().setLevel(logging.INFO)


def _engine(store: str | None, db: Path | None, catalog: Path | None) -> Engine:
    config = _resolve_with_overrides(store=store, database_path=db, catalog_path=catalog)
    try:
        return build_engine(config)
    except (OSError, ValueError) as e:
        typer.secho(f"Invalid configuration or catalog: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


def _parse_grade(value: str) -> int:
    """Accept a 0-5 grade or a button name (again, hard, good, easy)."""
    value = value.strip()
    if value.lstrip("-").isdigit():
        return int(value)
    try:
        return int(ReviewButton.parse(value))
    except ValueError:
        raise InvalidGrade(value) from None


def _run(coro):
    try:
        return asyncio.run(coro)
    except InvalidGrade as e:
        typer.secho(e.message, fg="red", err=True)
        raise typer.Exit(2) from e
    except CadenceError as e:
        typer.secho(e.message, fg="red", err=True)
        raise typer.Exit(1) from e


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def review(
    card_id: Annotated[int, typer.Argument(help="Card to grade.")],
    grade: Annotated[str, typer.Argument(help="0-5, or again/hard/good/easy.")],
    user: UserOption,
    store: StoreOption = None,
    db: DbOption = None,
    catalog: CatalogOption = None,
    json_output: JsonOption = False,
):
    """[bold green]Record[/bold green] one review and print the new schedule."""
    engine = _engine(store, db, catalog)

    async def run():
        return await engine.reviews.record_review(user, card_id, _parse_grade(grade))

    record = _run(run())
    if json_output:
        typer.echo(json.dumps(record_to_dict(record), indent=2))
        return
    typer.echo(
        f"Card {record.card_id}: next review in {record.interval} day(s) "
        f"on {record.due_date:%Y-%m-%d %H:%M} (ease {record.ease_factor:.2f})"
    )


@app.command()
def reset(
    card_id: Annotated[int, typer.Argument(help="Card to reset.")],
    user: UserOption,
    store: StoreOption = None,
    db: DbOption = None,
    catalog: CatalogOption = None,
):
    """Return a card to the new-card state for one learner."""
    engine = _engine(store, db, catalog)
    record = _run(engine.reviews.reset_card(user, card_id))
    if record is None:
        typer.secho(f"Card {card_id} has no progress for user {user}; nothing to reset.", fg="yellow")
    else:
        typer.secho(f"Card {card_id} reset; due now.", fg="green")


@app.command()
def due(
    deck_id: Annotated[int, typer.Argument(help="Deck to draw from.")],
    user: UserOption,
    limit: Annotated[int | None, typer.Option(help="Maximum number of cards.")] = None,
    shuffle: Annotated[
        bool, typer.Option("--shuffle", help="Free-study order instead of due-date order.")
    ] = False,
    store: StoreOption = None,
    db: DbOption = None,
    catalog: CatalogOption = None,
    json_output: JsonOption = False,
):
    """List the cards of a deck that are due for a learner."""
    engine = _engine(store, db, catalog)
    order = QueueOrder.SHUFFLED if shuffle else QueueOrder.DUE_DATE
    queue = _run(engine.selector.select_due(deck_id, user, limit=limit, order=order))

    if json_output:
        typer.echo(json.dumps([card_to_dict(c) for c in queue], indent=2))
        return
    if not queue:
        typer.secho("No cards due.", fg="green")
        return
    typer.echo(f"Due cards: {len(queue)}")
    for card in queue:
        typer.echo(f"  [{card.id}] {card.front}")


@app.command()
def study(
    deck_id: Annotated[int, typer.Argument(help="Deck to study.")],
    user: UserOption,
    limit: Annotated[int | None, typer.Option(help="Maximum number of cards.")] = None,
    shuffle: Annotated[
        bool, typer.Option("--shuffle", help="Free-study order instead of due-date order.")
    ] = False,
    seed: Annotated[int | None, typer.Option(help="Seed for --shuffle.")] = None,
    store: StoreOption = None,
    db: DbOption = None,
    catalog: CatalogOption = None,
    json_output: JsonOption = False,
):
    """Study the due cards of a deck interactively."""
    engine = _engine(store, db, catalog)
    session = StudySession(
        engine.reviews,
        engine.selector,
        deck_id,
        user,
        order=QueueOrder.SHUFFLED if shuffle else QueueOrder.DUE_DATE,
        limit=limit,
        rng=random.Random(seed) if seed is not None else None,
    )

    async def run():
        queue = await session.start()
        if not queue:
            typer.secho("Nothing to study right now.", fg="green")
            return session.end()

        while (card := session.current_card) is not None:
            typer.echo(f"\n[{len(queue) - session.remaining + 1}/{len(queue)}] {card.front}")
            typer.prompt("Show answer", default="", show_default=False)
            typer.echo(f"  -> {card.back}")

            while True:
                raw = typer.prompt("Grade (0-5, again/hard/good/easy, q to stop)")
                if raw.strip().lower() in ("q", "quit"):
                    return session.end()
                try:
                    record = await session.answer(_parse_grade(raw))
                    break
                except InvalidGrade as e:
                    typer.secho(e.message, fg="red")
            typer.echo(f"  next review in {record.interval} day(s)")

        return session.end()

    summary = _run(run())
    if json_output:
        typer.echo(json.dumps(summary_to_dict(summary), indent=2))
        return
    tally = summary.grade_tally
    typer.secho("\nSession complete", fg="green", bold=True)
    typer.echo(
        f"Reviewed {summary.cards_reviewed} card(s) in {summary.duration_seconds:.0f}s, "
        f"longest streak {summary.longest_streak}, accuracy {summary.accuracy:.0%}"
    )
    typer.echo(f"Easy {tally.easy}  Good {tally.good}  Hard {tally.hard}  Again {tally.again}")


@app.command()
def serve(
    port: Annotated[int | None, typer.Option(help="Port to bind the server to.")] = None,
    host: Annotated[str | None, typer.Option(help="Host to bind the server to.")] = None,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP API."""
    import uvicorn

    config = _resolve_with_overrides(host=host, port=port)
    uvicorn.run("cadence.server:app", host=config.host, port=config.port, reload=reload)


# ---------------------------------------------------------------------------
# Progress subgroup
# ---------------------------------------------------------------------------


@progress_app.command("deck")
def progress_deck(
    deck_id: Annotated[int, typer.Argument(help="Deck id.")],
    user: UserOption,
    store: StoreOption = None,
    db: DbOption = None,
    catalog: CatalogOption = None,
    json_output: JsonOption = False,
):
    """Mastery, due counts and study history of one deck."""
    engine = _engine(store, db, catalog)
    stats = _run(engine.aggregator.deck_progress(deck_id, user))

    if json_output:
        typer.echo(json.dumps(deck_stats_to_dict(stats), indent=2))
        return

    typer.echo(
        f"Deck {deck_id}: {stats.total_cards} cards  "
        f"Mastered {stats.mastered_cards} ({stats.mastery_percentage:.0f}%)  "
        f"Needs practice {stats.due_cards}  New {stats.new_cards}  "
        f"Due now {stats.review_queue_size}"
    )
    if stats.last_studied:
        typer.echo(f"Last studied: {stats.last_studied:%Y-%m-%d %H:%M}")
    for day in stats.study_history:
        p = day.performance
        typer.echo(
            f"  {day.day.isoformat()}  {day.cards_studied:3d} cards  "
            f"easy {p.easy} good {p.good} hard {p.hard} again {p.again}"
        )


@progress_app.command("account")
def progress_account(
    user: UserOption,
    store: StoreOption = None,
    db: DbOption = None,
    catalog: CatalogOption = None,
    json_output: JsonOption = False,
):
    """Totals across every deck a learner has studied."""
    engine = _engine(store, db, catalog)
    stats = _run(engine.aggregator.account_progress(user))

    if json_output:
        typer.echo(json.dumps(account_stats_to_dict(stats), indent=2))
        return

    typer.echo(
        f"Cards studied: {stats.total_cards}  Mastered: {stats.mastered_cards}  "
        f"To review: {stats.cards_to_review}  Decks: {stats.decks_studied}"
    )
    typer.echo(
        f"Average grade {stats.average_grade:.2f}  ease {stats.average_ease_factor:.2f}  "
        f"interval {stats.average_interval:.1f}d"
    )


@progress_app.command("decks")
def progress_decks(
    user: UserOption,
    store: StoreOption = None,
    db: DbOption = None,
    catalog: CatalogOption = None,
    json_output: JsonOption = False,
):
    """One summary line per deck the learner has studied."""
    engine = _engine(store, db, catalog)

    async def run():
        summaries = await engine.aggregator.list_deck_progress(user)
        titles = [await engine.catalog.get_deck_title(s.deck_id) for s in summaries]
        return summaries, titles

    summaries, titles = _run(run())

    if json_output:
        typer.echo(
            json.dumps(
                [{**deck_stats_to_dict(s), "title": t} for s, t in zip(summaries, titles)], indent=2
            )
        )
        return
    if not summaries:
        typer.secho("No progress yet.", fg="yellow")
        return
    for s, title in zip(summaries, titles):
        name = f"Deck {s.deck_id} ({title})" if title else f"Deck {s.deck_id}"
        typer.echo(
            f"{name}: {s.mastered_cards}/{s.total_cards} mastered, "
            f"{s.review_queue_size} due"
        )


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
