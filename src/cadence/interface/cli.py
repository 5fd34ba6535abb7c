"""cadence CLI: a thin study front end over the scheduling engine."""

import asyncio
import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any

import typer

from cadence.application.circuit_breaker import CircuitBreaker
from cadence.application.config import AppConfig, resolve_config
from cadence.application.factory import get_card_repository, get_fallback_repository
from cadence.application.queue_builder import CardFilter, due_cards
from cadence.application.review_service import ReviewService
from cadence.application.scheduler import Scheduler
from cadence.application.stats import calculate_stats, topic_performance
from cadence.domain.errors import CadenceError, InvalidRatingError
from cadence.domain.models import Card, CardState, Rating
from cadence.domain.ports import CardRepository
from cadence.infrastructure.adapters.remote_store import RemoteCardRepository

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: spaced-repetition scheduling for flashcards.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage cadence configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

_LOG_LEVELS = {0: logging.ERROR, 1: logging.WARNING, 2: logging.INFO}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve(ctx: typer.Context, **overrides: Any) -> AppConfig:
    obj = ctx.obj or {}
    return resolve_config(
        {"data_file": obj.get("data_file"), "verbose": obj.get("verbose"), **overrides}
    )


def _run(config: AppConfig, action):
    """Run an async action against the configured repository, closing it afterwards."""

    async def runner():
        repo = get_card_repository(config)
        try:
            return await action(repo)
        finally:
            if isinstance(repo, RemoteCardRepository):
                await repo.aclose()

    try:
        return asyncio.run(runner())
    except CadenceError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


def _when(moment: datetime | None) -> str:
    return moment.isoformat(timespec="minutes") if moment else "now"


def _card_line(card: Card) -> str:
    return f"{card.id}  [{card.state.value}]  due {_when(card.memory.next_review)}  {card.front}"


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
    data_file: Annotated[
        Path | None, typer.Option(help="Local card file. Defaults to config.")
    ] = None,
):
    """Global settings for cadence."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["data_file"] = data_file
    logging.getLogger().setLevel(_LOG_LEVELS.get(verbose, logging.DEBUG))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def due(
    ctx: typer.Context,
    tag: Annotated[list[str] | None, typer.Option(help="Only show cards with this tag.")] = None,
    topic: Annotated[list[str] | None, typer.Option(help="Only show this topic.")] = None,
    state: Annotated[
        list[CardState] | None, typer.Option(help="Only show cards in this state.")
    ] = None,
    difficulty: Annotated[
        list[str] | None, typer.Option(help="Only show this content difficulty.")
    ] = None,
    limit: Annotated[int | None, typer.Option(help="Show at most this many cards.")] = None,
):
    """List cards due now, in study order."""
    config = _resolve(ctx)
    card_filter = CardFilter(
        tags=tag or [], topics=topic or [], states=state or [], difficulties=difficulty or []
    )
    cards = _run(config, lambda repo: repo.list_cards())
    queue = due_cards(cards, datetime.now(timezone.utc), card_filter)

    if not queue:
        typer.secho("Nothing due. Session complete.", fg="green")
        return

    typer.echo(f"Due cards: {len(queue)}")
    for card in queue[:limit] if limit else queue:
        typer.echo(f"  {_card_line(card)}")


@app.command()
def stats(
    ctx: typer.Context,
    topics: Annotated[
        bool, typer.Option("--topics", help="Include per-topic performance.")
    ] = False,
):
    """Show deck statistics as JSON."""
    config = _resolve(ctx)
    cards = _run(config, lambda repo: repo.list_cards())
    payload: dict[str, Any] = asdict(calculate_stats(cards, datetime.now(timezone.utc)))
    if topics:
        payload["topics"] = [asdict(p) for p in topic_performance(cards)]
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def preview(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card to preview.")],
):
    """Show when a card would come back for each possible answer."""
    config = _resolve(ctx)
    scheduler = Scheduler(config.scheduler)
    card = _run(config, lambda repo: repo.get_card(card_id))
    now = datetime.now(timezone.utc)

    days = scheduler.preview_schedule(card.memory, now)
    labels = scheduler.preview_labels(card.memory, now)
    for rating in Rating:
        typer.echo(f"{rating.name.title():<6} {labels[rating]:>6}  ({days[rating]}d)")


@app.command()
def rate(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card to rate.")],
    rating: Annotated[str, typer.Argument(help="again, hard, good or easy (or 1-4).")],
):
    """Rate a card and store its next review."""
    try:
        parsed = Rating.parse(rating)
    except InvalidRatingError as e:
        typer.secho(str(e), fg="red", err=True)
        raise typer.Exit(2) from e

    config = _resolve(ctx)

    async def action(repo: CardRepository):
        service = ReviewService(
            repo,
            Scheduler(config.scheduler),
            fallback=get_fallback_repository(config, repo),
            max_attempts=config.max_write_attempts,
            retry_base_delay=config.retry_base_delay,
            breaker=CircuitBreaker(
                failure_threshold=config.breaker_failure_threshold,
                reset_after=config.breaker_reset_seconds,
            ),
        )
        return await service.rate(card_id, parsed)

    outcome = _run(config, action)
    memory = outcome.card.memory
    typer.echo(
        f"{card_id}: {outcome.result.previous.state.value} -> {memory.state.value}, "
        f"next review {_when(memory.next_review)}"
    )
    if not outcome.persisted:
        typer.secho(f"Not saved: {outcome.error}", fg="yellow", err=True)
        raise typer.Exit(1)
    if outcome.stored_in == "fallback":
        typer.secho("Saved to local fallback store.", fg="yellow")


@app.command()
def add(
    ctx: typer.Context,
    front: Annotated[str, typer.Argument(help="Question side.")],
    back: Annotated[str, typer.Argument(help="Answer side.")],
    tag: Annotated[list[str] | None, typer.Option(help="Tag (repeatable).")] = None,
    topic: Annotated[str | None, typer.Option(help="Topic.")] = None,
    difficulty: Annotated[str | None, typer.Option(help="Content difficulty label.")] = None,
):
    """Add a new card."""
    from ulid import ULID

    config = _resolve(ctx)
    card = Card(
        id=f"card_{ULID()}",
        front=front,
        back=back,
        tags=tag or [],
        topic=topic,
        difficulty_label=difficulty,
    )
    stored = _run(config, lambda repo: repo.add_card(card))
    typer.secho(f"Added {stored.id}", fg="green")


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Print the resolved configuration as JSON."""
    config = _resolve(ctx)
    d = config.model_dump(mode="json")
    for secret in ("remote_api_key", "access_token"):
        if d.get(secret):
            d[secret] = "***"
    typer.echo(json.dumps(d, indent=2))


def main():
    app()


if __name__ == "__main__":
    main()
