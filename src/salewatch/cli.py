"""Command-line interface for SaleWatch.

Provides commands to run the watcher, inspect rules and storage, and test
notification channels.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from salewatch import __version__

# Create Typer app
app = typer.Typer(
    name="salewatch",
    help="Watch r/buildapcsales and get notified when a post matches your rules.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()

ConfigOption = Annotated[
    Path,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration file.",
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]SaleWatch[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """SaleWatch - Watch subreddit deals for the parts you want."""
    pass


def _load_settings(config_path: Path):
    """Load settings and set up logging, exiting with status 1 on a bad config."""
    import yaml
    from pydantic import ValidationError

    from salewatch.config import get_settings
    from salewatch.logging import setup_logging

    try:
        settings = get_settings(config_path)
    except (ValidationError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    setup_logging(settings.logging)
    return settings


def _load_settings_and_rules(config_path: Path):
    """Load settings and compile rules, exiting with status 1 on bad input."""
    from salewatch.matcher import RuleError

    settings = _load_settings(config_path)

    try:
        rules = settings.load_rule_set()
    except RuleError as e:
        console.print(f"[red]Invalid rules: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    return settings, rules


@app.command()
def init(
    config_path: ConfigOption = Path("config.yaml"),
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite existing database.",
        ),
    ] = False,
) -> None:
    """Initialize the SaleWatch database."""
    from sqlalchemy.exc import SQLAlchemyError

    from salewatch.database import close_database, get_engine, init_database, reset_database
    from salewatch.logging import get_logger

    settings = _load_settings(config_path)
    log = get_logger("salewatch.cli")

    db_path = settings.database.path

    if db_path.exists() and not force:
        console.print(
            f"[green]Database already exists at {db_path}[/green]\n"
            "[dim]Use --force to reinitialize (this will delete all data).[/dim]"
        )
        return

    try:
        engine = get_engine(db_path)
        if force and db_path.exists():
            log.warning("Reinitializing database", path=str(db_path))
            reset_database(engine)
            console.print(f"[green]Database reinitialized at {db_path}[/green]")
        else:
            log.info("Initializing database", path=str(db_path))
            init_database(engine)
            console.print(f"[green]Database initialized at {db_path}[/green]")

    except SQLAlchemyError as e:
        log.exception("Failed to initialize database")
        console.print(f"[red]Error initializing database: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    finally:
        close_database()


@app.command()
def run(config_path: ConfigOption = Path("config.yaml")) -> None:
    """Start polling, matching and notifying."""
    from sqlalchemy.exc import SQLAlchemyError

    from salewatch.database import close_database, get_engine, init_database
    from salewatch.logging import get_logger
    from salewatch.notifier import DiscordNotifier
    from salewatch.pipeline import run_pipeline

    settings, rules = _load_settings_and_rules(config_path)
    log = get_logger("salewatch.cli")

    if not DiscordNotifier(settings.discord).is_enabled():
        console.print("[yellow]Discord notifications are not enabled or configured.[/yellow]")
        console.print("Matches would be stored but never sent. Check your config.yaml file.")
        raise typer.Exit(1)

    try:
        init_database(get_engine(settings.database.path))
    except SQLAlchemyError as e:
        log.exception("Failed to initialize database")
        console.print(f"[red]Error initializing database: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    log.info(
        "Starting SaleWatch",
        subreddit=settings.reddit.subreddit,
        rules=len(rules),
        wait_time_secs=settings.reddit.wait_time_secs,
    )
    console.print(
        f"[blue]Watching r/{settings.reddit.subreddit} with {len(rules)} rules...[/blue]"
    )
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    try:
        asyncio.run(run_pipeline(settings, rules))
    except KeyboardInterrupt:
        log.info("Interrupted, shutting down")
    except Exception as e:
        console.print(f"[red]Pipeline stopped: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    finally:
        close_database()


@app.command("rules")
def list_rules(config_path: ConfigOption = Path("config.yaml")) -> None:
    """List the configured rules in match order."""
    _, rules = _load_settings_and_rules(config_path)

    if not len(rules):
        console.print("[yellow]No rules configured.[/yellow]")
        console.print("Set rules_file or rules in your config.yaml file.")
        return

    table = Table(title="Rules")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Flair", style="green")
    table.add_column("Type", style="green")
    table.add_column("Description", style="green")
    table.add_column("Price", style="yellow")
    table.add_column("Fingerprint", style="dim")

    for index, rule in enumerate(rules, start=1):
        table.add_row(
            str(index),
            escape(rule.display_name),
            _pattern_source(rule.link_flair_pattern),
            _pattern_source(rule.product_type_pattern),
            _pattern_source(rule.description_pattern),
            _price_range(rule.price_min, rule.price_max),
            rule.fingerprint,
        )

    console.print(table)


def _pattern_source(pattern) -> str:
    return escape(pattern.source) if pattern is not None else "-"


def _price_range(price_min: int | None, price_max: int | None) -> str:
    if price_min is None and price_max is None:
        return "any"
    low = f"${price_min}" if price_min is not None else ""
    high = f"${price_max}" if price_max is not None else ""
    return f"{low}..{high}"


@app.command()
def check(
    title: Annotated[str, typer.Argument(help="Post title to test.")],
    flair: Annotated[
        Optional[str],
        typer.Option(
            "--flair",
            help="Link flair of the post.",
        ),
    ] = None,
    config_path: ConfigOption = Path("config.yaml"),
) -> None:
    """Show how a title is parsed and which rule it would match."""
    from salewatch.listings import Listing, extract_title

    _, rules = _load_settings_and_rules(config_path)

    parsed = extract_title(title, "check")
    if parsed is None:
        console.print("[yellow]Title could not be parsed.[/yellow]")
        console.print("Expected a title like: [bold]\\[GPU] Some card $499.99[/bold]")
        raise typer.Exit(1)

    table = Table(title="Parsed Title")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Product Type", escape(parsed.product_type))
    table.add_row("Description", escape(parsed.description))
    table.add_row("Price", f"{parsed.price:g}")
    table.add_row("Extra", escape(parsed.extra_details or "-"))
    table.add_row("Flair", escape(flair or "-"))
    console.print(table)

    listing = Listing(id="check", created_utc=0, title=title, url="", link_flair_text=flair)
    rule = rules.get_matching_rule(listing, parsed)
    if rule is None:
        console.print("[yellow]No rule matches.[/yellow]")
    else:
        console.print(f"[green]Matches rule:[/green] {escape(rule.display_name)} [dim]({rule.fingerprint})[/dim]")


@app.command()
def status(
    config_path: ConfigOption = Path("config.yaml"),
    limit: Annotated[
        int,
        typer.Option(
            "--limit",
            "-n",
            help="Number of recent matches to show.",
        ),
    ] = 10,
) -> None:
    """Show SaleWatch status and recent matches."""
    from salewatch.database import get_engine, get_session, init_database
    from salewatch.database.repository import WatchRepository
    from salewatch.matcher.rules import UNNAMED_RULE

    settings = _load_settings(config_path)

    db_path = settings.database.path
    if not db_path.exists():
        console.print(f"[yellow]Database not found at {db_path}[/yellow]")
        console.print("Run [bold]salewatch init[/bold] to create the database.")
        raise typer.Exit(1)

    engine = get_engine(db_path)
    init_database(engine)  # Ensure tables exist

    with get_session() as session:
        repository = WatchRepository(session)
        counts = repository.count_rows()
        recent = repository.recent_matches(limit)

    table = Table(title="SaleWatch Status")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Database Path", str(db_path))
    table.add_row("Posts", str(counts["posts"]))
    table.add_row("Parsed Titles", str(counts["parsed_titles"]))
    table.add_row("Rules", str(counts["rules"]))
    table.add_row("Matches", str(counts["rule_matches"]))
    console.print(table)

    if not recent:
        console.print("[dim]No matches yet.[/dim]")
        return

    matches_table = Table(title=f"Recent Matches ({len(recent)} shown)")
    matches_table.add_column("Matched", style="dim")
    matches_table.add_column("Rule", style="cyan")
    matches_table.add_column("Title", style="green", max_width=60)

    for match, rule, post in recent:
        matches_table.add_row(
            match.created_utc.strftime("%Y-%m-%d %H:%M:%S"),
            escape(rule.name or UNNAMED_RULE),
            escape(post.title),
        )

    console.print(matches_table)


@app.command("test-notify")
def test_notify(
    config_path: ConfigOption = Path("config.yaml"),
    channel: Annotated[
        str,
        typer.Option(
            "--channel",
            help="Notification channel to test (discord or sms).",
        ),
    ] = "discord",
) -> None:
    """Send a test notification to verify configuration."""
    import requests

    from salewatch.notifier import (
        DiscordNotifier,
        NotificationContent,
        NotificationError,
        SmsNotifier,
    )

    settings = _load_settings(config_path)

    if channel.lower() == "discord":
        notifier = DiscordNotifier(settings.discord)
    elif channel.lower() == "sms":
        notifier = SmsNotifier(settings.twilio)
    else:
        console.print(f"[red]Unknown channel: {channel}[/red]")
        console.print("Valid channels: discord, sms")
        raise typer.Exit(1)

    if not notifier.is_enabled():
        console.print(f"[yellow]{channel} notifications are not enabled or configured.[/yellow]")
        console.print("Check your config.yaml file.")
        raise typer.Exit(1)

    console.print(f"[blue]Sending test notification via {channel}...[/blue]")

    try:
        if isinstance(notifier, DiscordNotifier):
            content = NotificationContent(
                title="Test Rule",
                body="[GPU] SaleWatch configuration test $0.00",
                link=f"https://www.reddit.com/r/{settings.reddit.subreddit}/new",
            )
            asyncio.run(notifier.send_batch([content]))
        else:
            notifier.send_text("This is a test message from SaleWatch.")
    except (NotificationError, requests.RequestException) as e:
        console.print(f"[red]Failed to send test notification via {channel}: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Test notification sent successfully via {channel}![/green]")


if __name__ == "__main__":
    app()
