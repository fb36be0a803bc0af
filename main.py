from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Mapping, Optional, TextIO

import click
import schedule
from rich.console import Console
from rich.table import Table

from models.keyword_list import KeywordConfig
from services.auth_service import AuthService
from services.content_service import simplify
from services.email_classifier import EmailClassifier
from services.gmail_service import GmailService
from services.ingest_service import IngestResult, IngestService
from services.persistence_service import MESSAGE_FILTERS, MessageStore
from services.statistics_service import StatisticsService
from services.tagging_service import TaggingResult, TaggingService
from utils.config import AccountConfig, AppConfig, load_config
from utils.keyword_lists import ParseError, load_keyword_lists
from utils.logger import configure_logging


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AppContext:
    config: AppConfig
    account: AccountConfig
    keywords: KeywordConfig
    classifier: EmailClassifier
    store: MessageStore
    stats: StatisticsService
    console: Console
    _gmail: Optional[GmailService] = None

    def gmail(self) -> GmailService:
        """Authenticate on first use so offline commands never open a browser."""

        if self._gmail is None:
            self._gmail = GmailService(self.account, AuthService(self.account))
        return self._gmail


def build_context(env_file: str, account_name: str | None) -> AppContext:
    config = load_config(env_file)
    configure_logging(config.log_dir, config.log_level)
    account = config.get_account(account_name)
    keywords = load_keyword_lists(config.keywords_file, literal_phrases=config.literal_phrases)

    return AppContext(
        config=config,
        account=account,
        keywords=keywords,
        classifier=EmailClassifier(keywords),
        store=MessageStore(config.db_path),
        stats=StatisticsService(config.stats_file),
        console=Console(),
    )


@click.group()
@click.option("--env-file", default=".env", show_default=True, help="Path to the .env file")
@click.option("--account", help="Account name defined in accounts.json")
@click.pass_context
def cli(ctx: click.Context, env_file: str, account: Optional[str]) -> None:
    """Download a Gmail inbox and tag messages against keyword lists."""

    try:
        ctx.obj = build_context(env_file, account)
    except KeyError as exc:  # invalid account
        raise click.BadParameter(str(exc), param_hint="--account") from exc
    except (ParseError, FileNotFoundError) as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command("fetch")
@click.option("--query", default=None, help="Gmail search query, e.g. 'newer_than:7d'")
@click.pass_obj
def fetch(app: AppContext, query: Optional[str]) -> None:
    """Store every inbox message that is not in the local database yet."""

    result = _perform_fetch(app, query)
    app.console.print(f"Listed [bold]{result.listed}[/bold] message(s), saved [bold]{result.saved}[/bold] new.")


@cli.command("classify")
@click.option("--retag", is_flag=True, help="Clear existing tags and classify every message again")
@click.option("--label/--no-label", default=False, help="Also add the tags as Gmail labels")
@click.pass_obj
def classify(app: AppContext, retag: bool, label: bool) -> None:
    """Tag stored messages that have not been classified yet."""

    if retag:
        cleared = app.store.clear_tags()
        app.console.print(f"[dim]Cleared tags on {cleared} message(s).[/dim]")
    result = _perform_classify(app, label=label)
    _print_tagging_result(app, result)


@cli.command("run")
@click.option("--query", default=None, help="Gmail search query")
@click.option("--label/--no-label", default=False, help="Also add the tags as Gmail labels")
@click.pass_obj
def run(app: AppContext, query: Optional[str], label: bool) -> None:
    """Fetch new messages, then classify everything untagged."""

    ingest = _perform_fetch(app, query)
    app.console.print(f"Listed {ingest.listed}, saved {ingest.saved} new message(s).")
    _print_tagging_result(app, _perform_classify(app, label=label))


@cli.command("messages")
@click.option("--filter", "filter_name", type=click.Choice(sorted(MESSAGE_FILTERS)), default=None)
@click.option("--limit", type=int, default=10, show_default=True)
@click.option("--offset", type=int, default=0, show_default=True)
@click.pass_obj
def messages(app: AppContext, filter_name: Optional[str], limit: int, offset: int) -> None:
    """List stored messages, newest first."""

    rows = app.store.list_messages(filter_name, limit=limit, offset=offset)
    if not rows:
        app.console.print("[bold green]No messages found.[/bold green]")
        return

    table = Table(title=f"Messages ({filter_name or 'all'})")
    table.add_column("ID", justify="right")
    table.add_column("Received")
    table.add_column("Sender")
    table.add_column("Subject")
    table.add_column("Tags")
    for row in rows:
        email = simplify(row)
        received = email.received_at.strftime("%Y-%m-%d %H:%M") if email.received_at else "-"
        if row.tags is None:
            tags = "[dim]untagged[/dim]"
        else:
            tags = ", ".join(email.tags) or "-"
        table.add_row(str(email.id), received, email.sender or "Unknown", email.subject, tags)
    app.console.print(table)


@cli.command("count")
@click.option("--filter", "filter_name", type=click.Choice(sorted(MESSAGE_FILTERS)), default=None)
@click.pass_obj
def count(app: AppContext, filter_name: Optional[str]) -> None:
    """Count stored messages."""

    app.console.print(str(app.store.count(filter_name)))


@cli.command("keywords")
@click.pass_obj
def keywords(app: AppContext) -> None:
    """Show the parsed keyword lists."""

    table = Table(title=f"Keyword lists ({app.keywords.source})")
    table.add_column("Name")
    table.add_column("Threshold", justify="right")
    table.add_column("Words (stemmed)")
    table.add_column("Phrases")
    table.add_column("Description")
    for lst in app.keywords.lists:
        table.add_row(
            lst.name,
            f"{lst.threshold:g}",
            ", ".join(lst.words) or "-",
            ", ".join(lst.phrases) or "-",
            lst.description or "-",
        )
    app.console.print(table)


@cli.command("tag-text")
@click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
@click.pass_obj
def tag_text(app: AppContext, source: TextIO) -> None:
    """Tag arbitrary text from a file (or stdin) and show each list's frequency."""

    text = source.read()
    tags = set(app.classifier.classify_text(text))
    table = Table(title="Keyword frequencies")
    table.add_column("List")
    table.add_column("Frequency", justify="right")
    table.add_column("Threshold", justify="right")
    table.add_column("Tagged")
    thresholds = {lst.name: lst.threshold for lst in app.keywords.lists}
    for name, frequency in app.classifier.frequencies(text).items():
        table.add_row(name, f"{frequency:.4f}", f"{thresholds[name]:g}", "yes" if name in tags else "")
    app.console.print(table)


@cli.command("stats")
@click.pass_obj
def stats(app: AppContext) -> None:
    """Display local activity statistics."""

    snapshot = app.stats.snapshot()
    if not snapshot:
        app.console.print("No stats recorded yet.")
        return

    table = Table(title="Global stats")
    table.add_column("Metric")
    table.add_column("Value")
    for metric in ("fetch_runs", "messages_listed", "messages_saved", "tag_runs", "messages_tagged"):
        table.add_row(metric.replace("_", " ").capitalize(), str(snapshot.get(metric, 0)))
    tags = snapshot.get("tags", {})
    if tags:
        table.add_row("Tag counts", _format_counts(tags))
    table.add_row("Stored messages", str(app.store.count()))
    app.console.print(table)

    accounts = snapshot.get("accounts", {})
    if accounts:
        acct_table = Table(title="Per-account stats")
        acct_table.add_column("Account")
        acct_table.add_column("Fetch runs")
        acct_table.add_column("Saved")
        acct_table.add_column("Tag runs")
        acct_table.add_column("Tags")
        for name, data in accounts.items():
            acct_table.add_row(
                name,
                str(data.get("fetch_runs", 0)),
                str(data.get("messages_saved", 0)),
                str(data.get("tag_runs", 0)),
                _format_counts(data.get("tags", {})) or "-",
            )
        app.console.print(acct_table)


@cli.command("schedule")
@click.option("--interval", type=int, default=None, help="Interval in minutes (defaults to SCHEDULE_INTERVAL_MINUTES)")
@click.option("--label/--no-label", default=False, help="Also add the tags as Gmail labels")
@click.pass_obj
def schedule_tasks(app: AppContext, interval: Optional[int], label: bool) -> None:
    """Fetch and classify on an interval using the schedule library."""

    minutes = interval or app.config.schedule_interval

    def job() -> None:
        started = time.monotonic()
        LOGGER.info("Task fetch+classify starting")
        ingest = _perform_fetch(app, app.config.gmail_query)
        result = _perform_classify(app, label=label)
        app.console.print(
            f"[scheduler] saved {ingest.saved} new, tagged {result.tagged} "
            f"({_format_counts(result.tag_counts) or 'no tags'})"
        )
        LOGGER.info("Task fetch+classify complete in %.0f ms", (time.monotonic() - started) * 1000)

    schedule.every(minutes).minutes.do(job)

    app.console.print(
        f"Running fetch+classify every {minutes} minute(s) for account {app.account.name}. Press Ctrl+C to stop."
    )
    try:
        job()
        while True:
            schedule.run_pending()
            time.sleep(1)
    except KeyboardInterrupt:
        app.console.print("Scheduler stopped.")


def main() -> None:
    cli(standalone_mode=True)


def _perform_fetch(app: AppContext, query: Optional[str]) -> IngestResult:
    ingest = IngestService(app.gmail(), app.store, max_pages=app.config.gmail_max_pages)
    result = ingest.persist_unseen(query or app.config.gmail_query)
    app.stats.record_fetch(app.account.name, result.listed, result.saved)
    return result


def _perform_classify(app: AppContext, label: bool) -> TaggingResult:
    tagging = TaggingService(
        app.classifier,
        app.store,
        batch_size=app.config.classify_batch_size,
        max_workers=app.config.classify_max_workers,
        max_batches=app.config.classify_max_batches,
        gmail=app.gmail() if label else None,
        label_prefix=app.config.label_prefix,
    )
    result = tagging.tag_untagged()
    if result.tagged:
        app.stats.record_tagging(app.account.name, result.tagged, result.tag_counts)
    return result


def _print_tagging_result(app: AppContext, result: TaggingResult) -> None:
    if not result.tagged:
        app.console.print("[bold green]No untagged messages.[/bold green]")
        return
    summary = _format_counts(result.tag_counts) or "no tags applied"
    app.console.print(f"[bold blue]Tagged {result.tagged} message(s)[/bold blue] {summary}")


def _format_counts(counts: Mapping[str, int]) -> str:
    return ", ".join(f"{name}: {value}" for name, value in sorted(counts.items()))


if __name__ == "__main__":
    main()
