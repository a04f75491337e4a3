"""Typer CLI entrypoint for clerk-trades."""

from __future__ import annotations

import re
import signal
import threading
from dataclasses import dataclass
from functools import partial
from typing import Optional, Sequence

import typer
from typer import BadParameter
from rich import box
from rich.console import Console
from rich.table import Table

from .config import MAX_LIST_REPORTS, MIN_INTERVAL_HOURS, ConfigRepository, GlobalConfig
from .engine import (
    DocumentFetcher,
    GeminiExtractor,
    LinkDiscovery,
    PlaywrightLister,
    Reconciler,
    WorkerPool,
)
from .errors import ClerkTradesError
from .infra import LinkStore, TradeStore
from .logging_conf import available_logs, component_logger, configure_logging, run_log_path, tail_log
from .notifier import MailgunNotifier
from .orchestrator import Coordinator, TickReport
from .scheduler import APSchedulerAdapter
from .ui import links_table, trades_table

app = typer.Typer(
    help="CLERK TRADES - U.S. Government Official Financial Report Tracker",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Inspect log files.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
app.add_typer(log_app, name="log")

console = Console()

NAME_SEARCH_INTERVAL_HOURS = 24
_HOURS_PATTERN = re.compile(r"^(?P<hours>\d+)h$")


@dataclass
class AppState:
    repository: ConfigRepository
    config: GlobalConfig
    link_store: LinkStore
    trade_store: TradeStore
    scheduler: APSchedulerAdapter
    pool: WorkerPool


def build_state(verbose: bool, log_to_file: bool = False) -> AppState:
    configure_logging(verbose=verbose, log_file=run_log_path() if log_to_file else None)
    repository = ConfigRepository()
    config = repository.load_global_config()
    return AppState(
        repository=repository,
        config=config,
        link_store=LinkStore(repository.links_path(config)),
        trade_store=TradeStore(repository.trades_path(config)),
        scheduler=APSchedulerAdapter(),
        pool=WorkerPool(),
    )


def build_notifier(state: AppState) -> MailgunNotifier:
    settings = state.config.notifier
    api_key = state.repository.require_secret(settings.api_key_env, "email notifications")
    notifier = MailgunNotifier(settings, api_key, logger=component_logger("notifier"))
    notifier.sync_mailing_list()
    return notifier


def build_coordinator(state: AppState, notifier: MailgunNotifier | None = None) -> Coordinator:
    config = state.config
    api_key = state.repository.require_secret(config.extractor.api_key_env, "trade extraction")
    lister = PlaywrightLister(
        config.listing, user_agent=config.fetch.user_agent, logger=component_logger("lister")
    )
    discovery = LinkDiscovery(
        lister,
        state.link_store,
        config.listing,
        config.discovery,
        pool=state.pool,
        logger=component_logger("discovery"),
    )
    return Coordinator(
        link_store=state.link_store,
        trade_store=state.trade_store,
        discovery=discovery,
        fetcher=DocumentFetcher(config.fetch, state.pool, logger=component_logger("fetcher")),
        extractor=GeminiExtractor(config.extractor, api_key, logger=component_logger("extractor")),
        reconciler=Reconciler(
            state.trade_store, config.reconcile.policy, logger=component_logger("reconcile")
        ),
        notifier=notifier,
        max_followup_passes=config.discovery.max_followup_passes,
        console=console,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def parse_run_target(
    value: Optional[str], name: Optional[str], default_hours: Optional[int] = None
) -> tuple[int, int]:
    """Return ``(interval_hours, list_reports)``; exactly one of them is non-zero."""

    if name:
        return NAME_SEARCH_INTERVAL_HOURS, 0
    if value is None and default_hours:
        return default_hours, 0
    if value is None:
        raise BadParameter("provide an update interval (e.g. 24h) or a number of reports to list.")
    text = value.strip().lower()
    if text.isdigit():
        count = int(text)
        if not 0 < count <= MAX_LIST_REPORTS:
            raise BadParameter(f"list must be between 1 and {MAX_LIST_REPORTS}.")
        return 0, count
    match = _HOURS_PATTERN.match(text)
    if match is None:
        raise BadParameter("invalid duration format; only hours (h) are accepted.")
    hours = int(match.group("hours"))
    if hours < MIN_INTERVAL_HOURS:
        raise BadParameter(f"minimum duration must be {MIN_INTERVAL_HOURS}h.")
    return hours, 0


def wait_for_shutdown() -> None:
    """Block until SIGINT/SIGTERM (or SIGHUP where available)."""

    stop = threading.Event()
    for name in ("SIGINT", "SIGTERM", "SIGHUP", "SIGQUIT"):
        signum = getattr(signal, name, None)
        if signum is not None:
            signal.signal(signum, lambda received, _frame: stop.set())
    while not stop.wait(1.0):
        pass


def _render_summary(reports: Sequence[TickReport]) -> Table:
    table = Table(title="Run summary", box=box.SIMPLE_HEAD)
    table.add_column("Tick", style="dim", justify="right")
    table.add_column("New links", justify="right")
    table.add_column("Page errors", style="red", justify="right")
    table.add_column("Fetched", style="green", justify="right")
    table.add_column("Failed", style="red", justify="right")
    table.add_column("Trades", justify="right")
    table.add_column("Added", style="cyan", justify="right")
    table.add_column("Status", overflow="fold")
    for index, report in enumerate(reports, start=1):
        table.add_row(
            str(index),
            str(len(report.new_links)),
            str(len(report.page_errors)),
            str(report.fetched),
            str(len(report.fetch_errors)),
            str(len(report.extracted)),
            str(len(report.added)),
            "ok" if report.ok else f"error: {report.error}",
        )
    return table


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    log: bool = typer.Option(False, "--log", help="Also save logs to a per-run file."),
) -> None:
    ctx.obj = build_state(verbose, log_to_file=log)


@app.command("run", help="Check for new reports every N hours (e.g. 24h), or list the last 1-5 reports.")
def run(
    ctx: typer.Context,
    target: Optional[str] = typer.Argument(
        None,
        help=(
            f"Update interval such as 24h (minimum {MIN_INTERVAL_HOURS}h) or a report count "
            f"1-{MAX_LIST_REPORTS}. Defaults to schedule_interval_hours from the config."
        ),
    ),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Only track reports of this individual."),
    email: bool = typer.Option(False, "--email", "-e", help="E-mail trade results via Mailgun."),
) -> None:
    state = _get_state(ctx)
    interval_hours, list_reports = parse_run_target(
        target, name, state.config.schedule_interval_hours
    )

    notifier = None
    try:
        if email:
            notifier = build_notifier(state)
            console.print(f"results will be sent to {', '.join(notifier.recipients)}", style="dim")
        coordinator = build_coordinator(state, notifier)
    except ClerkTradesError as exc:
        console.print(f"error: {exc}", style="red")
        raise typer.Exit(code=1) from exc

    if name:
        backup = state.link_store.backup_and_clear()
        console.print(f"link history saved to {backup.name} while searching for {name}.", style="dim")

    try:
        reports = coordinator.guarded_cycle(list_reports=list_reports, name=name)
        console.print(_render_summary(reports))
        if interval_hours == 0:
            if not reports[-1].ok:
                raise typer.Exit(code=1)
            return
        state.scheduler.schedule_pipeline(
            interval_hours, partial(coordinator.scheduled_cycle, name=name)
        )
        state.scheduler.start()
        console.print(f"checking for new reports every {interval_hours}h. press Ctrl+C to stop.")
        wait_for_shutdown()
    finally:
        state.scheduler.shutdown()
        if name and state.link_store.restore_backup():
            console.print("link history restored.", style="dim")
        coordinator.close()


@app.command("trades", help="Show reconciled trades.")
def trades(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-l", min=1, help="Number of most recent trades."),
) -> None:
    state = _get_state(ctx)
    records = state.trade_store.tail(limit)
    if not records:
        console.print("no trades stored yet.", style="yellow")
        raise typer.Exit(code=0)
    console.print(trades_table(records, title="Stored trades"))


@app.command("links", help="Show discovered report links.")
def links(
    ctx: typer.Context,
    limit: int = typer.Option(10, "--limit", "-l", min=1, help="Number of most recent links."),
) -> None:
    state = _get_state(ctx)
    total = len(state.link_store)
    if total == 0:
        console.print("no report links stored yet.", style="yellow")
        raise typer.Exit(code=0)
    console.print(links_table(state.link_store.tail(limit), total))


@log_app.command("list", help="List available log files.")
def log_list() -> None:
    paths = list(available_logs())
    if not paths:
        console.print("no log files yet.", style="yellow")
        raise typer.Exit(code=0)
    for path in paths:
        console.print(path.name)


@log_app.command("show", help="Show the end of a log file.")
def log_show(
    name: str = typer.Argument("clerk_trades.log", help="Log file name."),
    lines: int = typer.Option(50, "--lines", "-n", min=1, help="Number of lines."),
) -> None:
    matches = [path for path in available_logs() if path.name == name]
    if not matches:
        console.print(f"log file not found: {name}", style="red")
        raise typer.Exit(code=1)
    for line in tail_log(matches[0], lines):
        console.print(line.rstrip("\n"), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
