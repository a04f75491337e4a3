"""Pipeline coordinator sequencing discovery, fetch, extraction, reconciliation and delivery."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import structlog
from rich.console import Console

from .engine import DocumentFetcher, Extractor, LinkDiscovery, Reconciler
from .errors import ClerkTradesError
from .infra import LinkStore, TradeStore
from .logging_conf import component_logger
from .models import TradeRecord
from .notifier import Notifier
from .ui import trades_table


class TickState(str, Enum):
    """Stages of one pipeline run."""

    IDLE = "idle"
    DISCOVERING = "discovering"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    RECONCILING = "reconciling"
    NOTIFYING = "notifying"


@dataclass(slots=True)
class TickReport:
    """What one tick did and, if it stopped early, why."""

    list_reports: int = 0
    name: str | None = None
    links: list[str] = field(default_factory=list)
    new_links: list[str] = field(default_factory=list)
    page_errors: dict[int, str] = field(default_factory=dict)
    fetched: int = 0
    fetch_errors: dict[str, str] = field(default_factory=dict)
    extracted: list[TradeRecord] = field(default_factory=list)
    added: list[TradeRecord] = field(default_factory=list)
    notified: bool = False
    continue_looping: bool = False
    error: str | None = None
    states: list[TickState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


class Coordinator:
    """Run ticks against the stores it owns.

    A tick either discovers new links or, in list mode, re-processes the last
    ``list_reports`` stored links. Batch-fatal errors end the tick and are
    recorded on its report; the stores keep whatever earlier stages persisted.
    """

    def __init__(
        self,
        link_store: LinkStore,
        trade_store: TradeStore,
        discovery: LinkDiscovery,
        fetcher: DocumentFetcher,
        extractor: Extractor,
        reconciler: Reconciler,
        notifier: Notifier | None = None,
        *,
        max_followup_passes: int = 20,
        console: Console | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.link_store = link_store
        self.trade_store = trade_store
        self.discovery = discovery
        self.fetcher = fetcher
        self.extractor = extractor
        self.reconciler = reconciler
        self.notifier = notifier
        self.max_followup_passes = max_followup_passes
        self.console = console
        self.logger = logger or component_logger("coordinator")
        self.state = TickState.IDLE

    def close(self) -> None:
        for component in (self.fetcher, self.extractor, self.notifier):
            closer = getattr(component, "close", None)
            if callable(closer):
                closer()

    def _enter(self, report: TickReport, state: TickState) -> None:
        self.state = state
        report.states.append(state)

    def run_tick(self, *, list_reports: int = 0, name: str | None = None) -> TickReport:
        report = TickReport(list_reports=list_reports, name=name)
        try:
            self._run_stages(report)
        except ClerkTradesError as exc:
            report.error = str(exc)
            self.logger.error("tick_failed", state=self.state.value, error=str(exc))
        finally:
            self._enter(report, TickState.IDLE)
        return report

    def _run_stages(self, report: TickReport) -> None:
        self.logger.debug("links_loaded", reports=len(self.link_store))
        if report.list_reports > 0:
            if len(self.link_store) == 0:
                raise ClerkTradesError(
                    "no report links stored. run with an update interval first to collect links."
                )
            report.links = self.link_store.tail(report.list_reports)
        else:
            self._enter(report, TickState.DISCOVERING)
            if report.name:
                self.logger.info("checking_reports", name=report.name)
            else:
                self.logger.info("checking_reports")
            discovered = self.discovery.discover(report.name)
            report.new_links = discovered.new_links
            report.continue_looping = discovered.continue_looping
            report.page_errors = dict(discovered.page_errors)
            if report.page_errors:
                self.logger.warning("pages_skipped", pages=sorted(report.page_errors))
            report.links = list(discovered.new_links)

        if not report.links:
            self.logger.info("nothing_new_to_process")
            return

        self._enter(report, TickState.FETCHING)
        batch = self.fetcher.fetch(report.links)
        report.fetched = len(batch.documents)
        report.fetch_errors = dict(batch.errors)
        self.logger.debug("reports_fetched", links=batch.links)
        if not batch:
            self.logger.info("nothing_new_to_process", failed=len(batch.errors))
            return

        self._enter(report, TickState.EXTRACTING)
        report.extracted = self.extractor.extract(batch.documents)
        self.logger.info(
            "trades_found", trades=len(report.extracted), reports=len(batch.documents)
        )
        if self.console is not None and report.extracted:
            self.console.print(trades_table(report.extracted, title="Extracted trades"))

        self._enter(report, TickState.RECONCILING)
        report.added = self.reconciler.reconcile(report.extracted)

        if self.notifier is None:
            return
        outgoing = report.extracted if report.list_reports > 0 else report.added
        if not outgoing:
            return
        self._enter(report, TickState.NOTIFYING)
        self.notifier.notify(outgoing)
        report.notified = True
        self.logger.info("trade_reports_emailed", trades=len(outgoing))

    def run_cycle(self, *, list_reports: int = 0, name: str | None = None) -> list[TickReport]:
        """Run a tick, then follow-up ticks while name search asks to keep looping."""

        reports = [self.run_tick(list_reports=list_reports, name=name)]
        passes = 0
        while reports[-1].continue_looping and reports[-1].ok:
            if passes >= self.max_followup_passes:
                self.logger.warning("followup_limit_reached", passes=passes, name=name)
                break
            passes += 1
            self.logger.info("continue_looping", followup=passes, name=name)
            reports.append(self.run_tick(list_reports=list_reports, name=name))
        return reports

    def guarded_cycle(self, *, list_reports: int = 0, name: str | None = None) -> list[TickReport]:
        """:meth:`run_cycle` that turns an unexpected exception into a failed report."""

        try:
            return self.run_cycle(list_reports=list_reports, name=name)
        except Exception as exc:  # noqa: BLE001
            self.logger.exception("tick_crashed")
            self.state = TickState.IDLE
            return [
                TickReport(list_reports=list_reports, name=name, error=f"unexpected error: {exc}")
            ]

    def scheduled_cycle(self, *, name: str | None = None) -> None:
        """Scheduler callback; never lets an exception stop future ticks."""

        self.guarded_cycle(name=name)


__all__ = ["Coordinator", "TickReport", "TickState"]
