from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
import typer
from rich.console import Console
from typer.testing import CliRunner

from clerk_trades.app import AppState, app, parse_run_target
from clerk_trades.config import GlobalConfig
from clerk_trades.engine import WorkerPool
from clerk_trades.errors import ConfigurationError
from clerk_trades.infra import LinkStore, TradeStore
from clerk_trades.orchestrator import TickReport


class StubCoordinator:
    def __init__(self, reports: list[TickReport]) -> None:
        self.reports = reports
        self.calls: list[dict] = []
        self.closed = False

    def guarded_cycle(self, *, list_reports: int = 0, name: str | None = None) -> list[TickReport]:
        self.calls.append({"list_reports": list_reports, "name": name})
        return self.reports

    def scheduled_cycle(self, *, name: str | None = None) -> None:
        self.calls.append({"scheduled": True, "name": name})

    def close(self) -> None:
        self.closed = True


class StubScheduler:
    def __init__(self) -> None:
        self.jobs: list[tuple[int, object]] = []
        self.started = False
        self.stopped = False

    def schedule_pipeline(self, interval_hours, callback) -> None:  # noqa: ANN001
        self.jobs.append((interval_hours, callback))

    def start(self) -> None:
        self.started = True

    def shutdown(self) -> None:
        self.stopped = True


def make_state(tmp_path: Path) -> AppState:
    return AppState(
        repository=SimpleNamespace(),
        config=GlobalConfig(),
        link_store=LinkStore(tmp_path / "links.json"),
        trade_store=TradeStore(tmp_path / "trades.json"),
        scheduler=StubScheduler(),
        pool=WorkerPool(),
    )


@pytest.fixture
def state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppState:
    state = make_state(tmp_path)
    monkeypatch.setattr("clerk_trades.app.build_state", lambda verbose, log_to_file=False: state)
    monkeypatch.setattr("clerk_trades.app.wait_for_shutdown", lambda: None)
    monkeypatch.setattr("clerk_trades.app.console", Console(width=200))
    return state


@pytest.fixture
def coordinator(monkeypatch: pytest.MonkeyPatch) -> StubCoordinator:
    stub = StubCoordinator([TickReport(new_links=["https://x/doc1"], fetched=1)])
    monkeypatch.setattr("clerk_trades.app.build_coordinator", lambda state, notifier=None: stub)
    return stub


@pytest.mark.parametrize(
    ("value", "name", "expected"),
    [
        ("24h", None, (24, 0)),
        ("3H", None, (3, 0)),
        ("1", None, (0, 1)),
        ("5", None, (0, 5)),
        (None, "Jane Doe", (24, 0)),
        ("3", "Jane Doe", (24, 0)),
    ],
)
def test_parse_run_target(value, name, expected) -> None:
    assert parse_run_target(value, name) == expected


@pytest.mark.parametrize(
    ("value", "message"),
    [
        ("2h", "minimum duration must be 3h"),
        ("0", "list must be between 1 and 5"),
        ("6", "list must be between 1 and 5"),
        ("24m", "only hours"),
        (None, "provide an update interval"),
    ],
)
def test_parse_run_target_rejects(value, message) -> None:
    with pytest.raises(typer.BadParameter, match=message):
        parse_run_target(value, None)


def test_cli_run_list_mode(state, coordinator) -> None:
    result = CliRunner().invoke(app, ["run", "3"])
    assert result.exit_code == 0, result.stdout
    assert coordinator.calls == [{"list_reports": 3, "name": None}]
    assert "Run summary" in result.stdout
    assert state.scheduler.jobs == []
    assert state.scheduler.stopped
    assert coordinator.closed


def test_cli_run_recurring(state, coordinator) -> None:
    result = CliRunner().invoke(app, ["run", "12h"])
    assert result.exit_code == 0, result.stdout
    assert coordinator.calls == [{"list_reports": 0, "name": None}]
    interval, callback = state.scheduler.jobs[0]
    assert interval == 12
    assert state.scheduler.started
    callback()
    assert coordinator.calls[-1] == {"scheduled": True, "name": None}
    assert "every 12h" in result.stdout


def test_cli_run_by_name_restores_link_history(state, coordinator) -> None:
    state.link_store.add_new(["https://x/kept"])
    result = CliRunner().invoke(app, ["run", "--name", "Jane Doe"])
    assert result.exit_code == 0, result.stdout
    assert coordinator.calls[0] == {"list_reports": 0, "name": "Jane Doe"}
    assert state.scheduler.jobs[0][0] == 24
    assert state.link_store.items() == ["https://x/kept"]
    assert not state.link_store.backup_path.exists()


def test_cli_run_failed_tick_exits_nonzero(state, coordinator) -> None:
    coordinator.reports = [TickReport(error="no report links stored.")]
    result = CliRunner().invoke(app, ["run", "2"])
    assert result.exit_code == 1
    assert coordinator.closed


def test_cli_recurring_schedules_after_failed_first_tick(state, coordinator) -> None:
    coordinator.reports = [TickReport(error="unexpected error: Invalid port: 'notaport'")]
    result = CliRunner().invoke(app, ["run", "6h"])
    assert result.exit_code == 0, result.stdout
    assert state.scheduler.jobs[0][0] == 6
    assert state.scheduler.started


def test_cli_run_missing_secret(state, monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(state, notifier=None):  # noqa: ANN001
        raise ConfigurationError("GEMINI_API_KEY environment variable is not set (trade extraction)")

    monkeypatch.setattr("clerk_trades.app.build_coordinator", fail)
    result = CliRunner().invoke(app, ["run", "24h"])
    assert result.exit_code == 1
    assert "GEMINI_API_KEY" in result.stdout


def test_cli_run_rejects_short_interval(state, coordinator) -> None:
    result = CliRunner().invoke(app, ["run", "1h"])
    assert result.exit_code == 2
    assert coordinator.calls == []


def test_cli_trades_and_links(state, make_trade) -> None:
    runner = CliRunner()
    empty = runner.invoke(app, ["trades"])
    assert empty.exit_code == 0
    assert "no trades stored yet" in empty.stdout

    state.trade_store.update(lambda existing: [make_trade(Ticker="NVDA")])
    state.link_store.add_new(["https://x/doc1", "https://x/doc2"])
    trades = runner.invoke(app, ["trades", "--limit", "5"])
    assert trades.exit_code == 0, trades.stdout
    assert "NVDA" in trades.stdout

    links = runner.invoke(app, ["links", "-l", "1"])
    assert links.exit_code == 0, links.stdout
    assert "https://x/doc1" not in links.stdout
    assert "doc2" in links.stdout


def test_cli_log_commands(state, isolated_home: Path) -> None:
    log_dir = isolated_home / "logs"
    log_dir.mkdir(exist_ok=True)
    (log_dir / "10181200.log").write_text("first\nsecond\nthird\n", encoding="utf-8")
    runner = CliRunner()

    listing = runner.invoke(app, ["log", "list"])
    assert listing.exit_code == 0
    assert "10181200.log" in listing.stdout

    shown = runner.invoke(app, ["log", "show", "10181200.log", "-n", "2"])
    assert shown.exit_code == 0
    assert shown.stdout.splitlines() == ["second", "third"]

    missing = runner.invoke(app, ["log", "show", "nope.log"])
    assert missing.exit_code == 1


def test_parse_run_target_uses_configured_default() -> None:
    assert parse_run_target(None, None, 6) == (6, 0)
    assert parse_run_target("2", None, 6) == (0, 2)


def test_cli_run_without_target_uses_config_interval(state, coordinator) -> None:
    state.config = GlobalConfig(schedule_interval_hours=8)
    result = CliRunner().invoke(app, ["run"])
    assert result.exit_code == 0, result.stdout
    assert coordinator.calls == [{"list_reports": 0, "name": None}]
    assert state.scheduler.jobs[0][0] == 8
