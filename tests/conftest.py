"""Shared fixtures: isolated home directory, sample configs and fake capabilities."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

import pytest

from clerk_trades.config import (
    ConfigLocator,
    ConfigRepository,
    DiscoveryMode,
    DiscoverySettings,
    GlobalConfig,
    ListingConfig,
)
from clerk_trades.engine.lister import ListingRow
from clerk_trades.errors import DiscoveryError, ExtractionError
from clerk_trades.infra import LinkStore, TradeStore
from clerk_trades.models import FetchedDocument, TradeRecord


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("CLERK_TRADES_HOME", str(home))
    return home


@pytest.fixture
def sample_global_config() -> GlobalConfig:
    return GlobalConfig(listing=ListingConfig(base_url="https://x/"))


@pytest.fixture
def temp_config_repository(isolated_home: Path) -> Iterable[ConfigRepository]:
    locator = ConfigLocator(project_root=isolated_home)
    yield ConfigRepository(locator)


@pytest.fixture
def link_store(tmp_path: Path) -> LinkStore:
    return LinkStore(tmp_path / "links.json")


@pytest.fixture
def trade_store(tmp_path: Path) -> TradeStore:
    return TradeStore(tmp_path / "trades.json")


@pytest.fixture
def make_trade() -> Callable[..., TradeRecord]:
    def _builder(**overrides: Any) -> TradeRecord:
        base: dict[str, Any] = {
            "Name": "Jane Doe",
            "Asset": "Apple Inc.",
            "Ticker": "AAPL",
            "Type": "Purchase",
            "Date": "2024-01-01",
            "Filed": "2024-01-10",
            "Amount": "$1-15K",
            "Cap": False,
        }
        base.update(overrides)
        return TradeRecord.model_validate(base)

    return _builder


class FakeLister:
    """In-memory listing: ``pages`` maps 1-based page numbers to rows."""

    def __init__(
        self,
        pages: dict[int, list[ListingRow]],
        *,
        failing_pages: Iterable[int] = (),
        page_count_error: str | None = None,
        stop_after: int | None = None,
    ) -> None:
        self.pages = pages
        self.failing_pages = set(failing_pages)
        self.page_count_error = page_count_error
        self.stop_after = stop_after
        self.current = 0
        self.scraped: list[int] = []
        self.closed = False

    def page_count(self) -> int:
        if self.page_count_error:
            raise DiscoveryError(self.page_count_error)
        return len(self.pages)

    def goto_page(self, number: int) -> None:
        self.current = number

    def rows(self) -> list[ListingRow]:
        if self.current in self.failing_pages:
            raise RuntimeError("table vanished")
        return list(self.pages.get(self.current, []))

    def next_page(self) -> bool:
        if self.stop_after is not None and self.current >= self.stop_after:
            return False
        if self.current >= len(self.pages):
            return False
        self.current += 1
        return True

    def scrape_page(self, number: int) -> list[ListingRow]:
        self.scraped.append(number)
        if number in self.failing_pages:
            raise DiscoveryError("table vanished", page=number)
        return list(self.pages.get(number, []))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_lister() -> Callable[..., FakeLister]:
    return FakeLister


@pytest.fixture
def rows() -> Callable[..., list[ListingRow]]:
    def _builder(*hrefs: str, name: str = "Hon. Jane Doe") -> list[ListingRow]:
        return [ListingRow(display_name=name, href=href) for href in hrefs]

    return _builder


@pytest.fixture
def discovery_settings() -> Callable[..., DiscoverySettings]:
    def _builder(**overrides: Any) -> DiscoverySettings:
        base: dict[str, Any] = {"mode": DiscoveryMode.CONCURRENT, "page_workers": 2}
        base.update(overrides)
        return DiscoverySettings(**base)

    return _builder


class StubExtractor:
    def __init__(
        self,
        trades: Sequence[TradeRecord] = (),
        error: ExtractionError | None = None,
    ) -> None:
        self.trades = list(trades)
        self.error = error
        self.calls: list[list[str]] = []

    def extract(self, documents: Sequence[FetchedDocument]) -> list[TradeRecord]:
        self.calls.append([document.link for document in documents])
        if self.error is not None:
            raise self.error
        return list(self.trades)


class StubNotifier:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[list[TradeRecord]] = []

    def notify(self, trades: Sequence[TradeRecord]) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append(list(trades))


@pytest.fixture
def stub_extractor() -> Callable[..., StubExtractor]:
    return StubExtractor


@pytest.fixture
def stub_notifier() -> Callable[..., StubNotifier]:
    return StubNotifier
