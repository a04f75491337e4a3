"""Listing access: the paginated disclosure search rendered through Playwright."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Protocol

import structlog
from selectolax.parser import HTMLParser

from ..config import ListingConfig
from ..errors import DiscoveryError


@dataclass(frozen=True, slots=True)
class ListingRow:
    """One row of the listing table."""

    display_name: str
    href: str


class Lister(Protocol):
    """Capability that renders and paginates the listing site."""

    def page_count(self) -> int:
        """Read the last page number from the pagination control."""

    def goto_page(self, number: int) -> None:
        """Show page ``number`` (1-based) in the primary session."""

    def rows(self) -> list[ListingRow]:
        """Rows of the page currently shown in the primary session."""

    def next_page(self) -> bool:
        """Advance the primary session; ``False`` when there is no next page."""

    def scrape_page(self, number: int) -> list[ListingRow]:
        """Rows of page ``number``; safe to call from worker threads."""

    def close(self) -> None:
        """Release browser resources."""


def parse_rows(html: str, config: ListingConfig) -> list[ListingRow]:
    """Extract ``(displayName, href)`` pairs from rendered table HTML."""

    parser = HTMLParser(html)
    rows: list[ListingRow] = []
    for row in parser.css(f"{config.table_selector} {config.row_selector}"):
        link = row.css_first(config.link_selector)
        if link is None:
            continue
        href = (link.attributes.get("href") or "").strip()
        name = " ".join(link.text(strip=True).split())
        rows.append(ListingRow(display_name=name, href=href))
    return rows


class _ListingSession:
    """Single browser page with the search already submitted."""

    def __init__(self, config: ListingConfig, user_agent: str | None) -> None:
        self._config = config
        self._user_agent = user_agent
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    def __enter__(self) -> "_ListingSession":
        self.start()
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def start(self) -> None:
        if self._playwright is not None:
            return
        from playwright.sync_api import Error as PlaywrightError
        from playwright.sync_api import sync_playwright

        config = self._config
        self._playwright = sync_playwright().start()
        try:
            self._browser = self._playwright.chromium.launch(headless=config.headless)
            self._context = self._browser.new_context(user_agent=self._user_agent)
            self._page = self._context.new_page()
            self._page.set_default_timeout(config.navigation_timeout)
            self._page.goto(config.search_url, wait_until="domcontentloaded")
            year = str(config.filing_year or datetime.now().year)
            self._page.locator(config.year_selector).select_option(year)
            self._page.click(config.search_button_selector)
            self._wait_for_table()
        except PlaywrightError as exc:
            self.close()
            raise DiscoveryError(f"failed to open listing search: {exc}") from exc

    def _wait_for_table(self) -> None:
        self._page.wait_for_selector(self._config.table_selector, state="visible")

    def page_count(self) -> int:
        from playwright.sync_api import Error as PlaywrightError

        try:
            text = self._page.locator(self._config.last_page_selector).inner_text()
        except PlaywrightError as exc:
            raise DiscoveryError(f"failed to find the last pagination button: {exc}") from exc
        try:
            return int(text.strip())
        except ValueError as exc:
            raise DiscoveryError(f"failed to convert page count to integer: {text!r}") from exc

    def goto_page(self, number: int) -> None:
        from playwright.sync_api import Error as PlaywrightError

        try:
            self._page.evaluate(
                """([selector, index]) => {
                    const table = window.jQuery(selector).DataTable();
                    table.page(index).draw('page');
                }""",
                [self._config.table_selector, number - 1],
            )
            self._wait_for_table()
        except PlaywrightError as exc:
            raise DiscoveryError(f"failed to go to page: {exc}", page=number) from exc

    def rows(self) -> list[ListingRow]:
        return parse_rows(self._page.content(), self._config)

    def next_page(self) -> bool:
        from playwright.sync_api import Error as PlaywrightError

        locator = self._page.locator(self._config.next_page_selector)
        try:
            if locator.count() == 0:
                return False
            classes = locator.first.get_attribute("class") or ""
            if "disabled" in classes.split():
                return False
            locator.first.click()
            self._wait_for_table()
        except PlaywrightError:
            return False
        return True

    def close(self) -> None:
        for resource in (self._page, self._context, self._browser):
            if resource is not None:
                resource.close()
        if self._playwright is not None:
            self._playwright.stop()
        self._page = self._context = self._browser = self._playwright = None


class PlaywrightLister:
    """Lister backed by headless Chromium.

    The primary session serves the sequential walk and the page count. Pages
    scraped from worker threads each get their own short-lived session since
    Playwright's sync objects cannot cross threads.
    """

    def __init__(
        self,
        config: ListingConfig,
        user_agent: str | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.user_agent = user_agent
        self.logger = logger or structlog.get_logger("clerk_trades.lister")
        self._primary: _ListingSession | None = None
        self._lock = Lock()

    def _session(self) -> _ListingSession:
        with self._lock:
            if self._primary is None:
                self._primary = _ListingSession(self.config, self.user_agent)
                self._primary.start()
            return self._primary

    def page_count(self) -> int:
        return self._session().page_count()

    def goto_page(self, number: int) -> None:
        self._session().goto_page(number)

    def rows(self) -> list[ListingRow]:
        return self._session().rows()

    def next_page(self) -> bool:
        return self._session().next_page()

    def scrape_page(self, number: int) -> list[ListingRow]:
        with _ListingSession(self.config, self.user_agent) as session:
            if number > 1:
                session.goto_page(number)
            rows = session.rows()
        self.logger.debug("page_scraped", page=number, rows=len(rows))
        return rows

    def close(self) -> None:
        with self._lock:
            if self._primary is not None:
                self._primary.close()
                self._primary = None


__all__ = ["Lister", "ListingRow", "PlaywrightLister", "parse_rows"]
