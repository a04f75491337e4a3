"""Link discovery: crawl the listing and keep only links not seen before."""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from urllib.parse import urljoin

import structlog

from ..config import DiscoveryMode, DiscoverySettings, ListingConfig
from ..errors import DiscoveryError
from ..infra import LinkStore
from .lister import Lister, ListingRow
from .thread_pool import WorkerPool


@dataclass(slots=True)
class DiscoveryResult:
    """Outcome of one discovery pass."""

    new_links: list[str] = field(default_factory=list)
    total_links: int = 0
    page_count: int = 0
    continue_looping: bool = False
    page_errors: dict[int, str] = field(default_factory=dict)


class LinkCollector:
    """Accumulate new links while enforcing the name filter and its cap."""

    def __init__(
        self,
        existing: set[str],
        listing: ListingConfig,
        name: str | None = None,
        cap: int | None = None,
    ) -> None:
        self._existing = existing
        self._listing = listing
        self._name = name or None
        self._cap = cap if self._name else None
        self._lock = Lock()
        self._seen: set[str] = set()
        self.links: list[str] = []

    @property
    def full(self) -> bool:
        return self._cap is not None and len(self.links) >= self._cap

    def resolve(self, href: str) -> str:
        if href.startswith(("http://", "https://")):
            return href
        return urljoin(self._listing.base_url, href.lstrip("/"))

    def accepts(self, row: ListingRow) -> bool:
        if not row.href:
            return False
        if any(kind in row.href for kind in self._listing.excluded_kinds):
            return False
        if self._name and self._name not in row.display_name:
            return False
        return True

    def offer(self, row: ListingRow) -> bool:
        """Record ``row`` if it is wanted and new; return whether it was added."""

        if not self.accepts(row):
            return False
        link = self.resolve(row.href)
        with self._lock:
            if self.full or link in self._existing or link in self._seen:
                return False
            self._seen.add(link)
            self.links.append(link)
            return True


class LinkDiscovery:
    """Drive a :class:`Lister` across every page and persist new links."""

    def __init__(
        self,
        lister: Lister,
        link_store: LinkStore,
        listing: ListingConfig,
        settings: DiscoverySettings,
        pool: WorkerPool | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.lister = lister
        self.link_store = link_store
        self.listing = listing
        self.settings = settings
        self.pool = pool or WorkerPool()
        self.logger = logger or structlog.get_logger("clerk_trades.discovery")

    def discover(self, name: str | None = None) -> DiscoveryResult:
        collector = LinkCollector(
            set(self.link_store.items()),
            self.listing,
            name=name,
            cap=self.settings.name_match_cap,
        )
        result = DiscoveryResult()
        try:
            result.page_count = self.lister.page_count()
            self.logger.debug("pages_found", pages=result.page_count)
            if self.settings.mode is DiscoveryMode.CONCURRENT:
                result.page_errors = self._crawl_concurrently(result.page_count, collector)
            else:
                self._crawl_sequentially(result.page_count, collector)
            if result.page_count and len(result.page_errors) == result.page_count:
                raise DiscoveryError(
                    f"every listing page failed ({result.page_count} pages), "
                    f"first error: {result.page_errors[min(result.page_errors)]}"
                )
        finally:
            self.lister.close()

        result.new_links = list(collector.links)
        result.continue_looping = collector.full
        if result.new_links:
            added = self.link_store.add_new(result.new_links)
            result.new_links = added
            for link in added:
                self.logger.info("new_link", link=link)
            self.logger.info(
                "links_updated", path=str(self.link_store.path), total=len(self.link_store)
            )
        result.total_links = len(self.link_store)
        return result

    def _crawl_concurrently(self, page_count: int, collector: LinkCollector) -> dict[int, str]:
        pages: dict[int, list[ListingRow]] = {}
        errors: dict[int, str] = {}
        for page, future in self.pool.fan_out(
            self.lister.scrape_page,
            range(1, page_count + 1),
            max_workers=self.settings.page_workers,
            name="pages",
        ):
            try:
                pages[page] = future.result()
            except Exception as exc:  # noqa: BLE001
                errors[page] = str(exc)
                self.logger.warning("page_failed", page=page, error=str(exc))
        # Merge in page order so the name cap keeps the earliest matches.
        for page in sorted(pages):
            for row in pages[page]:
                collector.offer(row)
                if collector.full:
                    return errors
        return errors

    def _crawl_sequentially(self, page_count: int, collector: LinkCollector) -> None:
        self.lister.goto_page(1)
        page = 1
        while True:
            try:
                rows = self.lister.rows()
            except DiscoveryError:
                raise
            except Exception as exc:  # noqa: BLE001
                raise DiscoveryError(f"failed to query table rows: {exc}", page=page) from exc
            for row in rows:
                collector.offer(row)
                if collector.full:
                    return
            if page >= page_count:
                return
            if not self.lister.next_page():
                self.logger.info("pagination_stopped", page=page, pages=page_count)
                return
            page += 1


__all__ = ["DiscoveryResult", "LinkCollector", "LinkDiscovery"]
