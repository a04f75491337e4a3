"""Concurrent document download."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

import httpx
import structlog

from ..config import FetchSettings
from ..errors import FetchError
from ..models import FetchedDocument
from .thread_pool import WorkerPool


@dataclass(slots=True)
class FetchBatch:
    """Documents that downloaded, plus the reason each failed link was dropped.

    ``documents`` follows completion order, not input order.
    """

    documents: list[FetchedDocument] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def links(self) -> list[str]:
        return [document.link for document in self.documents]

    def __bool__(self) -> bool:
        return bool(self.documents)


class DocumentFetcher:
    """Download every link on its own worker, tolerating individual failures."""

    def __init__(
        self,
        settings: FetchSettings,
        pool: WorkerPool | None = None,
        logger: structlog.BoundLogger | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.pool = pool or WorkerPool()
        self.logger = logger or structlog.get_logger("clerk_trades.fetcher")
        self._client = httpx.Client(
            follow_redirects=True,
            timeout=settings.timeout,
            headers={"User-Agent": settings.user_agent},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def fetch(self, links: Iterable[str]) -> FetchBatch:
        batch = FetchBatch()
        targets = list(links)
        if not targets:
            return batch
        self.logger.info("fetch_started", reports=len(targets))
        for link, future in self.pool.fan_out(
            self._fetch_one, targets, max_workers=len(targets), name="fetch"
        ):
            try:
                content = future.result()
            except (FetchError, httpx.HTTPError) as exc:
                batch.errors[link] = str(exc)
                self.logger.warning("fetch_failed", link=link, error=str(exc))
                continue
            batch.documents.append(FetchedDocument(link=link, content=content))
        self.logger.info(
            "fetch_finished", fetched=len(batch.documents), failed=len(batch.errors)
        )
        return batch

    def _fetch_one(self, link: str) -> bytes:
        attempts = self.settings.retry_on_fail + 1
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                response = self._client.get(link)
            except httpx.InvalidURL as exc:
                raise FetchError(f"invalid link: {exc}", link=link) from exc
            except httpx.HTTPError as exc:
                last_error = exc
                self.logger.debug("fetch_retry", link=link, attempt=attempt, error=str(exc))
                continue
            if response.is_success:
                return response.content
            last_error = FetchError(
                f"failed to fetch file: {response.status_code} {response.reason_phrase}",
                link=link,
            )
            if response.status_code < 500 and response.status_code != 429:
                break
        if isinstance(last_error, FetchError):
            raise last_error
        raise FetchError(f"failed to fetch file: {last_error}", link=link) from last_error


__all__ = ["DocumentFetcher", "FetchBatch"]
