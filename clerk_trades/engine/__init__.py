"""Engine components orchestrating discover → fetch → extract → reconcile."""

from .discovery import DiscoveryResult, LinkCollector, LinkDiscovery
from .extractor import Extractor, GeminiExtractor, parse_trade_payload
from .fetcher import DocumentFetcher, FetchBatch
from .lister import Lister, ListingRow, PlaywrightLister
from .reconcile import Reconciler
from .thread_pool import WorkerPool

__all__ = [
    "DiscoveryResult",
    "DocumentFetcher",
    "Extractor",
    "FetchBatch",
    "GeminiExtractor",
    "LinkCollector",
    "LinkDiscovery",
    "Lister",
    "ListingRow",
    "PlaywrightLister",
    "Reconciler",
    "WorkerPool",
    "parse_trade_payload",
]
