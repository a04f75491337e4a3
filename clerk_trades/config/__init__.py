"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    DEFAULT_USER_AGENT,
    MAX_LIST_REPORTS,
    MIN_INTERVAL_HOURS,
    DiscoveryMode,
    DiscoverySettings,
    EquivalencePolicy,
    ExtractorSettings,
    FetchSettings,
    GlobalConfig,
    ListingConfig,
    NotifierSettings,
    ReconcileSettings,
)

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "DEFAULT_USER_AGENT",
    "DiscoveryMode",
    "DiscoverySettings",
    "EquivalencePolicy",
    "ExtractorSettings",
    "FetchSettings",
    "GlobalConfig",
    "ListingConfig",
    "MAX_LIST_REPORTS",
    "MIN_INTERVAL_HOURS",
    "NotifierSettings",
    "ReconcileSettings",
]
