"""Pydantic models used across the clerk-trades configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

MIN_INTERVAL_HOURS = 3
MAX_LIST_REPORTS = 5
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/117.0.5938.62 Safari/537.36"
)


class DiscoveryMode(str, Enum):
    """How listing pages are visited."""

    CONCURRENT = "concurrent"
    SEQUENTIAL = "sequential"


class EquivalencePolicy(str, Enum):
    """Rules deciding whether an extracted trade is already stored."""

    EXACT = "exact"
    SIX_FIELD = "six_field"
    SIX_FIELD_WILDCARD = "six_field_wildcard"
    NAME_AND_FIELDS = "name_and_fields"


class ListingConfig(BaseModel):
    """Where the disclosure listing lives and how its table is read."""

    base_url: str = "https://disclosures-clerk.house.gov/"
    search_path: str = "FinancialDisclosure#Search"
    filing_year: int | None = None
    excluded_kinds: list[str] = Field(default_factory=lambda: ["financial-pdfs"])
    year_selector: str = "#FilingYear"
    search_button_selector: str = 'button[aria-label="search button"]'
    table_selector: str = "#DataTables_Table_0"
    row_selector: str = "tbody tr"
    link_selector: str = "td.memberName a"
    last_page_selector: str = ".paginate_button:not(.ellipsis):not(.next):last-child"
    next_page_selector: str = ".paginate_button.next"
    headless: bool = True
    navigation_timeout: int = 30000  # milliseconds

    @field_validator("base_url")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else value + "/"

    @property
    def search_url(self) -> str:
        return self.base_url + self.search_path


class DiscoverySettings(BaseModel):
    """Link discovery behaviour."""

    mode: DiscoveryMode = DiscoveryMode.CONCURRENT
    name_match_cap: int = 5
    max_followup_passes: int = 20
    page_workers: int | None = None

    @model_validator(mode="after")
    def _validate_bounds(self) -> "DiscoverySettings":
        if self.name_match_cap < 1:
            raise ValueError("name_match_cap must be >= 1")
        if self.max_followup_passes < 0:
            raise ValueError("max_followup_passes must be >= 0")
        if self.page_workers is not None and self.page_workers < 1:
            raise ValueError("page_workers must be >= 1 when set")
        return self


class FetchSettings(BaseModel):
    """Document download settings."""

    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 30.0
    retry_on_fail: int = 0

    @field_validator("retry_on_fail")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("retry_on_fail must be >= 0")
        return value


class ExtractorSettings(BaseModel):
    """Generative extraction service settings."""

    model: str = "gemini-1.5-flash"
    endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    api_key_env: str = "GEMINI_API_KEY"
    temperature: float = 0.9
    top_p: float = 0.5
    top_k: int = 20
    timeout: float = 180.0


class ReconcileSettings(BaseModel):
    """Trade deduplication settings."""

    policy: EquivalencePolicy = EquivalencePolicy.SIX_FIELD


class NotifierSettings(BaseModel):
    """Mailgun delivery settings."""

    api_base: str = "https://api.mailgun.net/v3"
    api_key_env: str = "MAILGUN_API_KEY"
    domain: str | None = None
    email_list: list[str] = Field(default_factory=list)
    mailing_list: str | None = None
    use_mailing_list: bool = False
    sender_name: str = "clerk trades"
    subject: str = "TRADES"
    timeout: float = 30.0

    @field_validator("email_list", mode="before")
    @classmethod
    def _split_addresses(cls, value: Any) -> list[str]:
        if value in (None, ""):
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [str(item).strip() for item in value if str(item).strip()]

    @model_validator(mode="after")
    def _validate_list(self) -> "NotifierSettings":
        if self.use_mailing_list and not self.mailing_list:
            raise ValueError("use_mailing_list requires a mailing_list address")
        return self


class GlobalConfig(BaseModel):
    """Top level settings shared by every pipeline component."""

    listing: ListingConfig = Field(default_factory=ListingConfig)
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    extractor: ExtractorSettings = Field(default_factory=ExtractorSettings)
    reconcile: ReconcileSettings = Field(default_factory=ReconcileSettings)
    notifier: NotifierSettings = Field(default_factory=NotifierSettings)
    schedule_interval_hours: int = 24
    links_file: Path = Field(default=Path("links.json"))
    trades_file: Path = Field(default=Path("trades.json"))

    @field_validator("links_file", "trades_file", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    @field_validator("schedule_interval_hours")
    @classmethod
    def _minimum_interval(cls, value: int) -> int:
        if value < MIN_INTERVAL_HOURS:
            raise ValueError(f"minimum duration must be {MIN_INTERVAL_HOURS}h")
        return value

    def resolved_path(self, path: Path, base_dir: Path) -> Path:
        """Return a store path relative to the data directory."""

        if not path.is_absolute():
            return (base_dir / path).resolve()
        return path


__all__ = [
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
