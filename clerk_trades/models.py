"""Domain records exchanged between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator

TRADE_COLUMNS = ("Name", "Asset", "Ticker", "Type", "Date", "Filed", "Amount", "Cap")


class TradeRecord(BaseModel):
    """One transaction extracted from a disclosure report.

    Field aliases match the JSON keys used by the trade store and the
    extraction prompt (``Name``, ``Asset`` ...). Only ``Name`` is required to
    be non-empty; dates and amounts stay free text as printed in the report.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, str_strip_whitespace=True)

    name: str = Field(alias="Name", min_length=1)
    asset: str = Field(default="", alias="Asset")
    ticker: str = Field(default="", alias="Ticker")
    type: str = Field(default="", alias="Type")
    date: str = Field(default="", alias="Date")
    filed: str = Field(default="", alias="Filed")
    amount: str = Field(default="", alias="Amount")
    cap: bool = Field(default=False, alias="Cap")

    @field_validator("asset", "ticker", "type", "date", "filed", "amount", mode="before")
    @classmethod
    def _null_as_blank(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("cap", mode="before")
    @classmethod
    def _null_as_false(cls, value: object) -> object:
        return False if value is None else value

    def to_json(self) -> dict[str, object]:
        return self.model_dump(by_alias=True)

    def as_row(self) -> list[str]:
        return [
            self.name,
            self.asset,
            self.ticker,
            self.type,
            self.date,
            self.filed,
            self.amount,
            "true" if self.cap else "false",
        ]


@dataclass(slots=True)
class FetchedDocument:
    """Raw document body keyed by the link it was downloaded from."""

    link: str
    content: bytes

    @property
    def file_name(self) -> str:
        return self.link.rstrip("/").rsplit("/", 1)[-1]


__all__ = ["FetchedDocument", "TRADE_COLUMNS", "TradeRecord"]
