"""Rich renderables for trades and links."""

from __future__ import annotations

from typing import Sequence

from rich import box
from rich.table import Table

from .models import TRADE_COLUMNS, TradeRecord


def trades_table(trades: Sequence[TradeRecord], title: str = "Trades") -> Table:
    table = Table(title=f"{title} · {len(trades)}", box=box.SIMPLE_HEAD)
    styles = {"Name": "cyan", "Ticker": "magenta", "Type": "yellow", "Amount": "green"}
    for column in TRADE_COLUMNS:
        table.add_column(column, style=styles.get(column), overflow="fold")
    for trade in trades:
        table.add_row(*trade.as_row())
    return table


def links_table(links: Sequence[str], total: int) -> Table:
    table = Table(title=f"Report links · showing {len(links)} of {total}", box=box.SIMPLE_HEAD)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Link", style="cyan", overflow="fold")
    start = total - len(links) + 1
    for offset, link in enumerate(links):
        table.add_row(str(start + offset), link)
    return table


__all__ = ["links_table", "trades_table"]
