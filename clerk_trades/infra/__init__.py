"""Infra layer utilities (persisted JSON stores)."""

from .storage import JsonArrayStore, LinkStore, TradeStore, write_json_atomic

__all__ = ["JsonArrayStore", "LinkStore", "TradeStore", "write_json_atomic"]
