"""Clerk Trades: incremental discovery and reconciliation of disclosed trades."""

__version__ = "0.3.0"
