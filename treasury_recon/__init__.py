"""Ledger-to-bank reconciliation engine for campaign treasury operations."""

__version__ = "0.1.0"
