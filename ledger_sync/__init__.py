"""Ledger sync: payment classification, history backfill and live sync for Stellar accounts."""

__version__ = "0.1.0"
