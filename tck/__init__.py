"""Ledger SDK conformance harness: dual-source state verification."""

__version__ = "0.1.0"
