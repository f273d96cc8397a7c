"""Condominium billing and payment ledger engine."""

__version__ = "0.1.0"
