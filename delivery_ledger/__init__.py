"""Calculation engines and SQLite store for a perishable-goods delivery round."""

__version__ = "0.1.0"
