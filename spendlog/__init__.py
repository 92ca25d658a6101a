"""Spendlog: a personal finance tracker backed by SQLite."""

__version__ = "0.1.0"
