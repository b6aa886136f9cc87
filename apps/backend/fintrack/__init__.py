"""Fintrack backend: duplicate detection and data reconciliation for personal finance records."""

__version__ = "0.1.0"
