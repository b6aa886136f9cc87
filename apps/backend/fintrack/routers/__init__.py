"""API routers package."""

from fintrack.routers import duplicates, reconciliation, sync

__all__ = [
    "duplicates",
    "reconciliation",
    "sync",
]
