"""Sync ledger: cache of external identifiers that were already ingested.

Scrapers and ingestion jobs consult it to skip items they have seen before.
Losing ledger rows only causes redundant re-processing, so write failures are
reported as ``LedgerWriteFailure`` for callers to log and move past.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fintrack.logger import get_logger
from fintrack.models import DataType, SyncLedgerEntry
from fintrack.services.errors import LedgerWriteFailure
from fintrack.services.fingerprint import parse_date

logger = get_logger(__name__)


@dataclass
class LedgerItem:
    """One sighting of an external item."""

    source_identifier: str | None
    source_file_hash: str | None = None
    last_known_date: date | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> LedgerItem:
        raw_date = data.get("last_known_date")
        return cls(
            source_identifier=data.get("source_identifier"),
            source_file_hash=data.get("source_file_hash"),
            last_known_date=parse_date(raw_date) if raw_date else None,
            metadata=data.get("metadata"),
        )


@dataclass
class LookupResult:
    already_synced: list[str] = field(default_factory=list)
    not_synced: list[str] = field(default_factory=list)


@dataclass
class RecordResult:
    new_count: int = 0
    updated_count: int = 0

    @property
    def logged_count(self) -> int:
        return self.new_count + self.updated_count


@dataclass
class LedgerStatus:
    entries: list[SyncLedgerEntry]
    last_sync: datetime | None


def _unique_identifiers(identifiers: Iterable[str | None]) -> list[str]:
    """Drop blanks and repeats, keeping first-seen order."""
    seen: dict[str, None] = {}
    for identifier in identifiers:
        if identifier is None:
            continue
        identifier = str(identifier).strip()
        if identifier and identifier not in seen:
            seen[identifier] = None
    return list(seen)


async def _load_entries(
    db: AsyncSession,
    user_id: UUID,
    data_type: DataType,
    source: str,
    identifiers: list[str],
) -> dict[str, SyncLedgerEntry]:
    if not identifiers:
        return {}
    result = await db.execute(
        select(SyncLedgerEntry).where(
            SyncLedgerEntry.user_id == user_id,
            SyncLedgerEntry.data_type == data_type,
            SyncLedgerEntry.source == source,
            SyncLedgerEntry.source_identifier.in_(identifiers),
        )
    )
    return {entry.source_identifier: entry for entry in result.scalars()}


async def lookup(
    db: AsyncSession,
    user_id: UUID,
    data_type: DataType,
    source: str,
    identifiers: Iterable[str | None],
) -> LookupResult:
    """Split identifiers into already-synced and not-synced, both in input order."""
    unique = _unique_identifiers(identifiers)
    known = await _load_entries(db, user_id, data_type, source, unique)
    return LookupResult(
        already_synced=[identifier for identifier in unique if identifier in known],
        not_synced=[identifier for identifier in unique if identifier not in known],
    )


async def record(
    db: AsyncSession,
    user_id: UUID,
    data_type: DataType,
    source: str,
    items: Iterable[LedgerItem | Mapping[str, Any]],
) -> RecordResult:
    """Upsert ledger rows keyed by (user, data_type, source, source_identifier).

    Items without a ``source_identifier`` are skipped. Known identifiers are
    updated in place and their ``synced_at`` advances to now. Changes are
    flushed, not committed.

    Raises:
        LedgerWriteFailure: the database rejected the write.
    """
    ledger_items = [item if isinstance(item, LedgerItem) else LedgerItem.from_mapping(item) for item in items]
    identifiers = _unique_identifiers(item.source_identifier for item in ledger_items)
    outcome = RecordResult()
    if not identifiers:
        return outcome

    try:
        entries = await _load_entries(db, user_id, data_type, source, identifiers)
        for item in ledger_items:
            identifier = (item.source_identifier or "").strip()
            if not identifier:
                continue
            now = datetime.now(UTC)
            entry = entries.get(identifier)
            if entry is None:
                entry = SyncLedgerEntry(
                    user_id=user_id,
                    data_type=data_type,
                    source=source,
                    source_identifier=identifier,
                    source_file_hash=item.source_file_hash,
                    last_known_date=item.last_known_date,
                    item_metadata=item.metadata,
                    synced_at=now,
                )
                db.add(entry)
                entries[identifier] = entry
                outcome.new_count += 1
                continue

            if item.source_file_hash is not None:
                entry.source_file_hash = item.source_file_hash
            if item.last_known_date is not None:
                entry.last_known_date = item.last_known_date
            if item.metadata is not None:
                entry.item_metadata = item.metadata
            entry.synced_at = now
            outcome.updated_count += 1

        await db.flush()
    except SQLAlchemyError as exc:
        logger.error(
            "Sync ledger write failed",
            user_id=str(user_id),
            data_type=data_type.value,
            source=source,
            error=str(exc),
        )
        raise LedgerWriteFailure(str(exc)) from exc

    logger.info(
        "Sync ledger recorded",
        user_id=str(user_id),
        data_type=data_type.value,
        source=source,
        new_count=outcome.new_count,
        updated_count=outcome.updated_count,
    )
    return outcome


async def status(
    db: AsyncSession,
    user_id: UUID,
    data_type: DataType,
    source: str | None = None,
) -> LedgerStatus:
    """Ledger entries for a data type, most recently synced first."""
    stmt = select(SyncLedgerEntry).where(
        SyncLedgerEntry.user_id == user_id,
        SyncLedgerEntry.data_type == data_type,
    )
    if source:
        stmt = stmt.where(SyncLedgerEntry.source == source)
    stmt = stmt.order_by(SyncLedgerEntry.synced_at.desc())

    result = await db.execute(stmt)
    entries = list(result.scalars())
    return LedgerStatus(entries=entries, last_sync=entries[0].synced_at if entries else None)
